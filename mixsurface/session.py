"""Paired ownership of the subscription and timer handles."""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class ScopedSession:
    """Owns every disposer opened for one synchronizer session.

    ``close()`` runs each disposer exactly once, in registration order, and
    keeps going when one of them raises, so that a failing unsubscribe can
    never leave the poll timer running (or the other way around).
    """

    def __init__(self) -> None:
        self._handles: list[tuple[str, Callable[[], None]]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._handles)

    def own(self, name: str, disposer: Callable[[], None]) -> None:
        """Register a disposer. Registering on a closed session disposes it at once."""
        if self._closed:
            logger.debug("Session already closed, disposing %s immediately", name)
            self._dispose(name, disposer)
            return
        self._handles.append((name, disposer))

    def close(self) -> None:
        """Dispose every owned handle. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        handles, self._handles = self._handles, []
        for name, disposer in handles:
            self._dispose(name, disposer)

    @staticmethod
    def _dispose(name: str, disposer: Callable[[], None]) -> None:
        try:
            disposer()
        except Exception:
            logger.exception("Error disposing %s", name)
