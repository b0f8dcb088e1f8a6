"""Push notification side of the native control layer.

The native layer delivers unsolicited notifications on named topics.
``EventSubscription`` wraps one topic: it validates payloads, stamps them with
a per-topic sequence number and silently drops anything that arrives once the
subscription is being closed.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from typing import Any, Final, Generic, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

VOLUME_CHANGED: Final = "volume-changed"
MUTE_CHANGED: Final = "mute-changed"

Disposer = Callable[[], None]


class EventChannel(Protocol):
    """Subscription interface for asynchronous native notifications."""

    def subscribe(self, topic: str, callback: Callable[[Any], None]) -> Disposer:
        """Register a callback for a topic and return a function that unsubscribes it."""
        ...


class ListenerSet(Generic[T]):
    """Multiple listeners for a single kind of notification.

    ``add`` returns an unsubscribe function. A listener that raises is logged
    and does not prevent the remaining listeners from being called.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Callable[[T], None]] = []

    def add(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Add a listener. Returns unsubscribe function."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def __len__(self) -> int:
        return len(self._listeners)

    def dispatch(self, value: T) -> None:
        """Call every registered listener with value."""
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Error in %s listener", self._name)


def parse_volume_payload(payload: Any) -> int:
    """Validate a volume-changed payload."""
    if isinstance(payload, bool) or not isinstance(payload, (int, float)):
        raise ValueError(f"expected a number, got {payload!r}")
    if not 0 <= payload <= 100:
        raise ValueError(f"volume out of range: {payload!r}")
    return round(payload)


def parse_mute_payload(payload: Any) -> bool:
    """Validate a mute-changed payload."""
    if not isinstance(payload, bool):
        raise ValueError(f"expected a bool, got {payload!r}")
    return payload


class EventSubscription(Generic[T]):
    """A live subscription to one push topic."""

    def __init__(
        self,
        channel: EventChannel,
        topic: str,
        parse: Callable[[Any], T],
        sink: Callable[[int, T], None],
    ) -> None:
        """Initialize the subscription (not yet open).

        Args:
            channel: The native event channel.
            topic: Topic name, e.g. ``volume-changed``.
            parse: Validates a raw payload, raising ValueError if it is unusable.
            sink: Receives ``(seq, value)`` for every accepted event.
        """
        self._channel = channel
        self._topic = topic
        self._parse = parse
        self._sink = sink
        self._seq = itertools.count(1)
        self._disposer: Disposer | None = None
        self._closed = False

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> Disposer:
        """Subscribe to the topic and return the disposer for this subscription."""
        if self._closed:
            raise RuntimeError(f"Subscription to {self._topic} is already closed")
        if self._disposer is None:
            self._disposer = self._channel.subscribe(self._topic, self._on_event)
            logger.debug("Subscribed to %s", self._topic)
        return self.close

    def close(self) -> None:
        """Unsubscribe; later deliveries are discarded. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True
        disposer, self._disposer = self._disposer, None
        if disposer is not None:
            disposer()
            logger.debug("Unsubscribed from %s", self._topic)

    def _on_event(self, payload: Any) -> None:
        if self._closed:
            logger.debug("Dropping late %s event: %r", self._topic, payload)
            return
        try:
            value = self._parse(payload)
        except ValueError as err:
            logger.warning("Ignoring invalid %s event: %s", self._topic, err)
            return
        self._sink(next(self._seq), value)
