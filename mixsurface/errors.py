"""Exceptions raised by mixsurface."""

from __future__ import annotations


class MixSurfaceError(Exception):
    """Base class for mixsurface errors."""


class TransportFailure(MixSurfaceError):
    """A command could not be delivered or the native layer reported an error."""

    def __init__(self, call: str, reason: str) -> None:
        """Initialize the failure.

        Args:
            call: Name of the command channel call that failed.
            reason: Human readable description of what went wrong.
        """
        super().__init__(f"{call}: {reason}")
        self.call = call
        self.reason = reason


class NativeLayerUnavailable(TransportFailure):
    """The native control layer could not be reached at all."""
