"""Native control layer backends.

A backend implements both ``CommandChannel`` and ``EventChannel``.
"""

from __future__ import annotations

from typing import Any

from mixsurface.native.simulated import SimulatedNativeLayer, SimulatedTrack

BACKENDS = ("linux", "simulated")

__all__ = ["BACKENDS", "SimulatedNativeLayer", "SimulatedTrack", "create_native_layer"]


def create_native_layer(backend: str, **options: Any) -> Any:
    """Create the native layer for a backend name.

    The linux backend is imported lazily because pulsectl loads libpulse
    when it is imported.
    """
    if backend == "simulated":
        return SimulatedNativeLayer(**options)
    if backend == "linux":
        from mixsurface.native.linux import LinuxNativeLayer  # noqa: PLC0415

        return LinuxNativeLayer(**options)
    raise ValueError(f"Unknown backend: {backend!r} (expected one of {', '.join(BACKENDS)})")
