"""Keep a volume/media control surface in sync with the native control layer."""

from mixsurface.config import SyncConfig
from mixsurface.errors import MixSurfaceError, NativeLayerUnavailable, TransportFailure
from mixsurface.models import NO_MEDIA, MediaSnapshot, SyncSnapshot, TransientError
from mixsurface.synchronizer import StateSynchronizer

__all__ = [
    "NO_MEDIA",
    "MediaSnapshot",
    "MixSurfaceError",
    "NativeLayerUnavailable",
    "StateSynchronizer",
    "SyncConfig",
    "SyncSnapshot",
    "TransientError",
    "TransportFailure",
]
