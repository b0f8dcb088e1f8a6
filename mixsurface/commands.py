"""Typed wrapper around the request/response command channel.

The native control layer exposes a single ``call(name, **kwargs)`` entry
point. ``CommandClient`` gives every call a fixed argument shape and result
shape, and turns any native error into ``TransportFailure``.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any, Final, Protocol

from mixsurface.errors import TransportFailure
from mixsurface.models import MediaInfo, MediaState, clamp_volume

logger = logging.getLogger(__name__)

GET_VOLUME: Final = "get_volume"
SET_VOLUME: Final = "set_volume"
GET_MUTE: Final = "get_mute"
SET_MUTE: Final = "set_mute"
GET_MEDIA_STATE: Final = "get_media_state"
GET_MEDIA_INFO: Final = "get_media_info"
SEEK: Final = "seek"
SET_POSITION: Final = "set_position"
NEXT_TRACK: Final = "next_track"
PREVIOUS_TRACK: Final = "previous_track"
PLAY: Final = "play"
PAUSE: Final = "pause"
PLAY_PAUSE: Final = "play_pause"


class CommandChannel(Protocol):
    """Request/response interface to the native control layer."""

    async def call(self, name: str, **kwargs: Any) -> Any:
        """Invoke a named native command and return its result (or None)."""
        ...


def _as_float(call: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TransportFailure(call, f"expected a number, got {value!r}")
    result = float(value)
    if not math.isfinite(result):
        raise TransportFailure(call, f"expected a finite number, got {value!r}")
    return result


class CommandClient:
    """Issues typed commands over a CommandChannel."""

    def __init__(self, channel: CommandChannel) -> None:
        """Initialize the client.

        Args:
            channel: The native command channel to call into.
        """
        self._channel = channel

    async def _call(self, name: str, **kwargs: Any) -> Any:
        logger.debug("-> %s %s", name, kwargs or "")
        try:
            return await self._channel.call(name, **kwargs)
        except asyncio.CancelledError:
            raise
        except TransportFailure:
            raise
        except Exception as err:
            raise TransportFailure(name, str(err) or type(err).__name__) from err

    async def get_volume(self) -> int:
        """Read the current output volume (0-100)."""
        value = _as_float(GET_VOLUME, await self._call(GET_VOLUME))
        if not 0 <= value <= 100:
            raise TransportFailure(GET_VOLUME, f"volume out of range: {value}")
        return clamp_volume(value)

    async def set_volume(self, volume: int) -> None:
        """Set the output volume; the value is clamped to 0-100."""
        await self._call(SET_VOLUME, volume=clamp_volume(volume))

    async def get_mute(self) -> bool:
        """Read the output mute flag."""
        value = await self._call(GET_MUTE)
        if not isinstance(value, bool):
            raise TransportFailure(GET_MUTE, f"expected a bool, got {value!r}")
        return value

    async def set_mute(self, muted: bool) -> None:
        """Mute or unmute the output."""
        await self._call(SET_MUTE, muted=bool(muted))

    async def get_media_state(self) -> MediaState | None:
        """Read position and duration of the active media, or None if nothing plays."""
        value = await self._call(GET_MEDIA_STATE)
        if value is None:
            return None
        if isinstance(value, MediaState):
            return value
        if not isinstance(value, Sequence) or isinstance(value, str) or len(value) != 2:
            raise TransportFailure(GET_MEDIA_STATE, f"malformed media state: {value!r}")
        position = _as_float(GET_MEDIA_STATE, value[0])
        duration = _as_float(GET_MEDIA_STATE, value[1])
        return MediaState(position=position, duration=max(0.0, duration))

    async def get_media_info(self) -> MediaInfo | None:
        """Read title and cover art of the active media, or None if nothing plays."""
        value = await self._call(GET_MEDIA_INFO)
        if value is None:
            return None
        if isinstance(value, MediaInfo):
            return value
        if isinstance(value, Mapping):
            title, cover_art = value.get("title"), value.get("cover_art")
        elif isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
            title, cover_art = value
        else:
            raise TransportFailure(GET_MEDIA_INFO, f"malformed media info: {value!r}")
        if cover_art is not None and not isinstance(cover_art, str):
            raise TransportFailure(GET_MEDIA_INFO, f"malformed cover art: {cover_art!r}")
        return MediaInfo(title="" if title is None else str(title), cover_art=cover_art or None)

    async def seek(self, offset: float) -> None:
        """Move the playback position by a signed offset in seconds."""
        await self._call(SEEK, offset=float(offset))

    async def set_position(self, position: float) -> None:
        """Jump to an absolute position in seconds (negative values become 0)."""
        await self._call(SET_POSITION, position=max(0.0, float(position)))

    async def next_track(self) -> None:
        """Skip to the next track."""
        await self._call(NEXT_TRACK)

    async def previous_track(self) -> None:
        """Go back to the previous track."""
        await self._call(PREVIOUS_TRACK)

    async def play(self) -> None:
        await self._call(PLAY)

    async def pause(self) -> None:
        await self._call(PAUSE)

    async def play_pause(self) -> None:
        await self._call(PLAY_PAUSE)
