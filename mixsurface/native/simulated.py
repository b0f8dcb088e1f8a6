"""In-memory stand-in for the native control layer.

Behaves like a small mixer plus an MPRIS-style media player: volume and mute
changes are pushed asynchronously to subscribers, the playback position
advances with the monotonic clock while playing, and every call can be given
artificial latency or made to fail.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from mixsurface.events import MUTE_CHANGED, VOLUME_CHANGED

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulatedTrack:
    """A track in the simulated player's playlist."""

    title: str
    duration: float
    cover_art: str | None = None


DEFAULT_PLAYLIST = (
    SimulatedTrack("Night Drive", 214.0, "file:///usr/share/mixsurface/night-drive.png"),
    SimulatedTrack("Low Tide", 187.5),
    SimulatedTrack("Glass Harbour", 256.0, "file:///usr/share/mixsurface/glass-harbour.png"),
)


class SimulatedNativeLayer:
    """Command and event channel backed by in-memory state."""

    def __init__(
        self,
        *,
        volume: int = 50,
        muted: bool = False,
        playlist: Sequence[SimulatedTrack] | None = None,
        playing: bool = True,
        latency: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the simulated layer.

        Args:
            volume: Initial volume percentage.
            muted: Initial mute state.
            playlist: Tracks to play; an empty playlist means no active media.
            playing: Whether playback is running initially.
            latency: Seconds every call waits before completing.
            clock: Monotonic clock used to advance the playback position.
        """
        self._volume = volume
        self._muted = muted
        self._playlist = list(DEFAULT_PLAYLIST if playlist is None else playlist)
        self._index: int | None = 0 if self._playlist else None
        self._clock = clock
        self._position = 0.0
        self._anchor = clock()
        self._playing = playing and self._index is not None
        self.latency = latency
        self.fail_calls: set[str] = set()
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._subscribers: defaultdict[str, list[Callable[[Any], None]]] = defaultdict(list)

    @property
    def volume(self) -> int:
        return self._volume

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def playing(self) -> bool:
        return self._playing

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers[topic])

    # EventChannel

    def subscribe(self, topic: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register callback for topic; returns the unsubscribe function."""
        if topic not in (VOLUME_CHANGED, MUTE_CHANGED):
            raise ValueError(f"Unknown topic: {topic}")
        self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

        return unsubscribe

    def _emit(self, topic: str, payload: Any) -> None:
        loop = asyncio.get_running_loop()
        for callback in list(self._subscribers[topic]):
            loop.call_soon(callback, payload)

    # CommandChannel

    async def call(self, name: str, **kwargs: Any) -> Any:
        """Run a named command against the simulated state."""
        self.calls.append((name, kwargs))
        if self.latency > 0:
            await asyncio.sleep(self.latency)
        if name in self.fail_calls:
            raise RuntimeError(f"simulated failure in {name}")
        handler = getattr(self, f"_cmd_{name}", None)
        if handler is None:
            raise ValueError(f"Unknown command: {name}")
        return handler(**kwargs)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]

    # Simulated outside influences

    def external_volume_change(self, volume: int) -> None:
        """Change the volume as a hardware key or another app would."""
        self._update_volume(volume)

    def external_mute_change(self, muted: bool) -> None:
        self._update_mute(muted)

    def stop_media(self) -> None:
        """Close the player so that no media is active."""
        self._index = None
        self._playing = False
        self._position = 0.0

    def load(self, playlist: Sequence[SimulatedTrack], *, playing: bool = True) -> None:
        """Replace the playlist and start from its first track."""
        self._playlist = list(playlist)
        self._index = 0 if self._playlist else None
        self._set_position(0.0)
        self._playing = playing and self._index is not None

    # Internals

    def _update_volume(self, volume: int) -> None:
        volume = max(0, min(100, int(volume)))
        if volume != self._volume:
            self._volume = volume
            self._emit(VOLUME_CHANGED, volume)

    def _update_mute(self, muted: bool) -> None:
        if muted != self._muted:
            self._muted = muted
            self._emit(MUTE_CHANGED, muted)

    def _track(self) -> SimulatedTrack | None:
        if self._index is None:
            return None
        return self._playlist[self._index]

    def _current_position(self) -> float:
        track = self._track()
        if track is None:
            return 0.0
        position = self._position
        if self._playing:
            position += self._clock() - self._anchor
        if position >= track.duration:
            self._advance(1)
            return self._position
        return position

    def _set_position(self, position: float) -> None:
        self._position = position
        self._anchor = self._clock()

    def _advance(self, step: int) -> None:
        if self._index is None:
            return
        self._index = (self._index + step) % len(self._playlist)
        self._set_position(0.0)

    def _cmd_get_volume(self) -> int:
        return self._volume

    def _cmd_set_volume(self, volume: int) -> None:
        self._update_volume(volume)

    def _cmd_get_mute(self) -> bool:
        return self._muted

    def _cmd_set_mute(self, muted: bool) -> None:
        self._update_mute(muted)

    def _cmd_get_media_state(self) -> tuple[float, float] | None:
        position = self._current_position()
        track = self._track()
        if track is None:
            return None
        return (position, track.duration)

    def _cmd_get_media_info(self) -> dict[str, Any] | None:
        track = self._track()
        if track is None:
            return None
        return {"title": track.title, "cover_art": track.cover_art}

    def _cmd_seek(self, offset: float) -> None:
        track = self._track()
        if track is None:
            return
        self._set_position(max(0.0, min(track.duration, self._current_position() + offset)))

    def _cmd_set_position(self, position: float) -> None:
        track = self._track()
        if track is None or position > track.duration:
            return
        self._set_position(max(0.0, position))

    def _cmd_next_track(self) -> None:
        self._advance(1)

    def _cmd_previous_track(self) -> None:
        self._advance(-1)

    def _cmd_play(self) -> None:
        if self._track() is not None and not self._playing:
            self._set_position(self._current_position())
            self._playing = True

    def _cmd_pause(self) -> None:
        if self._playing:
            self._set_position(self._current_position())
            self._playing = False

    def _cmd_play_pause(self) -> None:
        if self._playing:
            self._cmd_pause()
        else:
            self._cmd_play()
