"""Data model for the synchronized volume and media state."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum

MIN_VOLUME = 0
MAX_VOLUME = 100


def clamp_volume(value: float) -> int:
    """Round and clamp a volume value into the 0-100 range."""
    if isinstance(value, bool) or not math.isfinite(value):
        raise ValueError(f"Invalid volume value: {value!r}")
    return max(MIN_VOLUME, min(MAX_VOLUME, round(value)))


class UpdateSource(Enum):
    """Where a snapshot update originated."""

    INITIAL_READ = "initial-read"
    PUSH = "push"
    POLL = "poll"
    LOCAL = "local"


@dataclass(frozen=True)
class MediaState:
    """Position and duration reported by get_media_state, in seconds."""

    position: float
    duration: float


@dataclass(frozen=True)
class MediaInfo:
    """Title and cover art reported by get_media_info."""

    title: str
    cover_art: str | None = None


@dataclass(frozen=True)
class MediaSnapshot:
    """Active media as seen by the presentation layer.

    A duration of 0 means nothing is playing; position, title and cover art
    are not meaningful in that case.
    """

    position: float = 0.0
    duration: float = 0.0
    title: str = ""
    cover_art: str | None = None

    @property
    def active(self) -> bool:
        """Return True if some media is currently loaded."""
        return self.duration > 0

    @classmethod
    def from_parts(cls, state: MediaState, info: MediaInfo) -> MediaSnapshot:
        """Combine a state and info result, keeping position within the track."""
        if state.duration <= 0:
            return NO_MEDIA
        position = max(0.0, min(state.position, state.duration))
        return cls(
            position=position,
            duration=state.duration,
            title=info.title,
            cover_art=info.cover_art,
        )


NO_MEDIA = MediaSnapshot()


@dataclass(frozen=True)
class SyncSnapshot:
    """The single consistent view of volume and media handed to the UI.

    ``volume`` and ``muted`` are None until a value has been read or pushed.
    """

    volume: int | None = None
    muted: bool | None = None
    media: MediaSnapshot = field(default=NO_MEDIA)

    def with_volume(self, volume: int) -> SyncSnapshot:
        return replace(self, volume=volume)

    def with_muted(self, muted: bool) -> SyncSnapshot:
        return replace(self, muted=muted)

    def with_media(self, media: MediaSnapshot) -> SyncSnapshot:
        return replace(self, media=media)

    def describe(self) -> str:
        """Return a human-friendly description of the current state."""
        lines: list[str] = []
        if self.media.active:
            lines.append(f"Now playing: {self.media.title or 'Unknown title'}")
            lines.append(f"Progress: {self.media.position:>5.1f} / {self.media.duration:>5.1f} s")
        else:
            lines.append("Nothing playing")
        if self.volume is None:
            lines.append("Volume: unknown")
        else:
            vol_line = f"Volume: {self.volume}%"
            if self.muted:
                vol_line += " (muted)"
            lines.append(vol_line)
        return "\n".join(lines)


@dataclass(frozen=True)
class VolumeUpdate:
    """A volume value tagged with its source and per-source sequence number."""

    source: UpdateSource
    seq: int
    volume: int


@dataclass(frozen=True)
class MuteUpdate:
    """A mute flag tagged with its source and per-source sequence number."""

    source: UpdateSource
    seq: int
    muted: bool


@dataclass(frozen=True)
class MediaUpdate:
    """A complete media snapshot tagged with its source and sequence number."""

    source: UpdateSource
    seq: int
    media: MediaSnapshot


@dataclass(frozen=True)
class TransientError:
    """A non-fatal failure of a user intent, shown briefly by the UI."""

    operation: str
    message: str

    def __str__(self) -> str:
        return f"{self.operation} failed: {self.message}"
