"""Tests for the snapshot data model."""

import math

import pytest

from mixsurface.models import (
    NO_MEDIA,
    MediaInfo,
    MediaSnapshot,
    MediaState,
    SyncSnapshot,
    TransientError,
    clamp_volume,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0, 0), (100, 100), (42.4, 42), (42.6, 43), (-10, 0), (250, 100)],
)
def test_clamp_volume(value, expected):
    assert clamp_volume(value) == expected


@pytest.mark.parametrize("value", [True, math.nan, math.inf])
def test_clamp_volume_rejects_invalid(value):
    with pytest.raises(ValueError):
        clamp_volume(value)


class TestMediaSnapshot:
    def test_no_media_is_inactive(self):
        assert not NO_MEDIA.active
        assert NO_MEDIA.duration == 0
        assert NO_MEDIA.title == ""

    def test_from_parts(self):
        media = MediaSnapshot.from_parts(MediaState(12.5, 300.0), MediaInfo("Song", "file:///a.png"))
        assert media == MediaSnapshot(12.5, 300.0, "Song", "file:///a.png")
        assert media.active

    def test_from_parts_zero_duration_is_no_media(self):
        media = MediaSnapshot.from_parts(MediaState(5.0, 0.0), MediaInfo("Song"))
        assert media is NO_MEDIA

    @pytest.mark.parametrize(("position", "expected"), [(-3.0, 0.0), (400.0, 300.0)])
    def test_from_parts_keeps_position_in_track(self, position, expected):
        media = MediaSnapshot.from_parts(MediaState(position, 300.0), MediaInfo("Song"))
        assert media.position == expected


class TestSyncSnapshot:
    def test_defaults_are_unknown(self):
        snapshot = SyncSnapshot()
        assert snapshot.volume is None
        assert snapshot.muted is None
        assert snapshot.media is NO_MEDIA

    def test_with_methods_return_new_objects(self):
        snapshot = SyncSnapshot()
        changed = snapshot.with_volume(40).with_muted(True)
        assert snapshot.volume is None
        assert changed == SyncSnapshot(volume=40, muted=True)

    def test_describe(self):
        media = MediaSnapshot(30.0, 120.0, "Song")
        text = SyncSnapshot(volume=40, muted=True, media=media).describe()
        assert "Now playing: Song" in text
        assert "Volume: 40% (muted)" in text

    def test_describe_unknown(self):
        text = SyncSnapshot().describe()
        assert "Nothing playing" in text
        assert "Volume: unknown" in text


def test_transient_error_str():
    assert str(TransientError("seek", "no player")) == "seek failed: no player"
