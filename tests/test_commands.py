"""Tests for the typed command client."""

import asyncio

import pytest

from conftest import FakeNative
from mixsurface.commands import CommandClient
from mixsurface.errors import TransportFailure
from mixsurface.models import MediaInfo, MediaState


def run(coro):
    return asyncio.run(coro)


class TestReads:
    def test_get_volume(self, native):
        assert run(CommandClient(native).get_volume()) == 30

    @pytest.mark.parametrize("value", ["30", None, 120, -1, float("nan")])
    def test_get_volume_rejects_bad_values(self, value):
        native = FakeNative(volume=value)
        with pytest.raises(TransportFailure) as excinfo:
            run(CommandClient(native).get_volume())
        assert excinfo.value.call == "get_volume"

    def test_get_mute_requires_bool(self):
        native = FakeNative(muted=1)
        with pytest.raises(TransportFailure):
            run(CommandClient(native).get_mute())

    def test_get_media_state(self, native):
        assert run(CommandClient(native).get_media_state()) == MediaState(10.0, 200.0)

    def test_get_media_state_none(self):
        native = FakeNative(media_state=None)
        assert run(CommandClient(native).get_media_state()) is None

    def test_get_media_state_negative_duration(self):
        native = FakeNative(media_state=(0.0, -1.0))
        assert run(CommandClient(native).get_media_state()) == MediaState(0.0, 0.0)

    @pytest.mark.parametrize("value", ["10/200", (1.0,), ("a", 2.0)])
    def test_get_media_state_malformed(self, value):
        native = FakeNative(media_state=value)
        with pytest.raises(TransportFailure):
            run(CommandClient(native).get_media_state())

    @pytest.mark.parametrize(
        "value",
        [("Song", "file:///art.png"), {"title": "Song", "cover_art": "file:///art.png"}],
    )
    def test_get_media_info_shapes(self, value):
        native = FakeNative(media_info=value)
        assert run(CommandClient(native).get_media_info()) == MediaInfo("Song", "file:///art.png")

    def test_get_media_info_without_art(self):
        native = FakeNative(media_info={"title": "Song", "cover_art": ""})
        assert run(CommandClient(native).get_media_info()) == MediaInfo("Song", None)


class TestCommands:
    def test_set_volume_is_clamped(self, native):
        run(CommandClient(native).set_volume(130))
        assert native.calls == [("set_volume", {"volume": 100})]

    def test_set_position_is_not_negative(self, native):
        run(CommandClient(native).set_position(-4))
        assert native.calls == [("set_position", {"position": 0.0})]

    def test_transport_commands(self, native):
        client = CommandClient(native)

        async def scenario():
            await client.next_track()
            await client.previous_track()
            await client.play()
            await client.pause()
            await client.play_pause()

        run(scenario())
        assert native.names() == ["next_track", "previous_track", "play", "pause", "play_pause"]

    def test_errors_are_wrapped(self, native):
        native.failures["seek"] = OSError("pipe closed")
        with pytest.raises(TransportFailure) as excinfo:
            run(CommandClient(native).seek(5))
        assert excinfo.value.call == "seek"
        assert excinfo.value.reason == "pipe closed"
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_transport_failure_passes_through(self, native):
        original = TransportFailure("next_track", "no active media player")
        native.failures["next_track"] = original
        with pytest.raises(TransportFailure) as excinfo:
            run(CommandClient(native).next_track())
        assert excinfo.value is original

    def test_cancellation_is_not_wrapped(self, native):
        native.failures["pause"] = asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            run(CommandClient(native).pause())
