"""Tests for the simulated native layer, alone and driven by the synchronizer."""

import asyncio

import pytest

from conftest import settle
from mixsurface.config import SyncConfig
from mixsurface.models import NO_MEDIA
from mixsurface.native import SimulatedNativeLayer, SimulatedTrack, create_native_layer
from mixsurface.synchronizer import StateSynchronizer


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


TRACKS = [SimulatedTrack("One", 60.0, "file:///one.png"), SimulatedTrack("Two", 90.0)]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def layer(clock):
    return SimulatedNativeLayer(volume=40, playlist=TRACKS, clock=clock)


def run(coro):
    return asyncio.run(coro)


class TestCommands:
    def test_position_advances_while_playing(self, layer, clock):
        clock.now += 12.0
        assert run(layer.call("get_media_state")) == (12.0, 60.0)

    def test_pause_freezes_position(self, layer, clock):
        clock.now += 5.0
        run(layer.call("pause"))
        clock.now += 20.0
        assert run(layer.call("get_media_state")) == (5.0, 60.0)
        assert not layer.playing

    def test_track_end_advances_playlist(self, layer, clock):
        clock.now += 61.0
        assert run(layer.call("get_media_state")) == (0.0, 90.0)
        assert run(layer.call("get_media_info")) == {"title": "Two", "cover_art": None}

    def test_seek_is_clamped_to_track(self, layer):
        run(layer.call("seek", offset=-30.0))
        assert run(layer.call("get_media_state")) == (0.0, 60.0)
        run(layer.call("pause"))
        run(layer.call("seek", offset=20.0))
        assert run(layer.call("get_media_state")) == (20.0, 60.0)

    def test_set_position_beyond_duration_is_ignored(self, layer):
        run(layer.call("pause"))
        run(layer.call("set_position", position=30.0))
        run(layer.call("set_position", position=75.0))
        assert run(layer.call("get_media_state")) == (30.0, 60.0)

    def test_next_and_previous_wrap(self, layer):
        run(layer.call("previous_track"))
        assert run(layer.call("get_media_info"))["title"] == "Two"
        run(layer.call("next_track"))
        assert run(layer.call("get_media_info"))["title"] == "One"

    def test_no_media(self, layer):
        layer.stop_media()
        assert run(layer.call("get_media_state")) is None
        assert run(layer.call("get_media_info")) is None

    def test_failures_and_unknown_commands(self, layer):
        layer.fail_calls.add("next_track")
        with pytest.raises(RuntimeError):
            run(layer.call("next_track"))
        with pytest.raises(ValueError):
            run(layer.call("eject"))
        assert layer.call_names() == ["next_track", "eject"]


class TestEvents:
    def test_volume_change_is_pushed_asynchronously(self, layer):
        received = []

        async def scenario():
            layer.subscribe("volume-changed", received.append)
            await layer.call("set_volume", volume=70)
            assert received == []
            await settle()

        run(scenario())
        assert received == [70]
        assert layer.volume == 70

    def test_unchanged_volume_is_not_pushed(self, layer):
        received = []

        async def scenario():
            layer.subscribe("volume-changed", received.append)
            await layer.call("set_volume", volume=40)
            await settle()

        run(scenario())
        assert received == []

    def test_unknown_topic(self, layer):
        with pytest.raises(ValueError):
            layer.subscribe("track-changed", print)

    def test_unsubscribe(self, layer):
        dispose = layer.subscribe("mute-changed", print)
        assert layer.subscriber_count("mute-changed") == 1
        dispose()
        dispose()
        assert layer.subscriber_count("mute-changed") == 0


def test_create_native_layer():
    assert isinstance(create_native_layer("simulated", volume=10), SimulatedNativeLayer)
    with pytest.raises(ValueError):
        create_native_layer("coreaudio")


class TestWithSynchronizer:
    def test_volume_round_trip(self, layer):
        async def scenario():
            async with StateSynchronizer(
                layer, layer, SyncConfig(poll_interval=60.0, volume_debounce=0)
            ) as sync:
                assert sync.snapshot.volume == 40
                sync.set_volume(65)
                assert sync.snapshot.volume == 40
                await settle()
                assert sync.snapshot.volume == 65

                layer.external_mute_change(True)
                await settle()
                assert sync.snapshot.muted is True

        run(scenario())

    def test_media_follows_player(self, layer, clock):
        async def scenario():
            async with StateSynchronizer(layer, layer, SyncConfig(poll_interval=60.0)) as sync:
                await settle()
                assert sync.snapshot.media.title == "One"

                clock.now += 15.0
                await sync.next_track()
                await sync.on_poll_tick()
                assert sync.snapshot.media.title == "Two"
                assert sync.snapshot.media.position == 0.0

                layer.stop_media()
                await sync.on_poll_tick()
                assert sync.snapshot.media == NO_MEDIA

        run(scenario())

    def test_failed_intent_reaches_error_listener(self, layer):
        errors = []

        async def scenario():
            async with StateSynchronizer(layer, layer, SyncConfig(poll_interval=60.0)) as sync:
                sync.add_error_listener(errors.append)
                layer.fail_calls.add("play_pause")
                assert not await sync.play_pause()

        run(scenario())
        assert [e.operation for e in errors] == ["play_pause"]
        assert "simulated failure" in errors[0].message
