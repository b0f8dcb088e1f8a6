"""Shared fixtures: a scriptable fake of the native control layer."""

import asyncio
from collections import defaultdict, deque

import pytest


class FakeNative:
    """Records every call; responses, delays and failures are scriptable.

    Push events are delivered synchronously with ``push()``, the way a native
    callback would fire on the loop thread.
    """

    def __init__(self, volume=30, muted=False, media_state=(10.0, 200.0),
                 media_info=("Song", "file:///art.png")):
        self.volume = volume
        self.muted = muted
        self.media_state = media_state
        self.media_info = media_info
        self.calls = []
        self.failures = {}
        self.gates = {}
        self.delays = defaultdict(deque)
        self.responses = defaultdict(deque)
        self.subscribers = defaultdict(list)
        self.unsubscribed = []

    # CommandChannel

    async def call(self, name, **kwargs):
        self.calls.append((name, kwargs))
        # Scripted responses are bound when the call is issued, not when it completes
        scripted = self.responses[name].popleft() if self.responses[name] else None
        if self.delays[name]:
            await asyncio.sleep(self.delays[name].popleft())
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            raise self.failures[name]
        if scripted is not None:
            return scripted
        if name == "get_volume":
            return self.volume
        if name == "get_mute":
            return self.muted
        if name == "get_media_state":
            return self.media_state
        if name == "get_media_info":
            return self.media_info
        return None

    def names(self):
        return [name for name, _ in self.calls]

    def count(self, name):
        return self.names().count(name)

    # EventChannel

    def subscribe(self, topic, callback):
        self.subscribers[topic].append(callback)

        def unsubscribe():
            self.unsubscribed.append(topic)
            self.subscribers[topic].remove(callback)

        return unsubscribe

    def push(self, topic, payload):
        for callback in list(self.subscribers[topic]):
            callback(payload)


@pytest.fixture
def native():
    return FakeNative()


async def settle(rounds=10):
    """Let pending callbacks and eager tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
