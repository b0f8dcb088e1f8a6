"""Linux native layer: PulseAudio/PipeWire volume and MPRIS media.

Volume and mute of the default sink are handled with ``pulsectl``. Its calls
block, so they run on a single worker thread; sink change notifications are
received on a dedicated listener thread and handed back to the event loop
with ``call_soon_threadsafe``.

Media playback is read and controlled through MPRIS using the ``playerctl``
command line tool, run as an asyncio subprocess.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from collections.abc import Awaitable, Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pulsectl

from mixsurface.errors import NativeLayerUnavailable, TransportFailure
from mixsurface.events import MUTE_CHANGED, VOLUME_CHANGED

logger = logging.getLogger(__name__)

PLAYERCTL = "playerctl"
PLAYERCTL_TIMEOUT = 2.0
NO_PLAYERS = "No players found"

# How long the listener thread blocks in event_listen before checking for stop
EVENT_LISTEN_TIMEOUT = 0.5

# Backoff between PulseAudio event listener reconnect attempts
RECONNECT_DELAY = 1.0
MAX_RECONNECT_DELAY = 30.0

_STATE_FORMAT = "{{position}}\t{{mpris:length}}"
_INFO_FORMAT = "{{xesam:title}}\t{{mpris:artUrl}}"


def _sink_percent(sink: Any) -> int:
    return max(0, min(100, round(sink.volume.value_flat * 100)))


def _parse_microseconds(value: str) -> float:
    value = value.strip()
    if not value:
        return 0.0
    return int(value) / 1_000_000


class PulseMixer:
    """Blocking access to the default sink's volume and mute state."""

    def __init__(self, client_name: str = "mixsurface") -> None:
        self._client_name = client_name
        self._pulse: pulsectl.Pulse | None = None

    def _connect(self) -> pulsectl.Pulse:
        if self._pulse is None:
            try:
                self._pulse = pulsectl.Pulse(self._client_name)
            except pulsectl.PulseError as err:
                raise NativeLayerUnavailable("pulse", str(err)) from err
        return self._pulse

    def _default_sink(self) -> Any:
        pulse = self._connect()
        try:
            name = pulse.server_info().default_sink_name
            return pulse.get_sink_by_name(name)
        except pulsectl.PulseError:
            # Connection may have been dropped; reconnect on next call
            self.close()
            raise

    def get_volume(self) -> int:
        return _sink_percent(self._default_sink())

    def set_volume(self, volume: int) -> None:
        sink = self._default_sink()
        self._connect().volume_set_all_chans(sink, volume / 100)

    def get_mute(self) -> bool:
        return bool(self._default_sink().mute)

    def set_mute(self, muted: bool) -> None:
        sink = self._default_sink()
        self._connect().mute(sink, muted)

    def close(self) -> None:
        if self._pulse is not None:
            self._pulse.close()
            self._pulse = None


class _SinkWatcher(threading.Thread):
    """Listens for sink changes and reports volume/mute when they differ.

    A lost PulseAudio connection (e.g. a server restart) is re-established
    with exponential backoff; the sink state is re-read after every connect
    so that changes made during the outage are still reported.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_change: Callable[[int, bool], None],
        client_name: str,
    ) -> None:
        super().__init__(name="mixsurface-pulse-events", daemon=True)
        self._loop = loop
        self._on_change = on_change
        self._client_name = client_name
        self._stop_event = threading.Event()
        self._dirty = False
        self._last: tuple[int, bool] | None = None
        self.connects = 0

    def stop(self) -> None:
        self._stop_event.set()

    def _on_pulse_event(self, _event: Any) -> None:
        self._dirty = True
        raise pulsectl.PulseLoopStop

    def _report_sink(self, pulse: pulsectl.Pulse) -> None:
        sink = pulse.get_sink_by_name(pulse.server_info().default_sink_name)
        current = (_sink_percent(sink), bool(sink.mute))
        if current != self._last:
            self._last = current
            self._loop.call_soon_threadsafe(self._on_change, *current)

    def _listen(self) -> None:
        with pulsectl.Pulse(f"{self._client_name}-events") as pulse:
            self.connects += 1
            if self.connects > 1:
                logger.info("PulseAudio event listener reconnected")
            pulse.event_mask_set("sink", "server")
            pulse.event_callback_set(self._on_pulse_event)
            self._report_sink(pulse)
            while not self._stop_event.is_set():
                self._dirty = False
                pulse.event_listen(timeout=EVENT_LISTEN_TIMEOUT)
                if self._dirty and not self._stop_event.is_set():
                    self._report_sink(pulse)

    def run(self) -> None:
        backoff = RECONNECT_DELAY
        while not self._stop_event.is_set():
            connects = self.connects
            try:
                self._listen()
            except pulsectl.PulseError as err:
                if self.connects > connects:
                    backoff = RECONNECT_DELAY
                logger.warning(
                    "PulseAudio event listener lost (%s), retrying in %.1fs", err, backoff
                )
                if self._stop_event.wait(backoff):
                    break
                backoff = min(backoff * 2, MAX_RECONNECT_DELAY)


class LinuxNativeLayer:
    """Command and event channel for a Linux desktop."""

    def __init__(
        self,
        *,
        player: str | None = None,
        client_name: str = "mixsurface",
        playerctl_timeout: float = PLAYERCTL_TIMEOUT,
    ) -> None:
        """Initialize the layer.

        Args:
            player: Restrict media control to this MPRIS player name.
            client_name: Client name shown by PulseAudio.
            playerctl_timeout: Seconds to wait for a playerctl invocation.
        """
        self._player = player
        self._client_name = client_name
        self._playerctl_timeout = playerctl_timeout
        self._mixer = PulseMixer(client_name)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mixsurface-pulse")
        self._subscribers: defaultdict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self._watcher: _SinkWatcher | None = None
        self._last_pushed: tuple[int, bool] | None = None
        self._closed = False
        self._commands: dict[str, Callable[..., Awaitable[Any]]] = {
            "get_volume": lambda: self._mixer_call(self._mixer.get_volume),
            "set_volume": lambda volume: self._mixer_call(self._mixer.set_volume, volume),
            "get_mute": lambda: self._mixer_call(self._mixer.get_mute),
            "set_mute": lambda muted: self._mixer_call(self._mixer.set_mute, muted),
            "get_media_state": self._get_media_state,
            "get_media_info": self._get_media_info,
            "seek": self._seek,
            "set_position": self._set_position,
            "next_track": lambda: self._playerctl_command("next"),
            "previous_track": lambda: self._playerctl_command("previous"),
            "play": lambda: self._playerctl_command("play"),
            "pause": lambda: self._playerctl_command("pause"),
            "play_pause": lambda: self._playerctl_command("play-pause"),
        }

    async def call(self, name: str, **kwargs: Any) -> Any:
        """Run a named command."""
        handler = self._commands.get(name)
        if handler is None:
            raise TransportFailure(name, "unknown command")
        return await handler(**kwargs)

    def subscribe(self, topic: str, callback: Callable[[Any], None]) -> Callable[[], None]:
        """Register a push callback; the sink watcher runs while anyone listens."""
        if topic not in (VOLUME_CHANGED, MUTE_CHANGED):
            raise ValueError(f"Unknown topic: {topic}")
        self._subscribers[topic].append(callback)
        if self._watcher is None:
            self._watcher = _SinkWatcher(
                asyncio.get_running_loop(), self._on_sink_change, self._client_name
            )
            self._watcher.start()

        def unsubscribe() -> None:
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)
            if not any(self._subscribers.values()) and self._watcher is not None:
                self._watcher.stop()
                self._watcher = None

        return unsubscribe

    def close(self) -> None:
        """Stop the listener thread and release the PulseAudio connection. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        self._executor.submit(self._mixer.close)
        self._executor.shutdown(wait=False)

    def _on_sink_change(self, volume: int, muted: bool) -> None:
        previous = self._last_pushed
        self._last_pushed = (volume, muted)
        if previous is None or previous[0] != volume:
            for callback in list(self._subscribers[VOLUME_CHANGED]):
                callback(volume)
        if previous is None or previous[1] != muted:
            for callback in list(self._subscribers[MUTE_CHANGED]):
                callback(muted)

    async def _mixer_call(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, func, *args)

    async def _playerctl(self, *args: str) -> str | None:
        """Run playerctl; returns stdout, or None if no player is running."""
        cmd = [PLAYERCTL]
        if self._player:
            cmd.append(f"--player={self._player}")
        cmd.extend(args)
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as err:
            raise NativeLayerUnavailable(args[0], "playerctl not found") from err
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._playerctl_timeout
            )
        except TimeoutError as err:
            proc.kill()
            await proc.wait()
            raise TransportFailure(args[0], "playerctl timed out") from err

        error = stderr.decode("utf-8", "replace").strip()
        if proc.returncode != 0:
            if NO_PLAYERS in error:
                return None
            raise TransportFailure(args[0], error or f"playerctl exited with {proc.returncode}")
        return stdout.decode("utf-8", "replace").rstrip("\n")

    async def _playerctl_command(self, *args: str) -> None:
        if await self._playerctl(*args) is None:
            raise TransportFailure(args[0], "no active media player")

    async def _get_media_state(self) -> tuple[float, float] | None:
        output = await self._playerctl("metadata", "--format", _STATE_FORMAT)
        if output is None:
            return None
        position, _, length = output.partition("\t")
        try:
            return (_parse_microseconds(position), _parse_microseconds(length))
        except ValueError as err:
            raise TransportFailure("get_media_state", f"unexpected output {output!r}") from err

    async def _get_media_info(self) -> dict[str, str | None] | None:
        output = await self._playerctl("metadata", "--format", _INFO_FORMAT)
        if output is None:
            return None
        title, _, art_url = output.partition("\t")
        return {"title": title, "cover_art": art_url or None}

    async def _seek(self, offset: float) -> None:
        sign = "+" if offset >= 0 else "-"
        await self._playerctl_command("position", f"{abs(offset):g}{sign}")

    async def _set_position(self, position: float) -> None:
        await self._playerctl_command("position", f"{max(0.0, position):g}")
