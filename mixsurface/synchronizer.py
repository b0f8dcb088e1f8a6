"""State synchronizer: merges pushed and polled native state into one snapshot.

Volume (and mute) arrive as push notifications; media position, duration,
title and artwork are polled on a fixed interval. Both streams are funnelled
through ``apply()`` as tagged updates. User intents only ever go out over the
command channel; the snapshot changes when the native layer reports the
result (unless optimistic volume is enabled).
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, Self

from mixsurface.commands import CommandChannel, CommandClient
from mixsurface.config import SyncConfig
from mixsurface.errors import TransportFailure
from mixsurface.events import (
    MUTE_CHANGED,
    VOLUME_CHANGED,
    EventChannel,
    EventSubscription,
    ListenerSet,
    parse_mute_payload,
    parse_volume_payload,
)
from mixsurface.models import (
    NO_MEDIA,
    MediaSnapshot,
    MediaUpdate,
    MuteUpdate,
    SyncSnapshot,
    TransientError,
    UpdateSource,
    VolumeUpdate,
    clamp_volume,
)
from mixsurface.poller import PollScheduler
from mixsurface.session import ScopedSession
from mixsurface.utils import create_task, log_task_exception

logger = logging.getLogger(__name__)

_P = ParamSpec("_P")

Update = VolumeUpdate | MuteUpdate | MediaUpdate

SnapshotListener = Callable[[SyncSnapshot], None]
ErrorListener = Callable[[TransientError], None]


def _field_of(update: Update) -> str:
    if isinstance(update, VolumeUpdate):
        return "volume"
    if isinstance(update, MuteUpdate):
        return "muted"
    return "media"


class StateSynchronizer:
    """Owns the SyncSnapshot for one UI session.

    Typical use::

        async with StateSynchronizer(native, native) as sync:
            sync.add_listener(render)
            ...
    """

    def __init__(
        self,
        commands: CommandChannel,
        events: EventChannel,
        config: SyncConfig | None = None,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            commands: Request/response channel to the native layer.
            events: Push notification channel from the native layer.
            config: Synchronizer tunables; defaults to SyncConfig().
        """
        self._client = CommandClient(commands)
        self._events = events
        self._config = config or SyncConfig()
        self._snapshot = SyncSnapshot()
        self._listeners: ListenerSet[SyncSnapshot] = ListenerSet("snapshot")
        self._error_listeners: ListenerSet[TransientError] = ListenerSet("error")

        self._session: ScopedSession | None = None
        self._poller: PollScheduler | None = None
        self._started = False
        self._stopped = False

        # Last applied sequence number per (field, source)
        self._last_seq: dict[tuple[str, UpdateSource], int] = {}
        # Fields that have seen at least one push
        self._pushed: set[str] = set()
        self._read_seq = itertools.count(1)
        self._push_seq = {"volume": itertools.count(1), "muted": itertools.count(1)}
        self._poll_seq = itertools.count(1)
        self._local_seq = itertools.count(1)
        # Value to restore per field if an optimistic command fails, with the
        # push seq seen when it was saved
        self._rollback: dict[str, tuple[Any, int]] = {}
        self._poll_failing = False

        self._pending_volume: int | None = None
        self._volume_timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def snapshot(self) -> SyncSnapshot:
        """The latest snapshot. Immutable; a new object replaces it on every change."""
        return self._snapshot

    @property
    def config(self) -> SyncConfig:
        return self._config

    @property
    def poller(self) -> PollScheduler | None:
        """The poll scheduler, once start() has created it."""
        return self._poller

    @property
    def running(self) -> bool:
        return self._started and not self._stopped

    @property
    def stopped(self) -> bool:
        return self._stopped

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Add a snapshot-changed listener. Returns unsubscribe function."""
        return self._listeners.add(listener)

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        """Add a listener for failed intents. Returns unsubscribe function."""
        return self._error_listeners.add(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the push subscriptions, read the initial volume and start polling.

        Subscriptions are opened before the initial read so that a push that
        races the read is not lost; if the push is observed first, the read
        result is discarded.
        """
        if self._stopped:
            raise RuntimeError("StateSynchronizer cannot be restarted after stop()")
        if self._started:
            raise RuntimeError("StateSynchronizer is already started")
        self._started = True
        session = ScopedSession()
        self._session = session

        try:
            volume_sub = EventSubscription(
                self._events, VOLUME_CHANGED, parse_volume_payload, self._on_volume_event
            )
            session.own(f"{VOLUME_CHANGED} subscription", volume_sub.open())
            mute_sub = EventSubscription(
                self._events, MUTE_CHANGED, parse_mute_payload, self._on_mute_event
            )
            session.own(f"{MUTE_CHANGED} subscription", mute_sub.open())
        except BaseException:
            self.stop()
            raise

        await self._read_volume(report=True)
        await self._read_mute()
        if self._stopped:
            logger.debug("Stopped during start, not starting poll scheduler")
            return

        poller = PollScheduler(self.on_poll_tick, self._config.poll_interval)
        try:
            session.own("poll timer", poller.start())
        except BaseException:
            self.stop()
            raise
        self._poller = poller
        logger.info(
            "State synchronizer started (poll every %.2fs, %s volume)",
            self._config.poll_interval,
            "optimistic" if self._config.optimistic_volume else "push-confirmed",
        )

    def stop(self) -> None:
        """Tear down the subscriptions and the poll timer.

        Idempotent, and safe after a partially failed start(). In-flight
        calls may still complete, but their results are discarded.
        """
        if self._stopped:
            return
        self._stopped = True
        if self._session is not None:
            self._session.close()
        if self._volume_timer is not None:
            self._volume_timer.cancel()
            self._volume_timer = None
            if self._pending_volume is not None:
                logger.debug("Discarding pending volume %d on stop", self._pending_volume)
            self._pending_volume = None
        logger.info("State synchronizer stopped")

    async def aclose(self) -> None:
        """Stop and wait for in-flight work to settle."""
        self.stop()
        if self._poller is not None:
            await self._poller.wait_idle()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Inbound updates
    # ------------------------------------------------------------------

    def apply(self, update: Update) -> bool:
        """Merge a tagged update into the snapshot.

        Per field, an update is only applied if its sequence number is newer
        than the last one applied from the same source. Sources are never
        ordered against each other, except that an initial read loses to a
        push that was observed before it.

        Returns:
            True if a snapshot-changed notification was sent.
        """
        if self._stopped:
            logger.debug("Dropping %s after stop", update)
            return False

        field = _field_of(update)
        key = (field, update.source)
        if update.seq <= self._last_seq.get(key, 0):
            logger.debug("Dropping out-of-order %s", update)
            return False
        self._last_seq[key] = update.seq

        if update.source is UpdateSource.INITIAL_READ and field in self._pushed:
            logger.debug("Ignoring initial %s read, a push was observed first", field)
            return False
        is_push = update.source is UpdateSource.PUSH
        if is_push:
            self._pushed.add(field)

        current = self._snapshot
        if isinstance(update, VolumeUpdate):
            if is_push and self._config.optimistic_volume and current.volume == update.volume:
                logger.debug("Volume push %d confirms local value", update.volume)
                return False
            new = current.with_volume(update.volume)
        elif isinstance(update, MuteUpdate):
            if is_push and self._config.optimistic_volume and current.muted == update.muted:
                logger.debug("Mute push %s confirms local value", update.muted)
                return False
            new = current.with_muted(update.muted)
        else:
            new = current.with_media(update.media)

        if new == current and not is_push:
            return False
        self._publish(new)
        return True

    def on_volume_push(self, volume: int) -> bool:
        """Apply a volume-changed notification.

        Pushes arrive in order on the loop, so every push (from the event
        channel or a direct call) takes the next number from one counter.
        """
        seq = next(self._push_seq["volume"])
        return self.apply(VolumeUpdate(UpdateSource.PUSH, seq, clamp_volume(volume)))

    def on_mute_push(self, muted: bool) -> bool:
        """Apply a mute-changed notification."""
        seq = next(self._push_seq["muted"])
        return self.apply(MuteUpdate(UpdateSource.PUSH, seq, bool(muted)))

    def _on_volume_event(self, _seq: int, volume: int) -> None:
        self.on_volume_push(volume)

    def _on_mute_event(self, _seq: int, muted: bool) -> None:
        self.on_mute_push(muted)

    async def on_poll_tick(self, tick: int | None = None) -> None:
        """Read media state and info and replace the media snapshot as a whole.

        If either read reports no active media, the media snapshot is reset
        to NO_MEDIA; a half-updated media snapshot is never published.
        """
        if self._stopped:
            return
        seq = next(self._poll_seq)
        logger.debug("Poll tick %s (seq %d)", tick if tick is not None else "-", seq)

        state, info = await asyncio.gather(
            self._client.get_media_state(),
            self._client.get_media_info(),
            return_exceptions=True,
        )
        for result in (state, info):
            if isinstance(result, BaseException) and not isinstance(result, TransportFailure):
                raise result
        failure = next((r for r in (state, info) if isinstance(r, TransportFailure)), None)
        if failure is not None:
            if not self._poll_failing:
                self._poll_failing = True
                logger.warning("Media poll failed, keeping last media state: %s", failure)
        else:
            if self._poll_failing:
                self._poll_failing = False
                logger.info("Media poll recovered")
            if state is None or info is None:
                media: MediaSnapshot = NO_MEDIA
            else:
                media = MediaSnapshot.from_parts(state, info)
            self.apply(MediaUpdate(UpdateSource.POLL, seq, media))

        if self._snapshot.volume is None and not self._stopped:
            await self._read_volume(report=False)

    async def _read_volume(self, *, report: bool) -> None:
        seq = next(self._read_seq)
        try:
            volume = await self._client.get_volume()
        except TransportFailure as err:
            if report:
                logger.warning("Could not read initial volume, volume unknown: %s", err)
                self._report("get_volume", err.reason)
            else:
                logger.debug("Volume read retry failed: %s", err)
            return
        self.apply(VolumeUpdate(UpdateSource.INITIAL_READ, seq, volume))

    async def _read_mute(self) -> None:
        seq = next(self._read_seq)
        try:
            muted = await self._client.get_mute()
        except TransportFailure as err:
            logger.warning("Could not read initial mute state: %s", err)
            return
        self.apply(MuteUpdate(UpdateSource.INITIAL_READ, seq, muted))

    # ------------------------------------------------------------------
    # Outbound intents
    # ------------------------------------------------------------------

    def set_volume(self, volume: float) -> None:
        """Request a new output volume and return immediately.

        Rapid successive calls are coalesced: only the latest value is sent
        once no new value has arrived for ``volume_debounce`` seconds.
        """
        target = clamp_volume(volume)
        if self._stopped:
            logger.debug("Ignoring set_volume(%d) after stop", target)
            return
        if self._config.optimistic_volume:
            self._apply_local("volume", target)

        debounce = self._config.volume_debounce
        if debounce <= 0:
            self._send_volume(target)
            return
        self._pending_volume = target
        if self._volume_timer is not None:
            self._volume_timer.cancel()
        loop = asyncio.get_running_loop()
        self._volume_timer = loop.call_later(debounce, self._flush_volume)

    def _flush_volume(self) -> None:
        self._volume_timer = None
        target, self._pending_volume = self._pending_volume, None
        if target is not None and not self._stopped:
            self._send_volume(target)

    def _send_volume(self, target: int) -> None:
        task = create_task(
            self._set_volume_now(target),
            name=f"mixsurface-set-volume-{target}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        task.add_done_callback(log_task_exception)

    async def _set_volume_now(self, target: int) -> None:
        ok = await self._run_intent("set_volume", self._client.set_volume, target)
        self._settle_local("volume", ok)

    async def set_mute(self, muted: bool) -> bool:
        """Mute or unmute the output."""
        optimistic = self._config.optimistic_volume and not self._stopped
        if optimistic:
            self._apply_local("muted", bool(muted))
        ok = await self._forward("set_mute", self._client.set_mute, bool(muted))
        if optimistic:
            self._settle_local("muted", ok)
        return ok

    async def toggle_mute(self) -> bool:
        """Flip the mute flag based on the latest snapshot.

        Nothing is sent while the mute state is still unknown.
        """
        if self._snapshot.muted is None:
            logger.info("Mute state unknown, not toggling")
            self._report("toggle_mute", "mute state unknown")
            return False
        return await self.set_mute(not self._snapshot.muted)

    def _apply_local(self, field: str, value: Any) -> None:
        """Write an optimistic value, remembering what to restore if the command fails."""
        if field not in self._rollback:
            push_seq = self._last_seq.get((field, UpdateSource.PUSH), 0)
            self._rollback[field] = (getattr(self._snapshot, field), push_seq)
        seq = next(self._local_seq)
        if field == "volume":
            self.apply(VolumeUpdate(UpdateSource.LOCAL, seq, value))
        else:
            self.apply(MuteUpdate(UpdateSource.LOCAL, seq, value))

    def _settle_local(self, field: str, ok: bool) -> None:
        """Forget the saved value on success; restore it on failure unless a push came in."""
        saved = self._rollback.pop(field, None)
        if ok or saved is None or self._stopped:
            return
        previous, push_seq = saved
        if self._last_seq.get((field, UpdateSource.PUSH), 0) != push_seq:
            logger.debug("Not restoring %s, the mixer reported a value since", field)
            return
        if getattr(self._snapshot, field) == previous:
            return
        logger.debug("Restoring %s to %s after failed command", field, previous)
        if field == "volume":
            self._publish(self._snapshot.with_volume(previous))
        else:
            self._publish(self._snapshot.with_muted(previous))

    async def seek(self, offset: float) -> bool:
        """Move playback by offset seconds; visible after the next poll tick."""
        return await self._forward("seek", self._client.seek, offset)

    async def set_position(self, position: float) -> bool:
        """Jump to an absolute position in seconds; visible after the next poll tick."""
        return await self._forward("set_position", self._client.set_position, position)

    async def next_track(self) -> bool:
        return await self._forward("next_track", self._client.next_track)

    async def previous_track(self) -> bool:
        return await self._forward("previous_track", self._client.previous_track)

    async def play(self) -> bool:
        return await self._forward("play", self._client.play)

    async def pause(self) -> bool:
        return await self._forward("pause", self._client.pause)

    async def play_pause(self) -> bool:
        return await self._forward("play_pause", self._client.play_pause)

    async def _forward(
        self,
        operation: str,
        call: Callable[_P, Awaitable[None]],
        *args: _P.args,
        **kwargs: _P.kwargs,
    ) -> bool:
        if self._stopped:
            logger.debug("Ignoring %s after stop", operation)
            return False
        return await self._run_intent(operation, call, *args, **kwargs)

    async def _run_intent(
        self,
        operation: str,
        call: Callable[_P, Awaitable[None]],
        *args: _P.args,
        **kwargs: _P.kwargs,
    ) -> bool:
        try:
            await call(*args, **kwargs)
        except TransportFailure as err:
            logger.warning("%s failed: %s", operation, err.reason)
            self._report(operation, err.reason)
            return False
        return True

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _publish(self, snapshot: SyncSnapshot) -> None:
        self._snapshot = snapshot
        self._listeners.dispatch(snapshot)

    def _report(self, operation: str, message: str) -> None:
        if self._stopped:
            logger.debug("Not reporting %s failure after stop", operation)
            return
        self._error_listeners.dispatch(TransientError(operation, message))
