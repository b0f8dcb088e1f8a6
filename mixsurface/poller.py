"""Fixed-interval poll scheduler.

The native layer does not push media position, duration, title or artwork,
so they are read on a timer. A tick whose reads are still in flight when the
next tick becomes due causes that next tick to be skipped, so there is never
more than one batch of poll reads outstanding.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from mixsurface.utils import create_task

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0

TickCallback = Callable[[int], Awaitable[None]]


class PollScheduler:
    """Runs a tick callback every ``interval`` seconds, skipping on overlap."""

    def __init__(self, on_tick: TickCallback, interval: float = DEFAULT_POLL_INTERVAL) -> None:
        """Initialize the scheduler.

        Args:
            on_tick: Coroutine function called with the tick number (1, 2, ...).
            interval: Period between ticks in seconds.
        """
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")
        self._on_tick = on_tick
        self._interval = interval
        self._timer: asyncio.Task[None] | None = None
        self._inflight: asyncio.Task[None] | None = None
        self._tick_count = 0
        self.skipped_ticks = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    @property
    def busy(self) -> bool:
        """Return True while a tick's reads are still outstanding."""
        return self._inflight is not None and not self._inflight.done()

    def start(self) -> Callable[[], None]:
        """Start ticking (the first tick fires immediately). Returns the stop disposer."""
        if self.running:
            raise RuntimeError("Poll scheduler is already running")
        self._timer = create_task(self._run(), name="mixsurface-poll-timer", eager_start=False)
        return self.stop

    def stop(self) -> None:
        """Stop the timer. An in-flight tick is left to finish on its own."""
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
            logger.debug("Poll scheduler stopped after %d ticks", self._tick_count)

    async def wait_idle(self) -> None:
        """Wait until the in-flight tick, if any, has completed."""
        inflight = self._inflight
        if inflight is not None and not inflight.done():
            await asyncio.wait({inflight})

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_due = loop.time()
        while True:
            self._fire()
            next_due += self._interval
            delay = next_due - loop.time()
            if delay < 0:
                # Fell behind (e.g. a blocked loop); realign instead of bursting.
                missed = int(-delay // self._interval) + 1
                next_due += missed * self._interval
                delay = next_due - loop.time()
            await asyncio.sleep(delay)

    def _fire(self) -> None:
        self._tick_count += 1
        seq = self._tick_count
        if self.busy:
            self.skipped_ticks += 1
            logger.debug("Skipping poll tick %d, previous tick still in flight", seq)
            return
        self._inflight = create_task(self._run_tick(seq), name=f"mixsurface-poll-{seq}")

    async def _run_tick(self, seq: int) -> None:
        try:
            await self._on_tick(seq)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Poll tick %d failed", seq)
