"""Keyboard input handling for mixsurface."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import readchar

if TYPE_CHECKING:
    from mixsurface.synchronizer import StateSynchronizer
    from mixsurface.ui import MixSurfaceUI

logger = logging.getLogger(__name__)

VOLUME_STEP = 5
SEEK_STEP = 10.0


class CommandHandler:
    """Turns key presses into synchronizer intents."""

    def __init__(
        self,
        sync: StateSynchronizer,
        ui: MixSurfaceUI | None = None,
        print_event: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the command handler."""
        self._sync = sync
        self._ui = ui
        self._print_event = print_event or (lambda _: None)
        # Last volume requested from the keyboard, so repeated presses keep
        # stepping while the confirming push is still on its way.
        self._requested_volume: int | None = None
        self._seen_volume = sync.snapshot.volume

    async def change_volume(self, delta: int) -> None:
        """Step the output volume by delta, starting from the latest known value."""
        base = self._requested_volume
        if base is None:
            base = self._sync.snapshot.volume
        if base is None:
            self._print_event("Volume unknown, waiting for the mixer")
            return
        target = max(0, min(100, base + delta))
        self._requested_volume = target
        self._sync.set_volume(target)
        self._print_event(f"Volume -> {target}%")

    def on_snapshot(self, volume: int | None) -> None:
        """Forget the requested volume once the mixer reports any new value."""
        if volume != self._seen_volume:
            self._seen_volume = volume
            self._requested_volume = None

    def on_error(self, operation: str) -> None:
        if operation == "set_volume":
            self._requested_volume = None

    async def toggle_mute(self) -> None:
        if self._sync.snapshot.muted is None:
            self._print_event("Mute state unknown, waiting for the mixer")
            return
        await self._sync.toggle_mute()

    async def seek(self, offset: float) -> None:
        if await self._sync.seek(offset):
            self._print_event(f"Seek {offset:+.0f}s")

    async def next_track(self) -> None:
        await self._sync.next_track()

    async def previous_track(self) -> None:
        await self._sync.previous_track()

    async def play_pause(self) -> None:
        await self._sync.play_pause()


async def keyboard_loop(
    sync: StateSynchronizer,
    ui: MixSurfaceUI | None = None,
    print_event: Callable[[str], None] | None = None,
) -> None:
    """Run the keyboard input loop until the user quits.

    Args:
        sync: The running state synchronizer.
        ui: Optional UI instance.
        print_event: Function to print events.
    """
    handler = CommandHandler(sync, ui, print_event)
    unsubscribers = [
        sync.add_listener(lambda snapshot: handler.on_snapshot(snapshot.volume)),
        sync.add_error_listener(lambda error: handler.on_error(error.operation)),
    ]

    # Key dispatch table: key -> (highlight_name | None, async action)
    shortcuts: dict[str, tuple[str | None, Callable[[], Awaitable[None]]]] = {
        " ": ("space", handler.play_pause),
        "m": ("mute", handler.toggle_mute),
        "n": ("next", handler.next_track),
        "p": ("prev", handler.previous_track),
        readchar.key.LEFT: ("seek", lambda: handler.seek(-SEEK_STEP)),
        readchar.key.RIGHT: ("seek", lambda: handler.seek(SEEK_STEP)),
        readchar.key.UP: ("up", lambda: handler.change_volume(VOLUME_STEP)),
        readchar.key.DOWN: ("down", lambda: handler.change_volume(-VOLUME_STEP)),
    }

    try:
        if not sys.stdin.isatty():
            logger.info("No interactive input, running until interrupted")
            await asyncio.Event().wait()
            return

        loop = asyncio.get_running_loop()
        while True:
            try:
                # Run blocking readkey in executor to not block the event loop
                key = await loop.run_in_executor(None, readchar.readkey)
            except (asyncio.CancelledError, KeyboardInterrupt):
                break

            # Handle Ctrl+C
            if key == "\x03":
                break

            if key in ("q", "Q"):
                if ui:
                    ui.highlight_shortcut("quit")
                break

            # Case-insensitive for letter keys
            action = shortcuts.get(key) or shortcuts.get(key.lower())
            if action:
                highlight_name, action_handler = action
                if highlight_name and ui:
                    ui.highlight_shortcut(highlight_name)
                await action_handler()
                continue

            # Ignore unhandled escape sequences
            if key.startswith("\x1b"):
                continue
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
