"""Core application logic for the mixsurface control surface."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
from dataclasses import dataclass, field
from typing import Any

from mixsurface.config import SyncConfig
from mixsurface.errors import NativeLayerUnavailable
from mixsurface.keyboard import keyboard_loop
from mixsurface.models import SyncSnapshot, TransientError
from mixsurface.native import create_native_layer
from mixsurface.synchronizer import StateSynchronizer
from mixsurface.ui import MixSurfaceUI

logger = logging.getLogger(__name__)


@dataclass
class AppConfig:
    """Configuration for the mixsurface application."""

    backend: str = "linux"
    player: str | None = None
    sync: SyncConfig = field(default_factory=SyncConfig)
    log_level: str = "INFO"
    headless: bool = False


class MixSurfaceApp:
    """Main mixsurface application."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._ui: MixSurfaceUI | None = None
        self._native: Any = None
        self._last_printed: tuple[Any, ...] | None = None

    def _print_event(self, message: str) -> None:
        """Show a one-line message in the status bar, or on stdout when headless."""
        if self._ui is not None:
            self._ui.set_status(message)
        else:
            print(message, flush=True)  # noqa: T201

    def _on_snapshot(self, snapshot: SyncSnapshot) -> None:
        if self._ui is not None:
            self._ui.set_snapshot(snapshot)
            return
        # Headless: only print when something other than the position changed
        key = (snapshot.volume, snapshot.muted, snapshot.media.active, snapshot.media.title)
        if key != self._last_printed:
            self._last_printed = key
            self._print_event(snapshot.describe())

    def _on_error(self, error: TransientError) -> None:
        if self._ui is not None:
            self._ui.show_error(error)
        else:
            self._print_event(str(error))

    def _create_native(self) -> Any:
        options: dict[str, Any] = {}
        if self._config.backend == "linux" and self._config.player:
            options["player"] = self._config.player
        return create_native_layer(self._config.backend, **options)

    async def run(self) -> int:
        """Run until the user quits or a signal arrives. Returns the exit code."""
        config = self._config

        # Log lines would tear the live display; keep it to warnings unless debugging
        interactive = sys.stdin.isatty() and not config.headless
        if interactive and config.log_level != "DEBUG":
            logging.basicConfig(level=logging.WARNING)
        else:
            logging.basicConfig(level=getattr(logging, config.log_level))

        try:
            self._native = self._create_native()
        except (ImportError, OSError, NativeLayerUnavailable) as e:
            logger.error("Could not open %s backend: %s", config.backend, e)
            return 1

        sync = StateSynchronizer(self._native, self._native, config.sync)
        sync.add_listener(self._on_snapshot)
        sync.add_error_listener(self._on_error)

        if interactive:
            self._ui = MixSurfaceUI()
            self._ui.start()

        loop = asyncio.get_running_loop()
        try:
            try:
                await sync.start()
            except Exception:
                logger.exception("Failed to start the state synchronizer")
                return 1
            self._print_event(f"Using {config.backend} backend")

            if config.headless:
                keyboard_task = asyncio.create_task(asyncio.Event().wait())
            else:
                keyboard_task = asyncio.create_task(
                    keyboard_loop(sync, self._ui, self._print_event)
                )

            def signal_handler() -> None:
                logger.debug("Signal received, stopping input loop")
                keyboard_task.cancel()

            # No loop signal handlers on Windows
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(signal.SIGINT, signal_handler)
                loop.add_signal_handler(signal.SIGTERM, signal_handler)

            try:
                await keyboard_task
            except asyncio.CancelledError:
                logger.debug("Input loop cancelled")
            finally:
                with contextlib.suppress(NotImplementedError):
                    loop.remove_signal_handler(signal.SIGINT)
                    loop.remove_signal_handler(signal.SIGTERM)
        finally:
            await sync.aclose()
            close = getattr(self._native, "close", None)
            if close is not None:
                close()
            if self._ui is not None:
                self._ui.stop()
                self._ui = None

        return 0
