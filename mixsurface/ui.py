"""Rich-based terminal UI for mixsurface."""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Self

from rich.console import Console, ConsoleOptions, Group, RenderResult
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mixsurface.models import SyncSnapshot, TransientError

# Seconds a pressed key stays highlighted in the shortcut hints
SHORTCUT_HIGHLIGHT_DURATION = 0.15

# Seconds a failed intent stays in the status line
ERROR_DISPLAY_DURATION = 4.0

# (key label, highlight name, description)
Shortcut = tuple[str, str, str]

MEDIA_SHORTCUTS: tuple[Shortcut, ...] = (
    ("p", "prev", "prev"),
    ("<space>", "space", "play/pause"),
    ("n", "next", "next"),
    ("←/→", "seek", "seek"),
)
VOLUME_SHORTCUTS: tuple[Shortcut, ...] = (
    ("↑", "up", "up"),
    ("↓", "down", "down"),
    ("m", "mute", "mute"),
)


def format_time(seconds: float | None) -> str:
    """Format seconds as MM:SS, or --:-- when unknown."""
    if seconds is None:
        return "--:--"
    total = int(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"


def render_bar(fraction: float, width: int) -> Text:
    """Draw ``[===>---]`` filled to fraction (0..1) using width cells inside the brackets."""
    fraction = max(0.0, min(1.0, fraction))
    filled = int(width * fraction)
    bar = Text("[", style="dim")
    bar.append("=" * filled, style="green bold")
    if filled < width:
        bar.append(">", style="green bold")
        bar.append("-" * (width - filled - 1), style="dim")
    bar.append("]", style="dim")
    return bar


class _LiveView:
    """Renderable that asks the UI for a fresh layout on every refresh."""

    def __init__(self, ui: MixSurfaceUI) -> None:
        self._ui = ui

    def __rich_console__(self, console: Console, options: ConsoleOptions) -> RenderResult:
        yield self._ui.render()


@dataclass
class UIState:
    """Everything the screen shows."""

    snapshot: SyncSnapshot = field(default_factory=SyncSnapshot)
    status_message: str = "Starting..."
    error: TransientError | None = None
    error_time: float = 0.0
    pressed: str | None = None
    pressed_time: float = 0.0


class MixSurfaceUI:
    """Live terminal view of the synchronized snapshot."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._state = UIState()
        self._live: Live | None = None

    @property
    def state(self) -> UIState:
        return self._state

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def set_snapshot(self, snapshot: SyncSnapshot) -> None:
        """Show a new snapshot."""
        self._state.snapshot = snapshot
        self.refresh()

    def set_status(self, message: str) -> None:
        self._state.status_message = message
        self.refresh()

    def show_error(self, error: TransientError) -> None:
        """Show a failed intent in the status line for ERROR_DISPLAY_DURATION seconds."""
        self._state.error = error
        self._state.error_time = time.monotonic()
        self.refresh()

    def highlight_shortcut(self, shortcut: str) -> None:
        """Flash the hint for a key that was just pressed."""
        self._state.pressed = shortcut
        self._state.pressed_time = time.monotonic()
        self.refresh()

    def refresh(self) -> None:
        if self._live is not None:
            self._live.refresh()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _key_style(self, name: str) -> str:
        state = self._state
        recent = time.monotonic() - state.pressed_time < SHORTCUT_HIGHLIGHT_DURATION
        return "bold yellow reverse" if state.pressed == name and recent else "bold cyan"

    def _hints(self, shortcuts: Sequence[Shortcut]) -> Text:
        hints = Text()
        for index, (label, name, description) in enumerate(shortcuts):
            if index:
                hints.append("  ")
            hints.append(label, style=self._key_style(name))
            hints.append(f" {description}", style="dim")
        return hints

    def _now_playing(self) -> Panel:
        media = self._state.snapshot.media
        if media.active:
            details = Table.grid(padding=(0, 1))
            details.add_column(style="dim", width=8)
            details.add_column()
            details.add_row("Title:", Text(media.title or "Unknown title", style="bold white"))
            details.add_row("Artwork:", Text(media.cover_art or "none", style="dim"))
            body = Group(details, Text(), self._hints(MEDIA_SHORTCUTS))
        else:
            body = Group(Text(), Text("Nothing is playing", style="dim"), Text())
        return Panel(body, title="Now Playing", border_style="blue")

    def _volume(self) -> Panel:
        snapshot = self._state.snapshot
        if snapshot.volume is None:
            level = Text("unknown", style="yellow")
        elif snapshot.muted:
            level = Text(f"{snapshot.volume}% [MUTED]", style="red")
        else:
            level = Text(f"{snapshot.volume}%", style="cyan")
        body = Group(Text.assemble("Output:  ", level), Text(), self._hints(VOLUME_SHORTCUTS))
        return Panel(body, title="Volume", border_style="magenta")

    def _progress(self) -> Panel:
        media = self._state.snapshot.media
        if media.active:
            position, duration = media.position, media.duration
            fraction = position / duration
        else:
            position = duration = None
            fraction = 0.0

        clock = Text.assemble(
            (format_time(position), "cyan"), (" / ", "dim"), (format_time(duration), "cyan")
        )
        # Panel borders, padding and the gap before the clock
        bar_width = max(10, self._console.width - len(clock) - 11)

        row = Table.grid(expand=True)
        row.add_column()
        row.add_column(justify="right", no_wrap=True)
        row.add_row(render_bar(fraction, bar_width), clock)
        return Panel(row, title="Progress", border_style="green")

    def _status(self) -> Table:
        state = self._state
        if state.error is not None and time.monotonic() - state.error_time < ERROR_DISPLAY_DURATION:
            message = Text(f"  {state.error}", style="bold red")
        else:
            message = Text(f"  {state.status_message}", style="dim")

        line = Table.grid(expand=True)
        line.add_column(ratio=1)
        line.add_column(justify="right", width=8)
        line.add_row(message, self._hints((("q", "quit", "quit"),)))
        return line

    def render(self) -> Table:
        """Build the full screen for the current state."""
        panels = Table.grid(expand=True)
        panels.add_column(ratio=2)
        panels.add_column(ratio=1)
        panels.add_row(self._now_playing(), self._volume())

        screen = Table.grid()
        screen.add_column(width=self._console.width - 1)
        screen.add_row(panels)
        screen.add_row(self._progress())
        screen.add_row(self._status())
        return screen

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Take over the terminal and start the live display."""
        self._console.clear()
        self._live = Live(
            _LiveView(self),
            console=self._console,
            refresh_per_second=4,
            screen=True,
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(self, *_: object) -> None:
        self.stop()
