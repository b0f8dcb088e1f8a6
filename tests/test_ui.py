"""Rendering tests for the terminal UI."""

import pytest
from rich.console import Console

from mixsurface.models import MediaSnapshot, SyncSnapshot, TransientError
from mixsurface.ui import MixSurfaceUI, format_time, render_bar


@pytest.mark.parametrize(
    ("seconds", "expected"), [(None, "--:--"), (0, "00:00"), (75.9, "01:15"), (3600, "60:00")]
)
def test_format_time(seconds, expected):
    assert format_time(seconds) == expected


def render(ui, console):
    console.print(ui.render())
    return console.export_text()


@pytest.fixture
def console():
    return Console(record=True, width=100, force_terminal=False)


def test_renders_snapshot(console):
    ui = MixSurfaceUI(console)
    media = MediaSnapshot(65.0, 200.0, "Night Drive", "file:///art.png")
    ui.set_snapshot(SyncSnapshot(volume=42, muted=False, media=media))
    text = render(ui, console)
    assert "Night Drive" in text
    assert "42%" in text
    assert "01:05 / 03:20" in text


def test_renders_unknown_state(console):
    ui = MixSurfaceUI(console)
    text = render(ui, console)
    assert "Nothing is playing" in text
    assert "unknown" in text
    assert "--:-- / --:--" in text


def test_renders_muted(console):
    ui = MixSurfaceUI(console)
    ui.set_snapshot(SyncSnapshot(volume=10, muted=True))
    assert "10% [MUTED]" in render(ui, console)


def test_error_replaces_status(console):
    ui = MixSurfaceUI(console)
    ui.set_status("Using simulated backend")
    assert "Using simulated backend" in render(ui, console)
    ui.show_error(TransientError("next_track", "no active media player"))
    assert "next_track failed: no active media player" in render(ui, console)


@pytest.mark.parametrize(
    ("fraction", "expected"), [(0.0, "[>---------]"), (0.5, "[=====>----]"), (1.0, "[==========]")]
)
def test_render_bar(fraction, expected):
    assert render_bar(fraction, 10).plain == expected
