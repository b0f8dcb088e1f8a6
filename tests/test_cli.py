"""Tests for argument parsing and config building."""

import pytest

from mixsurface import cli
from mixsurface.config import DEFAULT_VOLUME_DEBOUNCE, SyncConfig
from mixsurface.poller import DEFAULT_POLL_INTERVAL


def test_defaults():
    config = cli.build_config(cli.parse_args([]))
    assert config.backend == "linux"
    assert config.player is None
    assert config.sync.poll_interval == DEFAULT_POLL_INTERVAL
    assert not config.sync.optimistic_volume
    assert config.sync.volume_debounce == pytest.approx(DEFAULT_VOLUME_DEBOUNCE)
    assert not config.headless


def test_options():
    args = cli.parse_args(
        [
            "--simulate",
            "--poll-interval",
            "0.5",
            "--optimistic-volume",
            "--volume-debounce-ms",
            "0",
            "--headless",
            "--log-level",
            "DEBUG",
        ]
    )
    config = cli.build_config(args)
    assert config.backend == "simulated"
    assert config.sync == SyncConfig(poll_interval=0.5, optimistic_volume=True, volume_debounce=0)
    assert config.headless
    assert config.log_level == "DEBUG"


def test_unknown_backend_is_rejected():
    with pytest.raises(SystemExit):
        cli.parse_args(["--backend", "coreaudio"])


@pytest.mark.parametrize(
    "argv", [["--poll-interval", "0"], ["--volume-debounce-ms", "-5"]]
)
def test_invalid_sync_options(argv, monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["mixsurface", *argv])
    assert cli.main() == 2
    assert "Invalid option" in capsys.readouterr().err


def test_sync_config_validation():
    with pytest.raises(ValueError):
        SyncConfig(poll_interval=-1)
    with pytest.raises(ValueError):
        SyncConfig(volume_debounce=-0.1)
