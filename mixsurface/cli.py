"""Command-line interface for running the mixsurface control surface."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from mixsurface.app import AppConfig, MixSurfaceApp
from mixsurface.config import DEFAULT_VOLUME_DEBOUNCE, SyncConfig
from mixsurface.native import BACKENDS
from mixsurface.poller import DEFAULT_POLL_INTERVAL


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for mixsurface."""
    parser = argparse.ArgumentParser(description="Volume and media control surface")
    parser.add_argument(
        "--backend",
        default="linux",
        choices=BACKENDS,
        help="Native control layer to use (default: linux)",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Shortcut for --backend simulated",
    )
    parser.add_argument(
        "--player",
        default=None,
        help="MPRIS player name to control (linux backend; defaults to the active player)",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=DEFAULT_POLL_INTERVAL,
        help="Seconds between media polls",
    )
    parser.add_argument(
        "--optimistic-volume",
        action="store_true",
        help="Show volume changes immediately instead of waiting for the mixer to confirm",
    )
    parser.add_argument(
        "--volume-debounce-ms",
        type=float,
        default=DEFAULT_VOLUME_DEBOUNCE * 1000,
        help="Quiet period before a volume change is sent (0 sends every step)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level to use",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the interactive terminal UI",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> AppConfig:
    """Create the application config from parsed arguments.

    Raises:
        ValueError: If a sync option is out of range.
    """
    return AppConfig(
        backend="simulated" if args.simulate else args.backend,
        player=args.player,
        sync=SyncConfig(
            poll_interval=args.poll_interval,
            optimistic_volume=args.optimistic_volume,
            volume_debounce=args.volume_debounce_ms / 1000,
        ),
        log_level=args.log_level,
        headless=args.headless,
    )


def main() -> int:
    """Run the CLI."""
    args = parse_args(sys.argv[1:])
    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Invalid option: {e}", file=sys.stderr)  # noqa: T201
        return 2

    app = MixSurfaceApp(config)
    return asyncio.run(app.run())


if __name__ == "__main__":
    raise SystemExit(main())
