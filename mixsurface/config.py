"""Configuration for the state synchronizer."""

from __future__ import annotations

from dataclasses import dataclass

from mixsurface.poller import DEFAULT_POLL_INTERVAL

# Quiet period after the last set_volume before the value is sent
DEFAULT_VOLUME_DEBOUNCE = 0.05


@dataclass(frozen=True)
class SyncConfig:
    """Tunables for StateSynchronizer.

    Attributes:
        poll_interval: Seconds between media poll ticks.
        optimistic_volume: When True, set_volume/set_mute update the snapshot
            immediately and a matching push is treated as a confirmation.
            When False (default), only pushes change the volume.
        volume_debounce: Seconds to wait for the user to stop changing the
            volume before the latest value is sent. 0 sends every value.
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL
    optimistic_volume: bool = False
    volume_debounce: float = DEFAULT_VOLUME_DEBOUNCE

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.volume_debounce < 0:
            raise ValueError(f"volume_debounce must not be negative, got {self.volume_debounce}")
