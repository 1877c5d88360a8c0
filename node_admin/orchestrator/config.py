#node_admin\orchestrator\config.py
from dataclasses import dataclass


@dataclass(frozen=True)
class SchedulerConfig:
    tick_interval_seconds: float = 30.0
    jitter: float = 0.2

    # Backoff after failed ticks: 10s, 30s, 90s, ... capped
    backoff_initial_seconds: float = 10.0
    backoff_multiplier: float = 3.0
    backoff_max_seconds: float = 300.0

    refresh_interval_seconds: float = 60.0

    # Force a full inspection every N ticks even when the spec is unchanged
    full_reconcile_every: int = 10

    @classmethod
    def from_settings(cls, settings) -> "SchedulerConfig":
        return cls(
            tick_interval_seconds=settings.tick_interval,
            jitter=settings.tick_jitter,
            backoff_initial_seconds=settings.backoff_initial,
            backoff_multiplier=settings.backoff_multiplier,
            backoff_max_seconds=settings.backoff_max,
            refresh_interval_seconds=settings.refresh_interval,
            full_reconcile_every=settings.full_reconcile_every,
        )
