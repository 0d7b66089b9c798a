import time

from .averaging import AveragingRateLimiter
from .base import (
    DEFAULT_MAX_BURST_SECONDS,
    PAUSED,
    UNLIMITED,
    Clock,
    RateLimiter,
    StopEvent,
)
from .simple import PausedRateLimiter, UnlimitedRateLimiter


def create_rate_limiter(
    permits_per_second: int,
    max_burst_seconds: float = DEFAULT_MAX_BURST_SECONDS,
    *,
    clock: Clock = time.monotonic_ns,
    stop_event: StopEvent | None = None,
) -> RateLimiter:
    """
    Build the limiter matching a configured rate.
    UNLIMITED (-1) never waits, PAUSED (0) blocks until closed.
    """
    if permits_per_second == UNLIMITED:
        return UnlimitedRateLimiter(stop_event=stop_event)
    if permits_per_second == PAUSED:
        return PausedRateLimiter(stop_event=stop_event)
    if permits_per_second < 0:
        raise ValueError(
            f"Rate ({permits_per_second}) must be positive, UNLIMITED ({UNLIMITED}) "
            f"or PAUSED ({PAUSED})"
        )
    return AveragingRateLimiter(
        permits_per_second, max_burst_seconds, clock, stop_event=stop_event
    )


__all__ = [
    "DEFAULT_MAX_BURST_SECONDS",
    "PAUSED",
    "UNLIMITED",
    "AveragingRateLimiter",
    "PausedRateLimiter",
    "RateLimiter",
    "UnlimitedRateLimiter",
    "create_rate_limiter",
]
