from __future__ import annotations

import threading
import time

from ..errors import LimiterClosedError, ShutdownRequested
from .base import (
    DEFAULT_MAX_BURST_SECONDS,
    MICROS_PER_SECOND,
    NANOS_PER_MICRO,
    Clock,
    LatchedLimiter,
    StopEvent,
    check_permits,
    check_positive_int,
)

# Virtual time is kept within a signed 64-bit range of microseconds.
_MAX_MICROS = 2**63 - 1


class AveragingRateLimiter(LatchedLimiter):
    """
    Smooth bursty token bucket:
      - permits_per_second: steady rate
      - max_burst_seconds: how much idle time may be banked as burst credit
    Reservations advance a virtual clock (next free moment). Each caller waits
    until the moment previous reservations already reached, so concurrent
    callers are charged in the order they took the lock.
    acquire() blocks outside the lock until its delay passes or close() is called.
    """

    def __init__(
        self,
        permits_per_second: int,
        max_burst_seconds: float = DEFAULT_MAX_BURST_SECONDS,
        clock: Clock = time.monotonic_ns,
        *,
        stop_event: StopEvent | None = None,
    ) -> None:
        if permits_per_second == 0:
            raise ValueError("Rate must not be zero")
        check_positive_int(permits_per_second, "Rate")
        if max_burst_seconds < 0:
            raise ValueError(f"Max burst seconds ({max_burst_seconds}) must not be negative")

        self._clock = clock
        self._start_nanos = clock()
        self._stable_interval_micros = MICROS_PER_SECOND / permits_per_second
        self._max_permits = max_burst_seconds * permits_per_second
        super().__init__(stop_event=stop_event)
        self._lock = threading.Lock()

        self._stored_permits = 0.0
        self._next_free_micros = 0

    @property
    def rate(self) -> float:
        return MICROS_PER_SECOND / self._stable_interval_micros

    @property
    def stable_interval_micros(self) -> float:
        return self._stable_interval_micros

    @property
    def max_permits(self) -> float:
        return self._max_permits

    @property
    def stored_permits(self) -> float:
        with self._lock:
            return self._stored_permits

    def acquire(self, permits: int = 1) -> int:
        """
        Reserve permits and block until they are paid for.
        Returns the microseconds waited (0 when capacity was already available).
        Raises ShutdownRequested if close() interrupts the wait.
        """
        if self._closed.is_set():
            raise LimiterClosedError()

        micros_to_wait = self.reserve(permits)
        if micros_to_wait > 0 and self._closed.wait(timeout=micros_to_wait / MICROS_PER_SECOND):
            raise ShutdownRequested()
        return micros_to_wait

    def reserve(self, permits: int = 1) -> int:
        """Reserve permits without waiting and return the delay in microseconds."""
        check_permits(permits)
        if self._closed.is_set():
            raise LimiterClosedError()

        with self._lock:
            now_micros = self._now_micros()
            moment_available = self._reserve_earliest_available(permits, now_micros)
        return max(moment_available - now_micros, 0)

    def _reserve_earliest_available(self, required_permits: int, now_micros: int) -> int:
        self._resync(now_micros)

        return_value = self._next_free_micros
        stored_to_spend = min(required_permits, self._stored_permits)
        fresh_permits = required_permits - stored_to_spend
        wait_micros = round(fresh_permits * self._stable_interval_micros)

        next_free_micros = self._next_free_micros + wait_micros
        if next_free_micros > _MAX_MICROS:
            raise OverflowError(f"Next free moment overflows: {next_free_micros}us")
        self._next_free_micros = next_free_micros

        self._stored_permits -= stored_to_spend
        return return_value

    def _resync(self, now_micros: int) -> None:
        # bank idle time as burst credit, capped at max_permits
        if now_micros > self._next_free_micros:
            new_permits = (now_micros - self._next_free_micros) / self._stable_interval_micros
            self._stored_permits = min(self._max_permits, self._stored_permits + new_permits)
            self._next_free_micros = now_micros

    def _now_micros(self) -> int:
        return (self._clock() - self._start_nanos) // NANOS_PER_MICRO

    def __repr__(self) -> str:
        return f"AveragingRateLimiter(stable_rate={self.rate:3.1f}qps)"
