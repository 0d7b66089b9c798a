from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol, Self

import structlog

from ..errors import LimiterClosedError

log = structlog.get_logger("smooth-limiter.limiter")

# Monotonic time source returning nanoseconds.
Clock = Callable[[], int]

UNLIMITED = -1
PAUSED = 0

DEFAULT_MAX_BURST_SECONDS = 1.0

MICROS_PER_SECOND = 1_000_000
NANOS_PER_MICRO = 1_000


class RateLimiter(Protocol):
    """Rate limiter interface shared by all limiter kinds."""

    def acquire(self, permits: int = 1) -> int: ...

    def close(self) -> None: ...


class StopEvent(Protocol):
    """Stop signal interface shared across services."""

    def is_set(self) -> bool: ...

    def set(self) -> None: ...

    def wait(self, timeout: float | None = None) -> bool: ...


def check_positive_int(value: int, what: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} ({value!r}) must be an integer")
    if value <= 0:
        raise ValueError(f"{what} ({value}) must be positive")


def check_permits(permits: int) -> None:
    check_positive_int(permits, "Requested permits")


class LatchedLimiter:
    """One-way close latch shared by limiter kinds; close() wakes every waiter."""

    def __init__(self, *, stop_event: StopEvent | None = None) -> None:
        self._closed = stop_event if stop_event is not None else threading.Event()
        self._close_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def _check_open(self, permits: int) -> None:
        if self._closed.is_set():
            raise LimiterClosedError()
        check_permits(permits)

    def close(self) -> None:
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()
        log.info(
            "limiter_closed",
            component="limiter",
            flow="shutdown",
            meta={"limiter": repr(self)},
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
