from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass(slots=True)
class FakeClock:
    """Monotonic nanosecond clock that only moves when told to."""

    nanos: int = 0
    calls: int = 0

    def __call__(self) -> int:
        self.calls += 1
        return self.nanos

    def advance(self, *, seconds: float = 0.0, micros: int = 0) -> None:
        self.nanos += int(seconds * 1_000_000_000) + micros * 1_000


@dataclass(slots=True)
class FakeLimiter:
    """Records acquisitions; optionally raises after a number of calls."""

    waited_micros: int = 0
    raise_after: int | None = None
    error: Exception | None = None
    calls: list[int] = field(default_factory=list)
    closed: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock)

    def acquire(self, permits: int = 1) -> int:
        with self.lock:
            if self.raise_after is not None and len(self.calls) >= self.raise_after:
                assert self.error is not None
                raise self.error
            self.calls.append(permits)
        return self.waited_micros

    def close(self) -> None:
        self.closed = True


@dataclass(slots=True)
class FakeLog:
    """Stands in for a module-level structlog logger and records event names."""

    events: list[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def _record(self, event: str, **_kwargs) -> None:
        with self.lock:
            self.events.append(event)

    def info(self, event: str, **kwargs) -> None:
        self._record(event, **kwargs)

    def warning(self, event: str, **kwargs) -> None:
        self._record(event, **kwargs)
