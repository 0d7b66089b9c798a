from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

# Why a worker stopped.
WorkerExit = Literal["quota_done", "stopped", "interrupted", "closed"]


@dataclass(slots=True)
class ThrottleStats:
    granted: int = 0
    acquisitions: int = 0
    waited_micros: int = 0
    interrupted: int = 0
    elapsed_ms: int = 0

    def observed_rate(self) -> float:
        if self.elapsed_ms <= 0:
            return 0.0
        return self.granted * 1000 / self.elapsed_ms

    def as_log_meta(self, **extra: Any) -> dict[str, Any]:
        meta = asdict(self)
        meta["waited_ms"] = self.waited_micros // 1000
        meta["observed_rate"] = round(self.observed_rate(), 2)
        meta.update(extra)
        return meta
