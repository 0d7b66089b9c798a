from __future__ import annotations

from ..errors import ShutdownRequested
from .base import LatchedLimiter


class UnlimitedRateLimiter(LatchedLimiter):
    """Grants every request immediately."""

    def acquire(self, permits: int = 1) -> int:
        self._check_open(permits)
        return 0

    def reserve(self, permits: int = 1) -> int:
        self._check_open(permits)
        return 0

    def __repr__(self) -> str:
        return "UnlimitedRateLimiter()"


class PausedRateLimiter(LatchedLimiter):
    """Never grants permits; acquire() blocks until close()."""

    def acquire(self, permits: int = 1) -> int:
        self._check_open(permits)
        self._closed.wait()
        raise ShutdownRequested()

    def __repr__(self) -> str:
        return "PausedRateLimiter()"
