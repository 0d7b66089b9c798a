from __future__ import annotations

import dataclasses
import threading
import time
from collections import Counter
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

import structlog

from ...errors import LimiterClosedError, ShutdownRequested
from ...limiters.base import RateLimiter, StopEvent
from .models import ThrottleStats, WorkerExit

log = structlog.get_logger("smooth-limiter.throttle")


class ThrottleRunner:
    """Worker pool that draws permits from one shared limiter and reports backpressure."""

    def __init__(
        self,
        limiter: RateLimiter,
        *,
        workers: int,
        total_permits: int,
        permits_per_acquire: int = 1,
        progress_seconds: float = 5.0,
    ) -> None:
        if workers < 1:
            raise ValueError(f"Workers ({workers}) must be positive")
        if total_permits < 0:
            raise ValueError(f"Total permits ({total_permits}) must not be negative")
        if permits_per_acquire < 1:
            raise ValueError(f"Permits per acquire ({permits_per_acquire}) must be positive")

        self.limiter = limiter
        self.workers = workers
        self.total_permits = total_permits
        self.permits_per_acquire = permits_per_acquire
        self.progress_seconds = progress_seconds

        self._lock = threading.Lock()
        self._remaining = total_permits
        self._stats = ThrottleStats()
        self._t0 = time.monotonic()

    def _claim_batch(self) -> int:
        with self._lock:
            if self.total_permits == 0:
                return self.permits_per_acquire
            batch = min(self.permits_per_acquire, self._remaining)
            self._remaining -= batch
            return batch

    def _record(self, batch: int, waited_micros: int) -> None:
        with self._lock:
            self._stats.granted += batch
            self._stats.acquisitions += 1
            self._stats.waited_micros += waited_micros

    def _snapshot(self) -> ThrottleStats:
        with self._lock:
            return dataclasses.replace(
                self._stats, elapsed_ms=int((time.monotonic() - self._t0) * 1000)
            )

    def _stop(self, stop_event: StopEvent) -> None:
        # close first: the stop event may be the limiter's own latch
        self.limiter.close()
        stop_event.set()

    def _work(self, stop_event: StopEvent) -> WorkerExit:
        while not stop_event.is_set():
            batch = self._claim_batch()
            if batch == 0:
                return "quota_done"
            try:
                waited_micros = self.limiter.acquire(batch)
            except ShutdownRequested:
                self._stop(stop_event)
                with self._lock:
                    self._stats.interrupted += 1
                return "interrupted"
            except LimiterClosedError:
                self._stop(stop_event)
                return "closed"
            self._record(batch, waited_micros)
        return "stopped"

    def run(self, stop_event: StopEvent) -> ThrottleStats:
        self._t0 = time.monotonic()
        last_progress_ts = self._t0
        exits: Counter[str] = Counter()

        log.info(
            "throttle_started",
            component="throttle",
            flow="throttle",
            meta={
                "limiter": repr(self.limiter),
                "workers": self.workers,
                "total_permits": self.total_permits,
                "permits_per_acquire": self.permits_per_acquire,
            },
        )

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="throttle") as pool:
            in_flight: set[Future[WorkerExit]] = {
                pool.submit(self._work, stop_event) for _ in range(self.workers)
            }
            while in_flight:
                done, in_flight = wait(in_flight, timeout=1.0, return_when=FIRST_COMPLETED)
                for fut in done:
                    try:
                        exits[fut.result()] += 1
                    except Exception:
                        log.exception(
                            "throttle_worker_failed",
                            component="throttle",
                            flow="throttle",
                            meta=self._snapshot().as_log_meta(),
                        )
                        # release workers still blocked in acquire()
                        self._stop(stop_event)
                        raise

                now = time.monotonic()
                if in_flight and now - last_progress_ts >= self.progress_seconds:
                    last_progress_ts = now
                    log.info(
                        "progress",
                        component="throttle",
                        flow="throttle",
                        meta=self._snapshot().as_log_meta(in_flight=len(in_flight)),
                    )

        stats = self._snapshot()
        log.info(
            "throttle_done",
            component="throttle",
            flow="throttle",
            meta=stats.as_log_meta(exits=dict(exits), stopped=stop_event.is_set()),
        )
        return stats
