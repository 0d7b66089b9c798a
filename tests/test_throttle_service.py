from __future__ import annotations

import threading

import pytest

from smooth_limiter.core.throttle.models import ThrottleStats
from smooth_limiter.core.throttle.service import ThrottleRunner
from smooth_limiter.errors import LimiterClosedError, ShutdownRequested
from smooth_limiter.limiters import AveragingRateLimiter, PausedRateLimiter
from smooth_limiter.limiters import base as limiters_base
from tests.fakes import FakeClock, FakeLimiter, FakeLog


def _runner(limiter, **kwargs) -> ThrottleRunner:
    params = {"workers": 4, "total_permits": 0, "permits_per_acquire": 1, "progress_seconds": 1}
    params.update(kwargs)
    return ThrottleRunner(limiter, **params)


def test_runner_grants_exact_total_in_batches() -> None:
    limiter = FakeLimiter(waited_micros=7)
    stop_event = threading.Event()

    stats = _runner(limiter, total_permits=103, permits_per_acquire=10).run(stop_event)

    assert sum(limiter.calls) == 103
    assert sorted(limiter.calls) == [3] + [10] * 10
    assert stats.granted == 103
    assert stats.acquisitions == 11
    assert stats.waited_micros == 77
    assert stats.interrupted == 0
    assert stop_event.is_set() is False


def test_runner_reports_limiter_backpressure() -> None:
    limiter = AveragingRateLimiter(1000, 0.0, FakeClock())

    stats = _runner(limiter, total_permits=50).run(threading.Event())

    # frozen clock: the n-th reservation waits n stable intervals
    assert stats.granted == 50
    assert stats.waited_micros == sum(i * 1000 for i in range(50))
    assert stats.elapsed_ms >= 40


def test_runner_stops_when_shutdown_requested() -> None:
    limiter = FakeLimiter(raise_after=5, error=ShutdownRequested())
    stop_event = threading.Event()

    stats = _runner(limiter, workers=2).run(stop_event)

    assert stop_event.is_set()
    assert limiter.closed is True
    assert stats.granted == 5
    assert 1 <= stats.interrupted <= 2


def test_runner_stops_when_limiter_closed() -> None:
    limiter = FakeLimiter(raise_after=3, error=LimiterClosedError())
    stop_event = threading.Event()

    stats = _runner(limiter, workers=3).run(stop_event)

    assert stop_event.is_set()
    assert limiter.closed is True
    assert stats.granted == 3
    assert stats.interrupted == 0


def test_runner_reraises_unexpected_worker_errors() -> None:
    limiter = FakeLimiter(raise_after=2, error=RuntimeError("boom"))
    stop_event = threading.Event()

    with pytest.raises(RuntimeError):
        _runner(limiter, workers=2).run(stop_event)

    assert stop_event.is_set()
    assert limiter.closed is True


def test_runner_does_nothing_when_already_stopped() -> None:
    limiter = FakeLimiter()
    stop_event = threading.Event()
    stop_event.set()

    stats = _runner(limiter, total_permits=10).run(stop_event)

    assert limiter.calls == []
    assert stats.granted == 0


def test_runner_releases_workers_blocked_on_paused_limiter() -> None:
    stop_event = threading.Event()
    limiter = PausedRateLimiter(stop_event=stop_event)
    timer = threading.Timer(0.1, limiter.close)
    timer.start()

    stats = _runner(limiter, workers=3).run(stop_event)
    timer.join()

    assert stats.granted == 0
    assert stats.interrupted == 3


@pytest.mark.parametrize(
    "kwargs",
    [{"workers": 0}, {"total_permits": -1}, {"permits_per_acquire": 0}],
)
def test_runner_validates_arguments(kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        _runner(FakeLimiter(), **kwargs)


def test_stats_rate_and_log_meta() -> None:
    stats = ThrottleStats(granted=500, acquisitions=50, waited_micros=1_500_000, elapsed_ms=2000)

    assert stats.observed_rate() == 250.0
    assert ThrottleStats().observed_rate() == 0.0

    meta = stats.as_log_meta(in_flight=2)
    assert meta["waited_ms"] == 1500
    assert meta["observed_rate"] == 250.0
    assert meta["in_flight"] == 2
    assert meta["granted"] == 500


def test_runner_closes_limiter_sharing_its_stop_event(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_log = FakeLog()
    monkeypatch.setattr(limiters_base, "log", fake_log)
    stop_event = threading.Event()
    limiter = AveragingRateLimiter(1000, 0.0, FakeClock(), stop_event=stop_event)

    runner = _runner(limiter, workers=2)
    runner._stop(stop_event)

    assert stop_event.is_set()
    assert limiter.closed is True
    assert fake_log.events == ["limiter_closed"]
