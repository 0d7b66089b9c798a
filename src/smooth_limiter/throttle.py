import os
import signal
import threading

import structlog

from .core.throttle.service import ThrottleRunner
from .limiters import RateLimiter, create_rate_limiter
from .logging import setup_logging
from .settings import settings

log = structlog.get_logger("smooth-limiter.throttle")


def _install_signal_handlers(limiter: RateLimiter, stop_event: threading.Event) -> None:
    def _handler(signum: int, _frame) -> None:
        if not stop_event.is_set():
            log.warning(
                "shutdown_signal", component="throttle", flow="shutdown", meta={"signal": signum}
            )
        limiter.close()
        stop_event.set()

    signal.signal(signal.SIGTERM, _handler)
    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    setup_logging()

    stop_event = threading.Event()
    log.info(
        "startup",
        component="throttle",
        flow="startup",
        meta={"pid": os.getpid(), "unbounded": settings.is_unbounded_run()},
    )
    log.info("config", component="throttle", flow="config", meta=settings.safe_dump())

    limiter = create_rate_limiter(
        settings.LIMITER_PERMITS_PER_SECOND,
        settings.LIMITER_MAX_BURST_SECONDS,
        stop_event=stop_event,
    )
    _install_signal_handlers(limiter, stop_event)

    runner = ThrottleRunner(
        limiter,
        workers=settings.THROTTLE_WORKERS,
        total_permits=settings.THROTTLE_TOTAL_PERMITS,
        permits_per_acquire=settings.THROTTLE_PERMITS_PER_ACQUIRE,
        progress_seconds=settings.THROTTLE_PROGRESS_SECONDS,
    )
    try:
        stats = runner.run(stop_event)
        stopped = stop_event.is_set()
    finally:
        limiter.close()

    log.info(
        "shutdown",
        component="throttle",
        flow="shutdown",
        meta=stats.as_log_meta(stopped=stopped),
    )


if __name__ == "__main__":
    main()
