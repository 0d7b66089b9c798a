import logging
import sys
from typing import Any

import structlog

from .settings import settings


def _shared_processors() -> list[Any]:
    # workers share one limiter, so every line carries the emitting thread
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.CallsiteParameterAdder(
            [structlog.processors.CallsiteParameter.THREAD_NAME]
        ),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderer(plain_text: bool) -> Any:
    if plain_text:
        return structlog.dev.ConsoleRenderer(timestamp_key="timestamp")
    return structlog.processors.JSONRenderer(ensure_ascii=False)


def setup_logging(level: str | None = None) -> None:
    """
    Route structlog and stdlib logging to stdout.
    JSON lines by default; LOG_PLAIN_TEXT=1 switches to the console renderer.
    `level` overrides LOG_LEVEL.
    """
    shared = _shared_processors()
    foreign_pre_chain = [*shared]
    processors = [structlog.stdlib.filter_by_level, *shared]

    if not settings.LOG_PLAIN_TEXT:
        foreign_pre_chain.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.format_exc_info)
    processors.append(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(settings.LOG_PLAIN_TEXT), foreign_pre_chain=foreign_pre_chain
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level or settings.LOG_LEVEL)
    root.addHandler(handler)
