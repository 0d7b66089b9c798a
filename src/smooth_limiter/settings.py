from __future__ import annotations

from typing import Any, Literal

import structlog
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LogLevel = Literal["CRITICAL", "FATAL", "ERROR", "WARN", "WARNING", "INFO", "DEBUG", "NOTSET"]


class Settings(BaseSettings):
    """
    Typed application settings loaded from environment variables.
    LIMITER_PERMITS_PER_SECOND accepts -1 (unlimited) and 0 (paused).
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", env_ignore_empty=True)

    # Limiter
    LIMITER_PERMITS_PER_SECOND: int = Field(default=100, ge=-1)
    LIMITER_MAX_BURST_SECONDS: float = Field(default=1.0, ge=0.0, le=3600.0)

    # Throttle runner
    THROTTLE_WORKERS: int = Field(default=4, ge=1, le=64)
    THROTTLE_TOTAL_PERMITS: int = Field(default=1000, ge=0)
    THROTTLE_PERMITS_PER_ACQUIRE: int = Field(default=1, ge=1, le=1_000_000)

    # Throttle progress logging
    THROTTLE_PROGRESS_SECONDS: int = Field(default=5, ge=1, le=3600)

    # Logging
    LOG_LEVEL: _LogLevel = "INFO"
    LOG_PLAIN_TEXT: bool = False

    @model_validator(mode="after")
    def _validate_throttle_batch(self) -> Settings:
        if (
            self.THROTTLE_TOTAL_PERMITS > 0
            and self.THROTTLE_PERMITS_PER_ACQUIRE > self.THROTTLE_TOTAL_PERMITS
        ):
            raise ValueError(
                "THROTTLE_PERMITS_PER_ACQUIRE must not exceed THROTTLE_TOTAL_PERMITS "
                "(set THROTTLE_TOTAL_PERMITS=0 to run until stopped)"
            )
        return self

    def is_unbounded_run(self) -> bool:
        return self.THROTTLE_TOTAL_PERMITS == 0

    def safe_dump(self) -> dict[str, Any]:
        return self.model_dump()


try:
    settings = Settings()
except Exception as exc:
    structlog.get_logger("smooth-limiter.settings").error(
        "settings_load_failed",
        component="settings",
        flow="startup",
        meta={"error_type": type(exc).__name__, "error": str(exc)},
    )
    raise
