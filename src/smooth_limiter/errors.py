class ShutdownRequested(Exception):
    """Raised when a limiter is closed while a caller is waiting for permits."""


class LimiterClosedError(RuntimeError):
    """Raised when permits are requested from a limiter that is already closed."""

    def __init__(self, message: str = "This limiter is already closed") -> None:
        super().__init__(message)
