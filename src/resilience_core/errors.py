"""Shared error types for resilience_core."""

from __future__ import annotations

DEFAULT_TIMEOUT_MESSAGE = "Operation timed out"


class ResilienceError(Exception):
    """Base exception for every error raised by resilience_core."""


class OperationTimeoutError(ResilienceError, TimeoutError):
    """Raised when a guarded operation does not settle before its deadline.

    The guarded operation may still be running when this is raised; any side
    effects it performs afterwards are not retracted.

    Attributes:
        timeout: Deadline in seconds that expired, if known.
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        self.timeout = timeout
        super().__init__(DEFAULT_TIMEOUT_MESSAGE if message is None else message)


class OperationAbortedError(ResilienceError):
    """Default abort reason for an ``AbortController`` aborted without one."""

    def __init__(self, message: str = "Operation aborted") -> None:
        super().__init__(message)


class TransientError(RuntimeError):
    """Generic retry-safe transient dependency failure."""
