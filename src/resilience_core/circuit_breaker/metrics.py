"""Observability hooks for circuit breakers."""

from typing import Protocol

import structlog

from resilience_core.circuit_breaker.state import CircuitState
from resilience_core.logging import StructuredLogger, log_info, log_warning


class BreakerListener(Protocol):
    """Listener protocol for circuit breaker events.

    Hooks run synchronously after the breaker has released its state lock.
    Exceptions raised by a hook are logged and suppressed.
    """

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Handle circuit state transitions."""

    def on_call_rejected(self, name: str, retry_after: float) -> None:
        """Handle call rejection while the circuit is open."""

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        """Handle successful protected call completion."""

    def on_call_failed(self, name: str, exc: Exception, elapsed: float) -> None:
        """Handle failed protected call completion."""


class LoggingBreakerListener:
    """Breaker listener that writes transitions and rejections to structlog."""

    def __init__(self, logger: StructuredLogger | None = None) -> None:
        self._logger: StructuredLogger = (
            structlog.stdlib.get_logger(__name__) if logger is None else logger
        )

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Log every transition; opening the circuit is a warning."""
        if new == CircuitState.OPEN:
            log_warning(
                self._logger,
                "circuit_breaker.opened",
                breaker=name,
                old_state=str(old),
                new_state=str(new),
            )
            return
        log_info(
            self._logger,
            "circuit_breaker.state_change",
            breaker=name,
            old_state=str(old),
            new_state=str(new),
        )

    def on_call_rejected(self, name: str, retry_after: float) -> None:
        """Log fast-failed calls."""
        log_info(
            self._logger,
            "circuit_breaker.rejected",
            breaker=name,
            retry_after=retry_after,
        )

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        """No-op for this listener."""
        _ = (name, elapsed)

    def on_call_failed(self, name: str, exc: Exception, elapsed: float) -> None:
        """Log the failure type only."""
        log_info(
            self._logger,
            "circuit_breaker.call_failed",
            breaker=name,
            error_type=exc.__class__.__name__,
            elapsed=elapsed,
        )
