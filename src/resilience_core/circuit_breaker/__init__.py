"""Framework-agnostic async circuit breaker.

This package implements the circuit breaker pattern from *Release It!*.

Key behavior notes:
  - ``CLOSED`` opens after ``failure_threshold`` consecutive failures. Any
    success resets the consecutive failure count.
  - ``OPEN`` rejects calls with ``CircuitOpenError`` until ``reset_timeout``
    has elapsed. The next ``execute()`` after that moves to ``HALF_OPEN`` and
    runs the call as a probe.
  - ``HALF_OPEN`` closes after ``success_threshold`` successful probes and
    reopens on the first failed one.
  - Exceptions raised by the protected call are always re-raised unchanged.
"""

from resilience_core.circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
)
from resilience_core.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
)
from resilience_core.circuit_breaker.metrics import (
    BreakerListener,
    LoggingBreakerListener,
)
from resilience_core.circuit_breaker.registry import CircuitBreakerRegistry
from resilience_core.circuit_breaker.state import BreakerStats, CircuitState

__all__ = [
    "BreakerListener",
    "BreakerStats",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "CircuitState",
    "LoggingBreakerListener",
]
