"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerStats:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Attributes:
        state: Current breaker state.
        failures: Consecutive failures since the last success.
        successes: Successful probes recorded in the current ``HALF_OPEN`` phase.
        last_failure: Timestamp of the last recorded failure, if any.
        last_success: Timestamp of the last recorded success, if any.
        total_requests: Lifetime count of ``execute()`` calls, rejected included.
        total_failures: Lifetime count of recorded failures.
    """

    state: CircuitState
    failures: int
    successes: int
    last_failure: datetime | None
    last_success: datetime | None
    total_requests: int
    total_failures: int
