from __future__ import annotations

import pytest

from resilience_core.circuit_breaker import CircuitBreakerRegistry
from tests.resilience_core.support.fakes import (
    FakeClock,
    FakeLogger,
    RecordingSleep,
)


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a manually advanced monotonic clock per test."""
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Provide an instant sleep that records requested delays."""
    return RecordingSleep()


@pytest.fixture
def registry(fake_clock: FakeClock) -> CircuitBreakerRegistry:
    """Provide a fresh breaker registry driven by the fake clock."""
    return CircuitBreakerRegistry(clock=fake_clock)
