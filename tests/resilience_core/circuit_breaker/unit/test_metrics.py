from __future__ import annotations

import pytest

from resilience_core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
    LoggingBreakerListener,
)
from tests.resilience_core.support.fakes import FakeClock, FakeLogger

pytestmark = pytest.mark.asyncio


async def test_logging_listener_warns_on_open_and_logs_recovery(
    fake_logger: FakeLogger,
    fake_clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(
        "agent-server",
        config=CircuitBreakerConfig(
            failure_threshold=1,
            reset_timeout=1.0,
            success_threshold=1,
        ),
        listeners=[LoggingBreakerListener(fake_logger)],
        clock=fake_clock,
    )

    async def _fail() -> None:
        raise ConnectionError("refused")

    async def _ok() -> str:
        return "ok"

    with pytest.raises(ConnectionError):
        await breaker.execute(_fail)
    with pytest.raises(CircuitOpenError):
        await breaker.execute(_ok)
    fake_clock.advance(1.0)
    await breaker.execute(_ok)

    assert fake_logger.events == [
        "circuit_breaker.call_failed",
        "circuit_breaker.opened",
        "circuit_breaker.rejected",
        "circuit_breaker.state_change",
        "circuit_breaker.state_change",
    ]
    level, _, fields = fake_logger.calls[1]
    assert level == "warning"
    assert fields == {
        "breaker": "agent-server",
        "old_state": "closed",
        "new_state": "open",
    }
    assert fake_logger.calls[0][2]["error_type"] == "ConnectionError"
    assert fake_logger.calls[-1][2]["new_state"] == str(CircuitState.CLOSED)


async def test_logging_listener_defaults_to_structlog_logger() -> None:
    listener = LoggingBreakerListener()

    listener.on_state_change("svc", CircuitState.OPEN, CircuitState.HALF_OPEN)
    listener.on_call_succeeded("svc", 0.1)
