from __future__ import annotations

import pytest

from resilience_core.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitOpenError,
    CircuitState,
)
from tests.resilience_core.support.fakes import FakeClock, RecordingListener

pytestmark = pytest.mark.asyncio


async def _fail() -> None:
    raise RuntimeError("down")


async def test_get_returns_same_instance_for_same_name(
    registry: CircuitBreakerRegistry,
) -> None:
    first = registry.get("service-a")
    second = registry.get("service-a")

    assert first is second
    assert first.name == "service-a"


async def test_get_first_config_wins(registry: CircuitBreakerRegistry) -> None:
    first = registry.get("service-a", CircuitBreakerConfig(failure_threshold=1))
    second = registry.get("service-a", CircuitBreakerConfig(failure_threshold=9))

    assert second is first
    assert second.config.failure_threshold == 1


async def test_get_without_config_uses_defaults(
    registry: CircuitBreakerRegistry,
) -> None:
    assert registry.get("service-a").config == CircuitBreakerConfig()


async def test_breakers_are_independent(registry: CircuitBreakerRegistry) -> None:
    svc_a = registry.get("svcA", CircuitBreakerConfig(failure_threshold=2))
    svc_b = registry.get("svcB", CircuitBreakerConfig(failure_threshold=2))

    for _ in range(2):
        with pytest.raises(RuntimeError):
            await svc_a.execute(_fail)
    with pytest.raises(CircuitOpenError):
        await svc_a.execute(_fail)

    assert svc_a.get_stats().state == CircuitState.OPEN
    b_stats = svc_b.get_stats()
    assert b_stats.state == CircuitState.CLOSED
    assert b_stats.total_failures == 0
    assert b_stats.total_requests == 0


async def test_get_all_lists_registered_breakers(
    registry: CircuitBreakerRegistry,
) -> None:
    registry.get("service-a")
    registry.get("service-b")

    everything = registry.get_all()

    assert len(everything) == 2
    assert set(everything) == {"service-a", "service-b"}
    with pytest.raises(TypeError):
        everything["service-c"] = registry.get("service-a")  # type: ignore[index]


async def test_get_all_is_a_snapshot_safe_to_iterate_while_registering(
    registry: CircuitBreakerRegistry,
) -> None:
    registry.get("service-a")
    registry.get("service-b")

    everything = registry.get_all()
    for name in everything:
        registry.get(f"{name}-replica")

    assert set(everything) == {"service-a", "service-b"}
    assert set(registry.get_all()) == {
        "service-a",
        "service-b",
        "service-a-replica",
        "service-b-replica",
    }


async def test_remove_and_clear(registry: CircuitBreakerRegistry) -> None:
    original = registry.get("service-a")
    registry.get("service-b")

    assert registry.remove("service-a") is True
    assert registry.remove("service-a") is False
    assert "service-a" not in registry.get_all()
    assert registry.get("service-a") is not original

    registry.clear()
    assert len(registry.get_all()) == 0


async def test_stats_snapshots_every_breaker(registry: CircuitBreakerRegistry) -> None:
    breaker = registry.get("service-a")
    registry.get("service-b")
    with pytest.raises(RuntimeError):
        await breaker.execute(_fail)

    stats = registry.stats()

    assert stats["service-a"].total_failures == 1
    assert stats["service-b"].total_failures == 0


async def test_created_breakers_share_clock_and_listeners() -> None:
    clock = FakeClock()
    listener = RecordingListener()
    registry = CircuitBreakerRegistry(listeners=[listener], clock=clock)
    breaker = registry.get("service-a", CircuitBreakerConfig(failure_threshold=1))

    with pytest.raises(RuntimeError):
        await breaker.execute(_fail)
    assert breaker.is_available() is False

    clock.advance(30.0)
    assert breaker.is_available() is True
    assert (
        "state",
        ("service-a", CircuitState.CLOSED, CircuitState.OPEN),
    ) in listener.events
