"""Named circuit breaker registry.

Build one registry at service bootstrap and pass it to every call site. All
call sites that ask for the same dependency name then share one breaker.
"""

import threading
from collections.abc import Mapping, Sequence
from types import MappingProxyType

from resilience_core.circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    Clock,
)
from resilience_core.circuit_breaker.metrics import BreakerListener
from resilience_core.circuit_breaker.state import BreakerStats


class CircuitBreakerRegistry:
    """Lazily create and hold one ``CircuitBreaker`` per dependency name."""

    def __init__(
        self,
        *,
        listeners: Sequence[BreakerListener] | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Create an empty registry.

        Args:
            listeners: Listener hooks attached to every breaker created here.
            clock: Monotonic seconds source shared by created breakers.
        """
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(
        self,
        name: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it on first use.

        ``config`` only applies when the breaker is created; later calls with
        a different config get the original instance unchanged.
        """
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(
                    name,
                    config=config,
                    listeners=self._listeners,
                    clock=self._clock,
                )
                self._breakers[name] = breaker
            return breaker

    def get_all(self) -> Mapping[str, CircuitBreaker]:
        """Return a read-only snapshot of registered breakers.

        Breakers registered or removed afterwards are not reflected.
        """
        with self._lock:
            return MappingProxyType(dict(self._breakers))

    def stats(self) -> dict[str, BreakerStats]:
        """Snapshot stats for every registered breaker."""
        with self._lock:
            breakers = list(self._breakers.items())
        return {name: breaker.get_stats() for name, breaker in breakers}

    def remove(self, name: str) -> bool:
        """Drop the breaker for ``name``. Returns whether one was registered."""
        with self._lock:
            return self._breakers.pop(name, None) is not None

    def clear(self) -> None:
        """Drop every registered breaker."""
        with self._lock:
            self._breakers.clear()
