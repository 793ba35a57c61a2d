"""Core circuit breaker implementation."""

import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import ParamSpec, TypeVar

import structlog

from resilience_core.circuit_breaker.exceptions import CircuitOpenError
from resilience_core.circuit_breaker.metrics import BreakerListener
from resilience_core.circuit_breaker.state import BreakerStats, CircuitState
from resilience_core.logging import log_exception

T = TypeVar("T")
P = ParamSpec("P")

Clock = Callable[[], float]
StateChangeCallback = Callable[[CircuitState, CircuitState], None]
_Transitions = list[tuple[CircuitState, CircuitState]]

_logger = structlog.stdlib.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Consecutive failures required while ``CLOSED``
            before opening.
        reset_timeout: Seconds to wait while ``OPEN`` before allowing a probe.
        success_threshold: Successful probes required while ``HALF_OPEN``
            before closing.
        expected_exceptions: Exceptions that count as failures.
        excluded_exceptions: Exceptions that must not count as failures.
    """

    failure_threshold: int = 5
    reset_timeout: float = 30.0
    success_threshold: int = 2
    expected_exceptions: tuple[type[Exception], ...] = (Exception,)
    excluded_exceptions: tuple[type[Exception], ...] = ()

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")
        if self.reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")


class CircuitBreaker:
    """Stateful proxy around a dangerous async operation.

    State transitions happen inside a short synchronous critical section that
    never spans an ``await``, so concurrent ``execute()`` calls from the event
    loop or from other threads serialize their updates. Observers run after
    the lock is released, in transition order.
    """

    def __init__(
        self,
        name: str,
        *,
        config: CircuitBreakerConfig | None = None,
        on_state_change: StateChangeCallback | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Build a circuit breaker with optional observers.

        Args:
            name: Dependency name used in errors and logs.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
            on_state_change: Optional ``(old, new)`` callback for transitions.
            listeners: Optional listener hooks for breaker events.
            clock: Monotonic seconds source. Defaults to ``time.monotonic``.
        """
        self.name = name
        self.config = CircuitBreakerConfig() if config is None else config
        self._on_state_change = on_state_change
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._clock: Clock = time.monotonic if clock is None else clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_at: datetime | None = None
        self._last_success_at: datetime | None = None
        self._next_attempt_at: float | None = None
        self._total_requests = 0
        self._total_failures = 0

    @property
    def state(self) -> CircuitState:
        """Current breaker state."""
        return self._state

    @property
    def next_attempt_at(self) -> float | None:
        """Clock reading at which an ``OPEN`` breaker admits a probe."""
        return self._next_attempt_at

    async def execute(
        self,
        func: Callable[P, Awaitable[T]],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke an async callable under circuit breaker protection.

        Args:
            func: Dangerous async callable to execute.
            *args: Positional arguments forwarded to ``func``.
            **kwargs: Keyword arguments forwarded to ``func``.

        Returns:
            The result of ``func`` when allowed and successful.

        Raises:
            CircuitOpenError: When the circuit is open and the call is rejected.
            Exception: The original exception from ``func`` when it is attempted
                and fails.
        """
        transitions: _Transitions = []
        with self._lock:
            self._total_requests += 1
            retry_after = self._admit(transitions)
        self._emit_state_changes(transitions)

        if retry_after is not None:
            self._emit_call_rejected(retry_after)
            raise CircuitOpenError(self.name, retry_after=retry_after)

        start = time.monotonic()
        try:
            result = await func(*args, **kwargs)
        except self.config.excluded_exceptions:
            raise
        except self.config.expected_exceptions as exc:
            elapsed = max(time.monotonic() - start, 0.0)
            transitions = []
            with self._lock:
                self._on_failure(transitions)
            self._emit_call_failed(exc, elapsed)
            self._emit_state_changes(transitions)
            raise

        elapsed = max(time.monotonic() - start, 0.0)
        transitions = []
        with self._lock:
            self._on_success(transitions)
        self._emit_state_changes(transitions)
        self._emit_call_succeeded(elapsed)
        return result

    def force_state(self, state: CircuitState) -> None:
        """Force the breaker into ``state``. Intended for admin tooling and tests.

        Forcing ``OPEN`` restarts the cool-down window. Forcing ``CLOSED``
        also clears the failure/success counters and the probe deadline.
        """
        transitions: _Transitions = []
        with self._lock:
            self._set_state(state, transitions)
            if state == CircuitState.OPEN:
                self._next_attempt_at = self._clock() + self.config.reset_timeout
            elif state == CircuitState.CLOSED:
                self._failure_count = 0
                self._success_count = 0
                self._next_attempt_at = None
        self._emit_state_changes(transitions)

    def get_stats(self) -> BreakerStats:
        """Return an immutable snapshot of breaker counters."""
        with self._lock:
            return BreakerStats(
                state=self._state,
                failures=self._failure_count,
                successes=self._success_count,
                last_failure=self._last_failure_at,
                last_success=self._last_success_at,
                total_requests=self._total_requests,
                total_failures=self._total_failures,
            )

    def is_available(self) -> bool:
        """Predict whether ``execute()`` would attempt the call right now.

        Never changes state; only ``execute()`` moves ``OPEN`` to ``HALF_OPEN``.
        """
        with self._lock:
            if self._state != CircuitState.OPEN:
                return True
            return self._probe_due(self._clock())

    def _probe_due(self, now: float) -> bool:
        return self._next_attempt_at is not None and now >= self._next_attempt_at

    def _admit(self, transitions: _Transitions) -> float | None:
        """Return ``retry_after`` when the call must be rejected, else ``None``."""
        if self._state != CircuitState.OPEN:
            return None

        now = self._clock()
        if self._probe_due(now):
            self._set_state(CircuitState.HALF_OPEN, transitions)
            self._success_count = 0
            return None

        if self._next_attempt_at is None:
            return 0.0
        return max(self._next_attempt_at - now, 0.0)

    def _on_success(self, transitions: _Transitions) -> None:
        self._last_success_at = _utcnow()
        self._failure_count = 0

        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.config.success_threshold:
                self._set_state(CircuitState.CLOSED, transitions)

    def _on_failure(self, transitions: _Transitions) -> None:
        self._last_failure_at = _utcnow()
        self._failure_count += 1
        self._total_failures += 1

        if self._state == CircuitState.HALF_OPEN:
            self._open(transitions)
        elif (
            self._state == CircuitState.CLOSED
            and self._failure_count >= self.config.failure_threshold
        ):
            self._open(transitions)

    def _open(self, transitions: _Transitions) -> None:
        self._set_state(CircuitState.OPEN, transitions)
        self._next_attempt_at = self._clock() + self.config.reset_timeout

    def _set_state(self, new: CircuitState, transitions: _Transitions) -> None:
        old = self._state
        if old == new:
            return
        self._state = new
        transitions.append((old, new))

    def _emit_state_changes(self, transitions: _Transitions) -> None:
        for old, new in transitions:
            if self._on_state_change is not None:
                try:
                    self._on_state_change(old, new)
                except Exception:
                    log_exception(
                        _logger,
                        "circuit_breaker.observer_failed",
                        breaker=self.name,
                        hook="on_state_change",
                    )
            self._notify("on_state_change", old, new)

    def _emit_call_rejected(self, retry_after: float) -> None:
        self._notify("on_call_rejected", retry_after)

    def _emit_call_succeeded(self, elapsed: float) -> None:
        self._notify("on_call_succeeded", elapsed)

    def _emit_call_failed(self, exc: Exception, elapsed: float) -> None:
        self._notify("on_call_failed", exc, elapsed)

    def _notify(self, hook: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(self.name, *args)
            except Exception:
                log_exception(
                    _logger,
                    "circuit_breaker.listener_failed",
                    breaker=self.name,
                    hook=hook,
                )
