from __future__ import annotations

from dataclasses import dataclass, field

from resilience_core.circuit_breaker import CircuitState


class FakeLogger:
    """Capture structured logger events for assertions."""

    def __init__(self) -> None:
        self.events: list[str] = []
        self.calls: list[tuple[str, str, dict[str, object]]] = []

    def _record(self, level: str, event: str, **kwargs: object) -> None:
        self.events.append(event)
        self.calls.append((level, event, kwargs))

    def info(self, event: str, **kwargs: object) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: object) -> None:
        self._record("warning", event, **kwargs)

    def exception(self, event: str, **kwargs: object) -> None:
        self._record("exception", event, **kwargs)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep double that records delays and returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@dataclass(slots=True)
class RecordingListener:
    """Breaker listener capturing every hook call."""

    events: list[tuple[str, object]] = field(default_factory=list)

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        self.events.append(("state", (name, old, new)))

    def on_call_rejected(self, name: str, retry_after: float) -> None:
        self.events.append(("rejected", name))

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        self.events.append(("succeeded", name))

    def on_call_failed(self, name: str, exc: Exception, elapsed: float) -> None:
        self.events.append(("failed", (name, exc.__class__.__name__)))


class ScriptedOperation:
    """Async callable that fails a fixed number of times, then succeeds."""

    def __init__(
        self,
        *,
        failures: int,
        result: object = "ok",
        error: Exception | None = None,
    ) -> None:
        self.failures = failures
        self.result = result
        self.error = RuntimeError("boom") if error is None else error
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.result
