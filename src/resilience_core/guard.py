"""Compose breaker, deadline and retry around one remote call."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import nullcontext
from typing import TypeVar

from resilience_core.circuit_breaker import CircuitBreaker
from resilience_core.logging import bound_dependency
from resilience_core.retry import OnRetry, RetryPolicy, with_retry
from resilience_core.timeout import with_timeout

T = TypeVar("T")


async def guarded_call(
    fn: Callable[[], Awaitable[T]],
    *,
    breaker: CircuitBreaker | None = None,
    timeout: float | None = None,
    retry: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    on_retry: OnRetry | None = None,
) -> T:
    """Run ``fn`` as ``retry(timeout(breaker.execute(fn)))``.

    Every attempt passes through the breaker, so an ``OPEN`` breaker
    fast-fails each attempt with ``CircuitOpenError``; the deadline bounds
    each attempt separately. Any layer left as ``None`` is skipped.

    The breaker sees the outcome of ``fn`` itself, not the deadline: an
    attempt that times out is recorded by the breaker only once ``fn``
    eventually settles in the background.
    """

    async def _attempt() -> T:
        operation = fn() if breaker is None else breaker.execute(fn)
        if timeout is None:
            return await operation
        return await with_timeout(operation, timeout)

    context = nullcontext() if breaker is None else bound_dependency(breaker.name)
    with context:
        if retry is None:
            return await _attempt()
        return await with_retry(_attempt, retry, sleep=sleep, on_retry=on_retry)
