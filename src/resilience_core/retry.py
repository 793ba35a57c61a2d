"""Retry with capped backoff for async operations, built on tenacity."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
    wait_random,
)
from tenacity.wait import wait_base

from resilience_core.errors import OperationTimeoutError, TransientError
from resilience_core.logging import log_warning
from resilience_core.timeout import with_timeout

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]
OnRetry = Callable[[int, BaseException], None]
Backoff = Literal["exponential", "linear"]

_logger = structlog.stdlib.get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt count, backoff shape and retry predicate for ``with_retry``.

    Delays are in seconds. With the default exponential backoff the sleep
    after the n-th failed attempt is ``min(base_delay * 2 ** (n - 1), max_delay)``;
    linear backoff uses ``min(base_delay * n, max_delay)``. ``jitter`` adds a
    uniform random ``[0, jitter]`` on top. Without ``is_retryable`` every
    ``Exception`` is retried.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0
    is_retryable: RetryPredicate | None = None
    backoff: Backoff = "exponential"
    jitter: float = 0.0
    attempt_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if self.backoff not in ("exponential", "linear"):
            raise ValueError("backoff must be 'exponential' or 'linear'")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")
        if self.attempt_timeout is not None and self.attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be > 0 when provided")


def retry_transient_only(error: BaseException) -> bool:
    """Retry predicate accepting only transient failures and timeouts."""
    return isinstance(error, (TransientError, OperationTimeoutError))


def _build_wait(policy: RetryPolicy) -> wait_base:
    wait: wait_base
    if policy.backoff == "linear":
        wait = wait_incrementing(
            start=policy.base_delay,
            increment=policy.base_delay,
            max=policy.max_delay,
        )
    else:
        wait = wait_exponential(
            multiplier=policy.base_delay,
            max=policy.max_delay,
        )
    if policy.jitter > 0:
        wait = wait + wait_random(0, policy.jitter)
    return wait


def _build_retry_predicate(policy: RetryPolicy) -> retry_if_exception:
    def _should_retry(error: BaseException) -> bool:
        # Cancellation and interpreter exits are never retried.
        if not isinstance(error, Exception):
            return False
        if policy.is_retryable is None:
            return True
        return policy.is_retryable(error)

    return retry_if_exception(_should_retry)


def build_retrying(
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` that re-raises the last error unchanged."""
    options: dict[str, Any] = {
        "retry": _build_retry_predicate(policy),
        "wait": _build_wait(policy),
        "stop": stop_after_attempt(policy.max_attempts),
        "reraise": True,
    }
    if sleep is not None:
        options["sleep"] = sleep
    if before_sleep is not None:
        options["before_sleep"] = before_sleep
    return AsyncRetrying(**options)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    on_retry: OnRetry | None = None,
) -> T:
    """Call ``fn`` until it succeeds or ``policy`` gives up.

    Attempts run strictly one after another with a backoff sleep between
    them. Intermediate failures are swallowed; the final one is re-raised
    as-is. There is no built-in cancellation: cancel the awaiting task, or
    thread an ``AbortController`` through ``fn``.

    Args:
        fn: Zero-argument async callable producing one attempt.
        policy: Retry configuration. Defaults to ``RetryPolicy()``.
        sleep: Awaitable sleep used between attempts. Defaults to
            ``asyncio.sleep``.
        on_retry: Called with ``(attempt_number, error)`` before each sleep.
    """
    active_policy = RetryPolicy() if policy is None else policy

    def _before_sleep(state: RetryCallState) -> None:
        outcome = state.outcome
        error = None if outcome is None else outcome.exception()
        delay = 0.0 if state.next_action is None else state.next_action.sleep
        log_warning(
            _logger,
            "retry.scheduled",
            attempt=state.attempt_number,
            max_attempts=active_policy.max_attempts,
            delay=delay,
            error_type=None if error is None else error.__class__.__name__,
        )
        if on_retry is not None and error is not None:
            on_retry(state.attempt_number, error)

    retrying = build_retrying(active_policy, sleep=sleep, before_sleep=_before_sleep)

    attempt_timeout = active_policy.attempt_timeout
    if attempt_timeout is None:
        return await retrying(fn)

    async def _bounded_attempt() -> T:
        return await with_timeout(fn(), attempt_timeout)

    return await retrying(_bounded_attempt)
