"""Deadlines for async operations.

Two flavours are provided:
  - ``with_timeout`` races any awaitable against a deadline. It cannot stop
    the operation; when the deadline wins, the operation keeps running in the
    background and only the caller's wait ends. A timed-out write may still
    complete later.
  - ``create_timeout_controller`` returns an ``AbortController`` that aborts
    itself after the deadline, for operations that accept a cancellation
    token and stop cooperatively.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any, NamedTuple, TypeVar

import structlog

from resilience_core.errors import OperationAbortedError, OperationTimeoutError
from resilience_core.logging import log_info, log_warning

T = TypeVar("T")

_logger = structlog.stdlib.get_logger(__name__)

# Strong references to operations that outlived their deadline; the event loop
# only keeps weak references to tasks.
_ORPHANED_TASKS: set[asyncio.Future[Any]] = set()


def _release_orphan(task: asyncio.Future[Any]) -> None:
    _ORPHANED_TASKS.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        log_info(
            _logger,
            "timeout.orphan_failed",
            error_type=exc.__class__.__name__,
        )


def _orphan(task: asyncio.Future[Any]) -> None:
    if task.done():
        _release_orphan(task)
        return
    _ORPHANED_TASKS.add(task)
    task.add_done_callback(_release_orphan)


async def with_timeout(
    operation: Awaitable[T],
    seconds: float,
    message: str | None = None,
) -> T:
    """Await ``operation`` for at most ``seconds``.

    Args:
        operation: Coroutine, task or future to race against the deadline.
        seconds: Deadline in seconds.
        message: Optional ``OperationTimeoutError`` message.

    Returns:
        The operation's result when it settles before the deadline.

    Raises:
        OperationTimeoutError: When the deadline expires first.
        Exception: The operation's own exception when it fails first.
    """
    if seconds < 0:
        raise ValueError("seconds must be >= 0")

    task: asyncio.Future[T] = asyncio.ensure_future(operation)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=seconds)
    except TimeoutError as exc:
        if task.done() and not task.cancelled():
            return task.result()
        _orphan(task)
        log_warning(_logger, "timeout.expired", timeout=seconds)
        raise OperationTimeoutError(message, timeout=seconds) from exc
    except asyncio.CancelledError:
        _orphan(task)
        raise


class AbortController:
    """Cancellation token that cooperating operations poll or await."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: BaseException | None = None

    @property
    def aborted(self) -> bool:
        """Whether the token has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> BaseException | None:
        """Exception describing why the token fired, if it has."""
        return self._reason

    def abort(self, reason: BaseException | None = None) -> None:
        """Fire the token. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = OperationAbortedError() if reason is None else reason
        self._event.set()

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    def raise_if_aborted(self) -> None:
        """Raise the abort reason when the token has fired."""
        if self._reason is not None:
            raise self._reason


class TimeoutController(NamedTuple):
    """Auto-aborting controller paired with the function that disarms it."""

    controller: AbortController
    cleanup: Callable[[], None]


def _expire(controller: AbortController, seconds: float) -> None:
    log_info(_logger, "timeout.controller_aborted", timeout=seconds)
    controller.abort(OperationTimeoutError(timeout=seconds))


def create_timeout_controller(seconds: float) -> TimeoutController:
    """Create an ``AbortController`` that aborts itself after ``seconds``.

    Must be called from a running event loop. ``cleanup()`` is idempotent;
    once called the controller will not fire from the deadline.
    """
    if seconds < 0:
        raise ValueError("seconds must be >= 0")

    loop = asyncio.get_running_loop()
    controller = AbortController()
    handle = loop.call_later(seconds, partial(_expire, controller, seconds))
    return TimeoutController(controller=controller, cleanup=handle.cancel)
