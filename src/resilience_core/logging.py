"""Structured logging for the resilience toolkit.

Toolkit modules log through ``log_info`` / ``log_warning`` / ``log_exception``
so that services may hand breakers either a structlog logger or a plain stdlib
``logging.Logger``. Event names are dotted (``circuit_breaker.opened``,
``retry.scheduled``, ``timeout.expired``) and every detail travels as a
keyword field.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Literal, Protocol

import structlog

_LOG_LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_StdlibLogger = logging.Logger | logging.LoggerAdapter[logging.Logger]
_EventLevel = Literal["info", "warning", "exception"]


class StructuredLogger(Protocol):
    """Keyword-field logger accepted by breaker listeners and log helpers."""

    def info(self, event: str, **kwargs: object) -> None: ...

    def warning(self, event: str, **kwargs: object) -> None: ...

    def exception(self, event: str, **kwargs: object) -> None: ...


EventLogger = StructuredLogger | _StdlibLogger


def get_log_level_value(level: str) -> int:
    """Return stdlib log level constant for a normalized level string."""
    normalized = level.strip().upper()
    try:
        return _LOG_LEVELS[normalized]
    except KeyError as error:
        choices = ", ".join(sorted(_LOG_LEVELS))
        raise ValueError(f"log_level must be one of: {choices}") from error


def _select_renderer(json_output: bool | None) -> structlog.types.Processor:
    if json_output is None:
        json_output = not sys.stderr.isatty()
    if json_output:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def _emit(
    logger: EventLogger,
    level: _EventLevel,
    event: str,
    fields: dict[str, object],
) -> None:
    method = getattr(logger, level)
    # stdlib loggers take structured fields through ``extra``.
    if isinstance(logger, (logging.Logger, logging.LoggerAdapter)):
        method(event, extra=fields)
    else:
        method(event, **fields)


def log_info(logger: EventLogger, event: str, **fields: object) -> None:
    """Log a state transition or other routine toolkit event."""
    _emit(logger, "info", event, fields)


def log_warning(logger: EventLogger, event: str, **fields: object) -> None:
    """Log a degraded-dependency event (open circuit, retry, expiry)."""
    _emit(logger, "warning", event, fields)


def log_exception(logger: EventLogger, event: str, **fields: object) -> None:
    """Log a failure raised by user-supplied code, with its traceback.

    Call only from an ``except`` block.
    """
    _emit(logger, "exception", event, fields)


@contextmanager
def bound_dependency(name: str) -> Iterator[None]:
    """Bind ``dependency=<name>`` into structlog contextvars for a block."""
    with structlog.contextvars.bound_contextvars(dependency=name):
        yield


def configure_structlog(
    *,
    log_level: str,
    json_output: bool | None = None,
) -> structlog.stdlib.BoundLogger:
    """Route structlog and stdlib records through one stderr handler.

    Toolkit events from both logger kinds carry the bound ``dependency``
    context, an ISO UTC timestamp and the level.

    Args:
        log_level: Case-insensitive stdlib level name.
        json_output: Force JSON (``True``) or console (``False``) rendering.
            Defaults to console on a TTY and JSON otherwise.

    Returns:
        A logger named ``resilience_core``.
    """
    level_value = get_log_level_value(log_level)
    timestamper = structlog.processors.TimeStamper(fmt="iso", utc=True)

    foreign_pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        timestamper,
    ]
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=foreign_pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _select_renderer(json_output),
            ],
        )
    )
    logging.basicConfig(
        format="%(message)s",
        handlers=[handler],
        level=level_value,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            timestamper,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger("resilience_core")
