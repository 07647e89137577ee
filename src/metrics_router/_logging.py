"""Pluggable logging for metrics_router.

By default everything goes to the stdlib logger named ``metrics_router``.
Any object with ``debug``/``info``/``warning``/``error`` methods can be
swapped in, which is how ``structlog`` users plug their own pipeline in::

    import structlog
    import metrics_router
    metrics_router.configure_logging(structlog.get_logger())

Client operations are wrapped in :func:`log_operation`, so a debug-level
handler (see :func:`enable_debug_logging`) shows every request the SDK makes
along with its duration.
"""

from __future__ import annotations

import contextlib
import logging
import sys
import time
from collections.abc import Generator
from typing import IO, Any, Protocol, runtime_checkable

LOGGER_NAME = "metrics_router"

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@runtime_checkable
class LoggerProtocol(Protocol):
    """Minimal interface that a pluggable logger must satisfy."""

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


_logger: LoggerProtocol = logging.getLogger(LOGGER_NAME)


def configure_logging(logger: LoggerProtocol) -> None:
    """Replace the package logger.

    Args:
        logger: Anything implementing :class:`LoggerProtocol`.
    """
    global _logger
    _logger = logger


def get_logger() -> LoggerProtocol:
    """Return the currently configured logger."""
    return _logger


def enable_debug_logging(stream: IO[str] | None = None) -> logging.Handler:
    """Send DEBUG-level package logs to *stream* (``sys.stderr`` by default).

    Restores the stdlib logger if a custom one was configured, since the
    handler is attached to ``logging.getLogger("metrics_router")``. Calling
    this repeatedly replaces the previously installed handler rather than
    stacking duplicates.

    Returns:
        The installed handler, so callers can remove it again.
    """
    stdlib_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(stdlib_logger.handlers):
        if getattr(handler, "_metrics_router_debug", False):
            stdlib_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler.setLevel(logging.DEBUG)
    handler._metrics_router_debug = True  # type: ignore[attr-defined]

    stdlib_logger.addHandler(handler)
    stdlib_logger.setLevel(logging.DEBUG)
    configure_logging(stdlib_logger)
    return handler


def _format_context(context: dict[str, Any]) -> str:
    return ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)


@contextlib.contextmanager
def log_operation(op_name: str, **context: Any) -> Generator[None, None, None]:
    """Log the start, completion and duration of a service operation.

    Start and completion are logged at ``debug`` so routine SDK traffic stays
    quiet; a failure is logged at ``error`` and re-raised.

    Args:
        op_name: Operation label, e.g. ``"get_target"``.
        **context: Key-value pairs appended to each message. ``None`` values
            are omitted.

    Examples:
        >>> with log_operation("get_target", id=target_id):
        ...     response = service.request("GET", f"/targets/{target_id}")
    """
    log = get_logger()
    ctx_str = _format_context(context)
    suffix = f" ({ctx_str})" if ctx_str else ""

    log.debug("%s: started%s", op_name, suffix)
    t0 = time.monotonic()
    try:
        yield
    except Exception as exc:
        elapsed = time.monotonic() - t0
        log.error("%s: failed after %.2fs%s: %s", op_name, elapsed, suffix, exc)
        raise
    else:
        elapsed = time.monotonic() - t0
        log.debug("%s: completed in %.2fs%s", op_name, elapsed, suffix)
