"""Correlation ID logging context for tracing booking requests across modules.

Provides a request_id-aware logger that attaches a correlation ID to
every log message, so a single booking request (or one recurring series)
can be followed through availability, phase and worker decisions.

Usage:
    from salon_scheduler.logging_context import get_request_logger, set_request_id

    set_request_id("REQ-abc123")
    logger = get_request_logger(__name__)
    logger.info("Planning booking")  # record.request_id == "REQ-abc123"
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="NO_REQUEST_ID")


def new_request_id(prefix: str = "REQ") -> str:
    """Generate a short correlation ID such as ``REQ-1A2B3C4D``."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def set_request_id(request_id: str) -> None:
    """Set the correlation ID for the current context."""
    _request_id.set(request_id)


def get_request_id() -> str:
    """Retrieve the current correlation ID."""
    return _request_id.get()


@contextmanager
def request_scope(request_id: Optional[str] = None, prefix: str = "REQ") -> Iterator[str]:
    """Bind a correlation ID for the duration of a block, then restore the previous one.

    Used around one booking attempt or one recurring series so every
    occurrence logged inside shares the same ID.
    """
    token = _request_id.set(request_id or new_request_id(prefix))
    try:
        yield _request_id.get()
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Injects request_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Return a logger with the RequestIdFilter attached.

    The filter adds ``request_id`` to each record so formatters can
    include ``%(request_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
