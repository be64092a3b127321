"""Per-request ids for the booking and conductor logs.

Every availability check, block change and conductor toggle runs under
a ``REQ-xxxxxxxx`` id held in a context variable, so concurrent checks
on the same day can be told apart in the resolver, repository and
status feed logs.

Usage:
    from tourbook.logging_context import get_request_logger, request_scope

    logger = get_request_logger(__name__)
    with request_scope() as request_id:
        logger.info("Checking 2025-08-20 10:00")  # record.request_id == request_id
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_request_id: ContextVar[str] = ContextVar("request_id", default="NO_REQUEST_ID")


def new_request_id() -> str:
    return f"REQ-{uuid.uuid4().hex[:8]}"


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind ``request_id`` (or a fresh one) to the running task and return it."""
    if request_id is None:
        request_id = new_request_id()
    _request_id.set(request_id)
    return request_id


def get_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Run a block under its own request id, restoring the outer one afterwards."""
    token = _request_id.set(request_id or new_request_id())
    try:
        yield _request_id.get()
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamps ``request_id`` on each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def get_request_logger(name: str) -> logging.Logger:
    """Logger for a tourbook module, with the request id filter attached once.

    Formatters on handlers fed only by these loggers may use
    ``%(request_id)s``.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger
