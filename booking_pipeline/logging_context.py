"""Session-id log correlation.

Every record formatted by the application's handlers carries the chat
session it belongs to, so one conversation can be followed from the
classifier through the executor and its collaborators:

    2025-09-17 10:00:00 [booking_pipeline.booking.executor] [5d1c...] INFO: Checkout link created ...

The id lives in a ``ContextVar``, so concurrent sessions handled by
separate asyncio tasks never see each other's id.

Usage:
    from booking_pipeline.logging_context import get_session_logger, session_context

    logger = get_session_logger(__name__)
    with session_context(session.session_id):
        logger.info("Executing booking")
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterable, Iterator

NO_SESSION = "-"

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


def get_session_id() -> str:
    return _session_id.get()


@contextmanager
def session_context(session_id: str) -> Iterator[None]:
    """Bind ``session_id`` to everything logged inside the block, then restore the previous id."""
    token = _session_id.set(session_id)
    try:
        yield
    finally:
        _session_id.reset(token)


class SessionIdFilter(logging.Filter):
    """Stamps the current session id on records that do not carry one yet."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def install_session_filter(handlers: Iterable[logging.Handler]) -> None:
    """Attach a SessionIdFilter to each handler.

    Handler-level filters see records from every logger, including
    third-party ones, so ``%(session_id)s`` in LOG_FORMAT always resolves.
    """
    for handler in handlers:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())


def get_session_logger(name: str) -> logging.Logger:
    """Logger whose own records carry ``session_id`` for any handler, captured ones included."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger
