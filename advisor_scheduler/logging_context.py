"""Per-session log tagging.

Every record that reaches a root handler carries ``session_id``, the
conversation being processed in the current async context, or ``-``
outside of one. ``configure_logging`` installs the filter and a format
that prints it, so a single user's turn can be followed from the
guardrails through the flow controller into the booking services:

    2026-10-19 10:00:00 [s-42] [advisor_scheduler.booking.service] INFO: ...
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

LOG_FORMAT = "%(asctime)s [%(session_id)s] [%(name)s] %(levelname)s: %(message)s"
NO_SESSION = "-"

_current_session: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


@contextmanager
def session_scope(session_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with ``session_id``."""
    token = _current_session.set(session_id)
    try:
        yield
    finally:
        _current_session.reset(token)


class SessionIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _current_session.get()  # type: ignore[attr-defined]
        return True


def install_session_filter(handler: logging.Handler) -> None:
    if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
        handler.addFilter(SessionIdFilter())


def configure_logging(level: int) -> None:
    """Root logging setup: session-tagged format on every root handler.

    Handlers that already exist (installed by a host application or the
    test runner) get the filter too, so ``%(session_id)s`` is always
    resolvable wherever the format is used.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in logging.getLogger().handlers:
        install_session_filter(handler)
