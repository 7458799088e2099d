"""Logging setup with request correlation IDs.

``configure_logging`` attaches a console handler to the root logger. Every
record passes through :class:`CorrelationIdFilter`, which copies the ID of
the request currently being served (or ``-``) onto the record so the format
string can reference ``%(correlation_id)s``.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s] %(message)s"
_NO_CORRELATION_ID = "-"

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str:
    return correlation_id_var.get() or _NO_CORRELATION_ID


class CorrelationIdFilter(logging.Filter):
    """Expose the active correlation ID as ``record.correlation_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id()
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once.

    Calling this again (for example from tests that build several
    applications) only adjusts the level.
    """

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if any(getattr(handler, "_geousers_handler", False) for handler in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(CorrelationIdFilter())
    handler._geousers_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)


__all__ = [
    "CorrelationIdFilter",
    "LOG_FORMAT",
    "configure_logging",
    "correlation_id_var",
    "get_correlation_id",
]
