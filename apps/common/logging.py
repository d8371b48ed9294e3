"""
Logging helpers for the fiscal submission platform.

- RequestIDFilter: injects the current request id into every log record
- set_request_id / get_request_id / clear_request_id: thread-local request context
"""

from __future__ import annotations

import logging
import threading

# Thread-local storage for request context
_request_context = threading.local()


def set_request_id(request_id: str) -> None:
    """Bind a request id to the current thread"""
    _request_context.request_id = request_id


def get_request_id() -> str | None:
    """Return the request id bound to the current thread, if any"""
    return getattr(_request_context, "request_id", None)


def clear_request_id() -> None:
    _request_context.request_id = None


class RequestIDFilter(logging.Filter):
    """
    Add request ID to log records.

    This filter injects the request ID from thread-local storage
    into every log record, enabling request tracing across logs.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add request_id attribute to log record"""
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id() or "-"
        return True
