"""
Request / trace correlation carried in ``contextvars`` so every log line of
one inbound request can be joined without passing ids around.
"""
import contextvars
from typing import Optional, Tuple

_REQUEST_ID: contextvars.ContextVar[Optional[str]] = \
    contextvars.ContextVar("fetch_request_id", default=None)
_TRACE_IDS: contextvars.ContextVar[Tuple[Optional[str], Optional[str]]] = \
    contextvars.ContextVar("fetch_trace_ids", default=(None, None))


def bind_request_id(request_id: Optional[str]) -> None:
    _REQUEST_ID.set(request_id)


def current_request_id() -> Optional[str]:
    return _REQUEST_ID.get()


def bind_trace_ids(trace_id: Optional[str], span_id: Optional[str]) -> None:
    """Bind the active span's ids; ``(None, None)`` once the span ends."""
    _TRACE_IDS.set((trace_id, span_id))


def current_trace_ids() -> Tuple[Optional[str], Optional[str]]:
    return _TRACE_IDS.get()


__all__ = ["bind_request_id", "current_request_id", "bind_trace_ids", "current_trace_ids"]
