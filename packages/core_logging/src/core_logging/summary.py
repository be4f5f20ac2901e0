"""
Per-request log roll-up.

In summary mode (``LOG_EMIT_MODE=summary``, the default) routine stage
breadcrumbs are only counted; the request middleware then writes one
``request_summary`` line per request, plus a ``request_error_summary`` line
when something failed. Error-like events are always written in full.
"""
import contextvars
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .context import current_request_id, current_trace_ids

# Substrings that make an event name count as a failure
_ERROR_MARKERS = ("error", "failed", "failure", "exception", "invalid", "timeout", "unresolved")
# Fields remembered from breadcrumbs and repeated on the summary line
_CARRIED = ("request_id", "format", "target_host", "outcome")
_MAX_ERRORS = 50


@dataclass
class RequestTally:
    events: Dict[str, Dict[str, int]] = field(default_factory=dict)
    latencies: Dict[str, List[float]] = field(default_factory=dict)
    facts: Dict[str, Any] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)


_TALLY: contextvars.ContextVar[Optional[RequestTally]] = \
    contextvars.ContextVar("fetch_request_tally", default=None)


def summary_mode() -> bool:
    return os.getenv("LOG_EMIT_MODE", "summary").lower() in ("summary", "summarize", "compact")


def reset_request_aggregation() -> None:
    """Start a fresh tally; called once per inbound request."""
    _TALLY.set(RequestTally())


def _tally() -> RequestTally:
    tally = _TALLY.get()
    if tally is None:
        tally = RequestTally()
        _TALLY.set(tally)
    return tally


def looks_like_error(event: str, fields: Dict[str, Any]) -> bool:
    if "error" in fields or fields.get("level") in ("ERROR", "WARNING"):
        return True
    status = fields.get("status_code")
    if isinstance(status, int) and status >= 500:
        return True
    name = (event or "").lower()
    return any(marker in name for marker in _ERROR_MARKERS)


def note(stage: str, event: str, fields: Dict[str, Any]) -> None:
    """Count one breadcrumb against the current request."""
    tally = _tally()
    per_stage = tally.events.setdefault(stage, {})
    per_stage[event] = per_stage.get(event, 0) + 1

    latency = fields.get("latency_ms")
    if isinstance(latency, (int, float)):
        tally.latencies.setdefault(stage, []).append(float(latency))

    for key in _CARRIED:
        value = fields.get(key)
        if isinstance(value, str) and value:
            tally.facts[key] = value
    http = fields.get("http")
    if isinstance(http, dict):
        if http.get("method"):
            tally.facts["method"] = http["method"]
        if http.get("target"):
            tally.facts["path"] = http["target"]

    if looks_like_error(event, fields):
        add_error({
            "code": str(fields.get("error_code") or event),
            "where": stage,
            "message": str(fields.get("error_message") or fields.get("error") or event),
        })
    trace_id, _ = current_trace_ids()
    if trace_id:
        tally.facts.setdefault("trace_id", trace_id)


def add_error(crumb: Dict[str, Any]) -> None:
    _tally().errors.append({k: v for k, v in crumb.items() if v is not None})


def _timer_stats(values: List[float]) -> Dict[str, Any]:
    ordered = sorted(values)
    return {
        "count": len(ordered),
        "sum_ms": round(sum(ordered), 3),
        "p50_ms": round(ordered[(len(ordered) - 1) // 2], 3),
        "max_ms": round(ordered[-1], 3),
    }


def _service(logger: logging.Logger, service: Optional[str]) -> str:
    return service or os.getenv("SERVICE_NAME") or logger.name


def emit_request_summary(logger: logging.Logger, *, service: Optional[str] = None) -> None:
    """One compact line per request; closes the tally."""
    tally = _TALLY.get()
    if tally is None or not summary_mode():
        return
    line: Dict[str, Any] = {
        "stage": "summary",
        "service": _service(logger, service),
        "counts": {stage: sum(events.values()) for stage, events in tally.events.items()},
        "events": tally.events,
        "timers": {stage: _timer_stats(v) for stage, v in tally.latencies.items() if v},
        **tally.facts,
        "error_count": len(tally.errors),
    }
    if not line.get("request_id") and current_request_id():
        line["request_id"] = current_request_id()
    logger.info("request_summary", extra=line)
    _TALLY.set(None)


def emit_request_error_summary(logger: logging.Logger, *, service: Optional[str] = None) -> None:
    """One ERROR roll-up when the request recorded failures; otherwise nothing."""
    tally = _TALLY.get()
    if tally is None or not tally.errors:
        return
    errors = tally.errors[:_MAX_ERRORS]
    line: Dict[str, Any] = {
        "stage": "summary",
        "service": _service(logger, service),
        "error_count": len(tally.errors),
        "errors": errors,
        "cause": str(errors[0].get("code") or "unknown").lower(),
    }
    request_id = current_request_id()
    if request_id:
        line["request_id"] = request_id
    trace_id = tally.facts.get("trace_id") or current_trace_ids()[0]
    if trace_id:
        line["trace_id"] = trace_id
    logger.error("request_error_summary", extra=line)


__all__ = [
    "RequestTally",
    "summary_mode",
    "reset_request_aggregation",
    "looks_like_error",
    "note",
    "add_error",
    "emit_request_summary",
    "emit_request_error_summary",
]
