"""
JSON line logging for the gateway.

Every line carries ``ts``/``level``/``service``/``event`` plus a small set of
promoted fields (stage, request_id, format, outcome, status_code ...); all
other extras are nested under ``meta``. ``log_stage`` is the single entry
point the pipeline uses for breadcrumbs.
"""
import asyncio
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

import orjson

from . import summary
from .context import current_request_id, current_trace_ids

# LogRecord attributes an extra must never overwrite
_RESERVED = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "asctime", "taskName",
})

# Promoted to the top level of a line; everything else goes under ``meta``
_TOP_LEVEL = frozenset({
    "stage", "latency_ms", "request_id", "format", "outcome", "status_code",
    "path", "method", "trace_id", "span_id",
})

# Written even in summary mode
_BOOKENDS = {("http.server", "http.server.request"), ("http.server", "http.server.response")}


def _sanitize_extra(extra: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Rename keys that clash with LogRecord: ``message`` -> ``message_extra``, others -> ``meta_<key>``."""
    safe: Dict[str, Any] = {}
    for key, value in (extra or {}).items():
        key = str(key)
        if key in _RESERVED:
            key = "message_extra" if key == "message" else f"meta_{key}"
        safe[key] = value
    return safe


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, BaseException):
        return {"error": type(obj).__name__, "message": str(obj)}
    return str(obj)


class _RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            request_id = current_request_id()
            if request_id:
                record.request_id = request_id
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", record.name),
            "event": record.getMessage(),
        }
        trace_id, _ = current_trace_ids()
        if trace_id:
            line["trace_id"] = trace_id

        meta: Dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED:
                continue
            if key == "message_extra":
                line["message"] = value
            elif key in _TOP_LEVEL:
                line[key] = value
            else:
                meta[key] = value
        if record.exc_info:
            meta["exc"] = self.formatException(record.exc_info)
        if meta:
            line["meta"] = meta
        return orjson.dumps(line, default=_json_default).decode("utf-8")


class StructuredLogger(logging.Logger):
    """``logger.info("event", stage="dispatch")``: keyword arguments are folded into ``extra``."""

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False,
             stacklevel=1, **fields: Any) -> None:
        merged = {**(extra or {}), **fields}
        super()._log(level, msg, args, exc_info=exc_info, extra=_sanitize_extra(merged),
                     stack_info=stack_info, stacklevel=stacklevel)


class DynamicStdoutHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stdout`` is at emit time (tests redirect it)."""

    def emit(self, record: logging.LogRecord) -> None:
        self.setStream(sys.stdout)
        super().emit(record)


logging.setLoggerClass(StructuredLogger)


def get_logger(name: str = "fetcher", level: Optional[str] = None) -> logging.Logger:
    """
    Dotless names are service roots: they own the stdout JSON handler and stop
    propagation. Dotted names are children that bubble up to their root.
    """
    logger = logging.getLogger(name)
    if "." in name:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
    else:
        if not logger.handlers:
            handler = DynamicStdoutHandler()
            handler.setFormatter(JsonFormatter())
            logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(level or os.getenv("SERVICE_LOG_LEVEL", "INFO"))
    if not any(isinstance(f, _RequestIdFilter) for f in logger.filters):
        logger.addFilter(_RequestIdFilter())
    return logger


def _stage_line(logger: logging.Logger, stage: str, event: str, **fields: Any) -> None:
    payload = {"stage": stage, **fields}
    summary.note(stage, event, payload)
    if (summary.summary_mode()
            and (stage, event) not in _BOOKENDS
            and not summary.looks_like_error(event, payload)):
        return
    logger.info(event, extra=_sanitize_extra(payload))


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def log_stage(logger: logging.Logger, stage: str, event: str, **fixed: Any):
    """
    Log one breadcrumb now and hand back a decorator for timing a callable::

        log_stage(logger, "dispatch", "outbound.sending", request_id=rid)

        @log_stage(logger, "parse", "rdf")
        async def parse(...): ...

        with log_stage(logger, "parse", "rdf.parse").ctx(target_host=host):
            ...

    The decorator and ``.ctx`` emit ``<event>.done`` with ``latency_ms``.
    """
    _stage_line(logger, stage, event, **fixed)

    def decorate(fn):
        if asyncio.iscoroutinefunction(fn):
            async def timed_async(*args, **kwargs):
                started = time.perf_counter()
                try:
                    return await fn(*args, **kwargs)
                finally:
                    _stage_line(logger, stage, f"{event}.done", latency_ms=_elapsed_ms(started), **fixed)
            return timed_async

        def timed(*args, **kwargs):
            started = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                _stage_line(logger, stage, f"{event}.done", latency_ms=_elapsed_ms(started), **fixed)
        return timed

    @contextmanager
    def ctx(**dynamic: Any):
        fields = {**fixed, **dynamic}
        _stage_line(logger, stage, f"{event}.start", **fields)
        started = time.perf_counter()
        try:
            yield
        finally:
            _stage_line(logger, stage, f"{event}.done", latency_ms=_elapsed_ms(started), **fields)

    decorate.ctx = ctx
    return decorate


def record_error(
    code: str,
    *,
    where: str,
    message: str,
    logger: logging.Logger,
    context: Optional[Dict[str, Any]] = None,
    level: str = "ERROR",
    **fields: Any,
) -> None:
    """Write one ``error`` line and remember it for the request's error roll-up."""
    summary.add_error({"code": str(code), "where": str(where), "message": str(message), "context": context})
    payload: Dict[str, Any] = {
        "stage": fields.pop("stage", None) or "error",
        "error_code": code,
        "error_message": message,
        "where": where,
        **fields,
    }
    if isinstance(context, dict):
        payload["context"] = context
    logger.log(getattr(logging, level.upper(), logging.ERROR), "error", extra=_sanitize_extra(payload))


_PROCESS_ONCE: set = set()


def log_once_process(logger: logging.Logger, key: str, *, level: int = logging.INFO,
                     event: str, **fields: Any) -> None:
    """Log *event* the first time *key* is seen in this process."""
    if key in _PROCESS_ONCE:
        return
    _PROCESS_ONCE.add(key)
    logger.log(level, event, extra=_sanitize_extra(fields))
