"""HTTP middleware: request id propagation, per-request log roll-up and HTTP metrics."""
from __future__ import annotations

import time
from typing import Tuple

from fastapi import FastAPI, Request

import core_metrics
from core_utils.ids import generate_request_id

from .context import bind_request_id, current_trace_ids
from .logger import get_logger, log_stage
from .summary import emit_request_error_summary, emit_request_summary, reset_request_aggregation

QUIET_PATHS: Tuple[str, ...] = ("/healthz", "/readyz", "/metrics")


def attach_request_logging(
    app: FastAPI,
    *,
    service: str,
    metric_prefix: str,
    quiet_paths: Tuple[str, ...] = QUIET_PATHS,
) -> None:
    """
    Every response gets ``x-request-id`` (the caller's, or a fresh one) and,
    inside a span, ``x-trace-id``. Records ``<prefix>_http_request_seconds``
    and ``<prefix>_http_requests_total``. Probe and scrape paths skip the
    request/response lines.
    """
    logger = get_logger(service)

    @app.middleware("http")
    async def _log_request(request: Request, call_next):
        path = request.url.path or ""
        noisy = path not in quiet_paths
        request_id = request.headers.get("x-request-id") or generate_request_id()
        bind_request_id(request_id)
        reset_request_aggregation()
        http = {"method": request.method, "target": path}
        started = time.perf_counter()
        try:
            if noisy:
                log_stage(logger, "http.server", "http.server.request", request_id=request_id, http=http)
            response = await call_next(request)

            response.headers["x-request-id"] = request_id
            trace_id, _ = current_trace_ids()
            if trace_id and "x-trace-id" not in response.headers:
                response.headers["x-trace-id"] = trace_id

            elapsed = time.perf_counter() - started
            core_metrics.histogram(f"{metric_prefix}_http_request_seconds", elapsed, route=path)
            core_metrics.counter(
                f"{metric_prefix}_http_requests_total", 1,
                method=request.method, code=str(response.status_code),
            )
            if noisy:
                log_stage(
                    logger, "http.server", "http.server.response",
                    request_id=request_id,
                    status_code=response.status_code,
                    http={**http, "status_code": response.status_code},
                    latency_ms=round(elapsed * 1000.0, 3),
                )
                emit_request_error_summary(logger, service=service)
                emit_request_summary(logger, service=service)
            return response
        finally:
            bind_request_id(None)
