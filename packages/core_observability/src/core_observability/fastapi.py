from __future__ import annotations
import os
from .otel import instrument_fastapi_app
from core_logging.request_logging import attach_request_logging

def instrument_app(
    app,
    service_name: str | None = None,
    *,
    attach_metrics_endpoint: bool = True,
) -> None:
    """
    One-call, idempotent FastAPI instrumentation:
      • sets up the OTEL tracer and the server-span middleware,
      • installs structured request logging with consistent metric prefixes,
      • optionally exposes Prometheus /metrics.
    """
    svc = service_name or os.getenv("OTEL_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "fetcher"
    # Request logging is registered first so it runs *inside* the server span
    # (Starlette runs the most recently added middleware outermost).
    attach_request_logging(app, service=svc, metric_prefix=svc)
    instrument_fastapi_app(app, service_name=svc)
    if attach_metrics_endpoint:
        from core_metrics.fastapi import attach_prometheus_endpoint
        attach_prometheus_endpoint(app)
