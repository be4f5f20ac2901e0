import os
import re
from typing import Optional

from opentelemetry import trace as _trace
from opentelemetry.propagate import extract, set_global_textmap
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from core_logging import bind_trace_ids, get_logger, log_stage

_tracing_setup_done: bool = False

def _normalize_http_endpoint(ep: str) -> str:
    # Ensure HTTP exporter endpoints include the '/v1/traces' suffix.
    if ep.endswith("/v1/traces"):
        return ep
    return ep.rstrip("/") + "/v1/traces"

def init_tracing(service_name: Optional[str] = None) -> None:
    """
    Idempotent OTEL bootstrap. Installs a TracerProvider so spans get real ids;
    attaches an OTLP/HTTP exporter only when OTEL_EXPORTER_OTLP_ENDPOINT is set.
    """
    global _tracing_setup_done
    if _tracing_setup_done:
        return
    _tracing_setup_done = True

    svc = service_name or os.getenv("OTEL_SERVICE_NAME") or os.getenv("SERVICE_NAME") or "fetcher"
    attrs = {"service.name": svc}
    env = os.getenv("DEPLOYMENT_ENVIRONMENT") or os.getenv("ENVIRONMENT")
    if env:
        attrs["deployment.environment"] = env
    tp = TracerProvider(resource=Resource.create(attrs))

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT") or os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        tp.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=_normalize_http_endpoint(endpoint))))
    _trace.set_tracer_provider(tp)
    set_global_textmap(TraceContextTextMapPropagator())

    log_stage(
        get_logger(svc), "observability", "tracing_setup",
        exporter=endpoint or "",
        request_id="startup",
    )

_XTRACEID_RE = re.compile(r"^[0-9a-fA-F]{32}$")

def instrument_fastapi_app(app, service_name: Optional[str] = None) -> None:
    """
    Adds an HTTP middleware that starts a server span for each request
    (continuing an upstream ``traceparent`` when present), binds its ids into
    the logging context and mirrors the trace id as ``x-trace-id``.
    """
    if getattr(app, "_otel_server_span_installed", False):
        return
    setattr(app, "_otel_server_span_installed", True)
    init_tracing(service_name)
    tracer = _trace.get_tracer(service_name or os.getenv("OTEL_SERVICE_NAME") or "fetcher")

    @app.middleware("http")
    async def _otel_server_span(request, call_next):
        name = f"HTTP {request.method} {request.url.path}"
        ctx_in = extract(dict(request.headers))
        with tracer.start_as_current_span(name, context=ctx_in) as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.route", request.url.path)
            ctx = span.get_span_context()
            tid = f"{ctx.trace_id:032x}" if ctx.trace_id else None
            if not tid:
                # Non-recording span: fall back to an upstream x-trace-id when well-formed
                x_tid = request.headers.get("x-trace-id")
                tid = x_tid.lower() if (x_tid and _XTRACEID_RE.match(x_tid)) else None
            bind_trace_ids(tid, f"{ctx.span_id:016x}" if ctx.span_id else None)
            try:
                response = await call_next(request)
                span.set_attribute("http.status_code", response.status_code)
            finally:
                bind_trace_ids(None, None)
            if tid:
                response.headers["x-trace-id"] = tid
            return response

def current_trace_id_hex() -> Optional[str]:
    span = _trace.get_current_span()
    ctx = span.get_span_context()
    if getattr(ctx, "trace_id", 0):
        return f"{ctx.trace_id:032x}"
    return None
