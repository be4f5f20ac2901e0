from .otel import init_tracing, instrument_fastapi_app, current_trace_id_hex
from .fastapi import instrument_app
__all__ = ["init_tracing", "instrument_fastapi_app", "current_trace_id_hex", "instrument_app"]
