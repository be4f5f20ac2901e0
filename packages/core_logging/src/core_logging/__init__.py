from .context import bind_request_id, bind_trace_ids, current_request_id, current_trace_ids
from .logger import get_logger, log_once_process, log_stage, record_error
from .summary import emit_request_error_summary, emit_request_summary, reset_request_aggregation

__all__ = [
    "get_logger",
    "log_stage",
    "record_error",
    "log_once_process",
    "bind_trace_ids",
    "bind_request_id",
    "current_request_id",
    "current_trace_ids",
    "emit_request_summary",
    "emit_request_error_summary",
    "reset_request_aggregation",
]
