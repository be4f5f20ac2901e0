from .client import build_timeout, outbound_client
from .errors import attach_standard_error_handlers

__all__ = ["build_timeout", "outbound_client", "attach_standard_error_handlers"]
