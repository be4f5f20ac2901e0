from .health import *
from .ids import *
from .fingerprints import *
from . import jsonx

__all__ = [
    "attach_health_routes",
    "generate_request_id",
    "canonical_json", "sha256_hex", "payload_fingerprint",
    "jsonx",
]
