import os
from typing import Final


# Entry points, one per payload format
FETCHER_JSON_PATH: Final[str] = "/api/fetchers/json"
FETCHER_XML_PATH: Final[str] = "/api/fetchers/xml"
FETCHER_RDF_PATH: Final[str] = "/api/fetchers/rdf"

# Outbound request shaping
DEFAULT_OUTBOUND_CONTENT_TYPE: Final[str] = "application/json"
BODY_METHODS: Final[frozenset[str]] = frozenset({"POST", "PUT", "PATCH"})
DEFAULT_METHOD: Final[str] = "GET"

# Outbound budgets (ms) – env override keeps tests happy
OUTBOUND_TIMEOUT_MS     = int(os.getenv("OUTBOUND_TIMEOUT_MS", "10000"))
OUTBOUND_TIMEOUT_MAX_MS = int(os.getenv("OUTBOUND_TIMEOUT_MAX_MS", "60000"))

# Quad channel size between the RDF producer thread and its consumer
RDF_STREAM_BUFFER = int(os.getenv("RDF_STREAM_BUFFER", "256"))

HEALTH_PORT = int(os.getenv("FETCHER_PORT", "8080"))


def clamp_timeout_ms(requested_ms: int | None, *, default_ms: int | None = None,
                     max_ms: int | None = None) -> int:
    """Resolve the effective outbound timeout; never above the configured ceiling."""
    ceiling = int(max_ms if max_ms is not None else OUTBOUND_TIMEOUT_MAX_MS)
    base = int(default_ms if default_ms is not None else OUTBOUND_TIMEOUT_MS)
    value = int(requested_ms) if requested_ms else base
    return max(1, min(value, ceiling))
