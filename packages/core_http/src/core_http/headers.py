"""
Canonical HTTP header names and small header helpers shared by the services.
"""
from typing import Final, Iterable, Mapping, Dict, Optional

CONTENT_TYPE: Final[str]   = "Content-Type"
AUTHORIZATION: Final[str]  = "Authorization"
USER_AGENT: Final[str]     = "User-Agent"
X_REQUEST_ID: Final[str]   = "x-request-id"
X_TRACE_ID: Final[str]     = "x-trace-id"

def find_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive lookup on a plain mapping; ``None`` when absent."""
    lname = name.lower()
    for k, v in headers.items():
        if str(k).lower() == lname:
            return v
    return None

def merge_headers(*layers: Mapping[str, str]) -> Dict[str, str]:
    """
    Merge header mappings left→right; a later layer replaces an earlier value
    with the same name regardless of casing. The later spelling of the name wins.
    """
    out: Dict[str, str] = {}
    index: Dict[str, str] = {}
    for layer in layers:
        for k, v in (layer or {}).items():
            lk = str(k).lower()
            prev = index.get(lk)
            if prev is not None:
                del out[prev]
            out[str(k)] = v
            index[lk] = str(k)
    return out

def media_type(value: Optional[str]) -> Optional[str]:
    """``"text/turtle; charset=utf-8"`` → ``"text/turtle"``; blank → ``None``."""
    if not value:
        return None
    mt = value.split(";", 1)[0].strip().lower()
    return mt or None

def header_names(headers: Mapping[str, str]) -> Iterable[str]:
    """Sorted header names only; values may carry credentials and are never logged."""
    return sorted(str(k) for k in headers)

__all__ = [
    "CONTENT_TYPE",
    "AUTHORIZATION",
    "USER_AGENT",
    "X_REQUEST_ID",
    "X_TRACE_ID",
    "find_header",
    "merge_headers",
    "media_type",
    "header_names",
]
