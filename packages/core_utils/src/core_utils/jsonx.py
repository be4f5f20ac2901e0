from __future__ import annotations
from typing import Any, Mapping

import orjson
from pydantic import BaseModel

__all__ = ["dumps", "dumps_bytes", "loads", "sanitize"]

_UTF8_BOM = b"\xef\xbb\xbf"

def sanitize(obj: Any) -> Any:
    """Recursively convert *obj* into something JSON-serialisable.

    - Exceptions → {"error": <Type>, "message": str(e)}
    - Pydantic models → model_dump(mode="json")
    - bytes → UTF-8 string (replacement on errors)
    - sets/tuples → lists
    - anything else → str(obj)
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, BaseException):
        return {"error": obj.__class__.__name__, "message": str(obj)}
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", "replace")
    if isinstance(obj, Mapping):
        return {str(k): sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [sanitize(v) for v in obj]
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return str(obj)

def dumps_bytes(obj: Any, *, sort_keys: bool = False) -> bytes:
    """orjson dump; unknown types go through :func:`sanitize`."""
    option = orjson.OPT_SORT_KEYS if sort_keys else 0
    return orjson.dumps(obj, option=option, default=sanitize)

def dumps(obj: Any, *, sort_keys: bool = False) -> str:
    """Like :func:`dumps_bytes` but returns a UTF-8 ``str``."""
    return dumps_bytes(obj, sort_keys=sort_keys).decode("utf-8")

def loads(data: str | bytes | bytearray | memoryview) -> Any:
    """Strict JSON load from str/bytes; a leading UTF-8 BOM is tolerated.

    Raises ``orjson.JSONDecodeError`` (a ``ValueError``) on malformed input.
    """
    b = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    if b[:3] == _UTF8_BOM:
        b = b[3:]
    return orjson.loads(b)
