"""Content fingerprints logged in place of payloads."""
import hashlib
from typing import Any, Union

import orjson

__all__ = ["canonical_json", "sha256_hex", "payload_fingerprint"]


def canonical_json(obj: Any) -> bytes:
    """Compact JSON with sorted keys, so equal payloads always hash equally."""
    return orjson.dumps(obj, option=orjson.OPT_SORT_KEYS)


def sha256_hex(data: Union[str, bytes]) -> str:
    raw = data.encode("utf-8") if isinstance(data, str) else bytes(data)
    return hashlib.sha256(raw).hexdigest()


def payload_fingerprint(obj: Any, *, length: int = 16) -> str:
    """
    ``sha256:<hex prefix>`` of :func:`canonical_json`. Repeated fetches of a
    deterministic upstream log the same value.
    """
    return f"sha256:{sha256_hex(canonical_json(obj))[:length]}"
