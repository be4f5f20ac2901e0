import uuid

__all__ = ["generate_request_id"]

def generate_request_id() -> str:
    """
    Non-deterministic 16-hex id for request correlation, health and
    exception paths. Kept short for log readability.
    """
    return uuid.uuid4().hex[:16]
