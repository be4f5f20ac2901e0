from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import httpx
from core_config.constants import OUTBOUND_TIMEOUT_MS
from core_logging import get_logger, log_stage, current_request_id

# Module-level logger for this package
logger = get_logger("core_http")

def build_timeout(seconds: float) -> httpx.Timeout:
    # Separate connect/read/write/pool timeouts; read dominates
    connect = min(5.0, max(0.1, seconds * 0.5))
    read    = max(0.1, seconds)
    write   = max(0.1, seconds)
    pool    = min(seconds, 1.0)
    return httpx.Timeout(connect=connect, read=read, write=write, pool=pool)

@asynccontextmanager
async def outbound_client(
    *,
    timeout_ms: Optional[int] = None,
    follow_redirects: bool = True,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Yield a **per-call** ``httpx.AsyncClient`` and close it on exit.

    Calls to third-party endpoints must not share connection state across
    inbound requests, so there is deliberately no process-wide client here.
    ``transport`` lets tests route traffic to ``httpx.MockTransport``.
    """
    seconds = (timeout_ms if timeout_ms is not None else OUTBOUND_TIMEOUT_MS) / 1000.0
    client = httpx.AsyncClient(
        timeout=build_timeout(seconds),
        follow_redirects=follow_redirects,
        transport=transport,
    )
    try:
        yield client
    finally:
        await client.aclose()
        log_stage(
            logger, "http.client", "http.client.closed",
            request_id=current_request_id(),
            timeout_sec=seconds,
        )

__all__ = ["build_timeout", "outbound_client"]
