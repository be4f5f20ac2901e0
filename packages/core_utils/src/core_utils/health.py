"""
Probe routes: ``GET /healthz`` (liveness) and ``GET /readyz`` (readiness).

A check is a sync or async callable returning ``bool`` or a JSON-able dict.
A dict is returned as the body; readiness answers 503 when it is not ready.
"""
import inspect
from typing import Any, Awaitable, Callable, Dict, Mapping, Union

from fastapi import FastAPI
from fastapi.responses import JSONResponse

__all__ = ["attach_health_routes"]

CheckResult = Union[bool, Dict[str, Any]]
HealthCheck = Callable[[], Union[CheckResult, Awaitable[CheckResult]]]


async def _evaluate(check: HealthCheck) -> CheckResult:
    result = check()
    if inspect.isawaitable(result):
        result = await result
    return result


def _passed(result: CheckResult) -> bool:
    if isinstance(result, dict):
        return bool(result.get("ready", result.get("status") in ("ok", "ready")))
    return bool(result)


def attach_health_routes(app: FastAPI, *, checks: Mapping[str, HealthCheck]) -> None:
    liveness = checks.get("liveness")
    readiness = checks.get("readiness")

    @app.get("/healthz", include_in_schema=False)
    async def healthz():
        if liveness is None:
            return {"status": "ok"}
        result = await _evaluate(liveness)
        return result if isinstance(result, dict) else {"status": "ok" if result else "fail"}

    @app.get("/readyz", include_in_schema=False)
    async def readyz():
        result = await _evaluate(readiness) if readiness is not None else True
        body = result if isinstance(result, dict) else {"ready": bool(result)}
        return JSONResponse(body, status_code=200 if _passed(result) else 503)
