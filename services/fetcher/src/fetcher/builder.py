"""
Outward response shaping.

``ResponseEnvelopeBuilder`` tracks where a request is in the pipeline and is
the single place that turns a payload or a :class:`GatewayError` into the
uniform ``{success, data}`` / ``{success, error, details?}`` body.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from core_logging import log_stage, record_error, current_request_id
from core_logging.error_codes import ErrorCode
from core_metrics import counter
from core_utils import jsonx, payload_fingerprint

from .errors import GatewayError, UpstreamAuthFailureError
from .models import PayloadFormat

STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.input_validation: 400,
    ErrorCode.auth_configuration: 400,
    ErrorCode.server_misconfiguration: 500,
    ErrorCode.network_failure: 502,
    ErrorCode.upstream_auth_failure: 401,
    ErrorCode.upstream_failure: 502,
    ErrorCode.parse_failure: 422,
    ErrorCode.internal_io: 500,
    ErrorCode.internal: 500,
}


class Stage(str, Enum):
    validating = "validating"
    authenticating = "authenticating"
    dispatching = "dispatching"
    parsing = "parsing"
    done = "done"


_ORDER = list(Stage)


class InvalidTransition(RuntimeError):
    pass


def status_for(error: GatewayError) -> int:
    if isinstance(error, UpstreamAuthFailureError):
        return error.upstream_status
    return STATUS_BY_CODE.get(error.code, 500)


def render_error(status: int, code: ErrorCode, message: str, details: Optional[Any] = None) -> JSONResponse:
    """Failure body; ``details`` is left out when there is nothing to say."""
    body: Dict[str, Any] = {"success": False, "error": message}
    if details not in (None, "", {}, []):
        body["details"] = jsonx.sanitize(details)
    return JSONResponse(body, status_code=status)


def _fingerprint(data: Any) -> Optional[str]:
    try:
        return payload_fingerprint(data)
    except TypeError:
        # integers beyond 64 bits
        return None


class ResponseEnvelopeBuilder:
    """One per inbound request."""

    def __init__(self, fmt: PayloadFormat, *, logger: logging.Logger) -> None:
        self.format = fmt
        self.stage = Stage.validating
        self._logger = logger

    def enter(self, stage: Stage) -> None:
        if stage is Stage.done or _ORDER.index(stage) <= _ORDER.index(self.stage):
            raise InvalidTransition(f"{self.stage.value} -> {stage.value}")
        self.stage = stage

    def success(self, data: Any) -> JSONResponse:
        self._finish()
        log_stage(
            self._logger, "respond", "envelope.success",
            request_id=current_request_id(),
            format=self.format.value,
            outcome="success",
            fingerprint=_fingerprint(data),
        )
        counter("fetcher_requests_total", format=self.format.value, outcome="success")
        return JSONResponse({"success": True, "data": data}, status_code=200)

    def failure(self, error: GatewayError) -> JSONResponse:
        failed_in = self.stage
        self._finish()
        status = status_for(error)
        record_error(
            error.code.value,
            where=failed_in.value,
            message=error.message,
            logger=self._logger,
            level="ERROR" if status >= 500 else "WARNING",
            request_id=current_request_id(),
            format=self.format.value,
            outcome=error.code.value,
            status_code=status,
        )
        counter("fetcher_requests_total", format=self.format.value, outcome=error.code.value)
        return render_error(status, error.code, error.message, error.details)

    def _finish(self) -> None:
        if self.stage is Stage.done:
            raise InvalidTransition("response already built")
        self.stage = Stage.done


__all__ = [
    "Stage",
    "InvalidTransition",
    "STATUS_BY_CODE",
    "ResponseEnvelopeBuilder",
    "render_error",
    "status_for",
]
