from __future__ import annotations
from typing import Any, Callable, Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from core_logging import get_logger, log_stage, record_error, current_request_id
from core_logging.error_codes import ErrorCode
from core_utils import jsonx

# (status, code, message, details) -> Response
ErrorRenderer = Callable[[int, ErrorCode, str, Optional[Any]], Response]

def attach_standard_error_handlers(app: FastAPI, *, service: str, render: ErrorRenderer) -> None:
    """
    Uniform error shaping across services. The service supplies ``render`` so
    the envelope itself is assembled in exactly one place.
      - 400: request-model validation (FastAPI / Pydantic)
      - Starlette HTTP errors (404, 405, …) keep their status
      - 500: catch-all with {type, message} details
    """
    logger = get_logger(service)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc_handler(request: Request, exc: RequestValidationError):
        errors = jsonx.sanitize(exc.errors())
        log_stage(logger, "validation", "request_model_invalid",
                  request_id=current_request_id(), errors=errors,
                  url=str(request.url), method=request.method)
        return render(400, ErrorCode.input_validation, "Request validation failed.", {"errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        return render(exc.status_code, ErrorCode.input_validation, str(exc.detail), None)

    @app.exception_handler(Exception)
    async def _unhandled_exc_handler(request: Request, exc: Exception):
        record_error(
            ErrorCode.internal.value, where="request", message=str(exc), logger=logger,
            request_id=current_request_id(), error_type=exc.__class__.__name__,
            path=str(request.url.path),
        )
        return render(500, ErrorCode.internal, "Unexpected error",
                      jsonx.sanitize({"type": exc.__class__.__name__, "message": str(exc)}))

__all__ = ["ErrorRenderer", "attach_standard_error_handlers"]
