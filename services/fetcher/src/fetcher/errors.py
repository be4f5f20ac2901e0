"""
Failure taxonomy of the fetch gateway.

Every stage raises one of these; the envelope builder is the only place that
turns them into an outward status and body.
"""
from __future__ import annotations

from typing import Any, Optional

from core_logging.error_codes import ErrorCode


class GatewayError(Exception):
    code: ErrorCode = ErrorCode.internal

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InputValidationError(GatewayError):
    code = ErrorCode.input_validation


class AuthConfigurationError(GatewayError):
    code = ErrorCode.auth_configuration


class ServerMisconfigurationError(GatewayError):
    code = ErrorCode.server_misconfiguration


class NetworkFailureError(GatewayError):
    code = ErrorCode.network_failure


class UpstreamAuthFailureError(GatewayError):
    """Upstream answered 401/403; the outward status mirrors it."""
    code = ErrorCode.upstream_auth_failure

    def __init__(self, message: str, *, upstream_status: int, details: Optional[Any] = None) -> None:
        super().__init__(message, details=details)
        self.upstream_status = upstream_status


class UpstreamFailureError(GatewayError):
    code = ErrorCode.upstream_failure


class ParseFailureError(GatewayError):
    code = ErrorCode.parse_failure


class InternalIOError(GatewayError):
    code = ErrorCode.internal_io


__all__ = [
    "GatewayError",
    "InputValidationError",
    "AuthConfigurationError",
    "ServerMisconfigurationError",
    "NetworkFailureError",
    "UpstreamAuthFailureError",
    "UpstreamFailureError",
    "ParseFailureError",
    "InternalIOError",
]
