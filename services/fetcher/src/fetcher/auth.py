"""
Authentication header construction for outbound calls.
"""
from __future__ import annotations

import base64
import logging
from typing import Dict, Optional

from core_http.headers import AUTHORIZATION
from core_logging import log_stage, current_request_id

from .errors import AuthConfigurationError, ServerMisconfigurationError
from .models import ApiKeyAuth, AuthenticationSpec, BasicAuth, BearerTokenAuth


def basic_credentials(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class AuthenticationResolver:
    def __init__(self, *, logger: logging.Logger) -> None:
        self._logger = logger

    def resolve(self, spec: Optional[AuthenticationSpec]) -> Dict[str, str]:
        """
        Headers to apply on top of the caller's headers. An empty mapping when
        the request carries no authentication.
        """
        if spec is None:
            return {}
        try:
            headers = self._headers_for(spec)
        except AuthConfigurationError:
            raise
        except (TypeError, ValueError, UnicodeError) as exc:
            raise ServerMisconfigurationError(
                "Failed to configure authentication.", details=str(exc)
            ) from exc
        # names only; values are credentials
        log_stage(
            self._logger, "authenticate", "auth.headers_built",
            request_id=current_request_id(),
            auth_kind=spec.type,
            header_names=sorted(headers),
        )
        return headers

    @staticmethod
    def _headers_for(spec: AuthenticationSpec) -> Dict[str, str]:
        if isinstance(spec, ApiKeyAuth):
            return {spec.header_name: f"{spec.prefix}{spec.key}"}
        if isinstance(spec, BearerTokenAuth):
            return {AUTHORIZATION: f"Bearer {spec.token}"}
        if isinstance(spec, BasicAuth):
            return {AUTHORIZATION: basic_credentials(spec.username, spec.password)}
        raise AuthConfigurationError(
            f"Unsupported authentication type: '{getattr(spec, 'type', spec)}'."
        )


__all__ = ["AuthenticationResolver", "basic_credentials"]
