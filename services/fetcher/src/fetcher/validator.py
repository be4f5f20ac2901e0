"""
Inbound envelope validation.

Checks run in a fixed precedence and the first violation wins, so a caller
always gets the same message for the same broken request.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

from pydantic import ValidationError

from core_config.constants import DEFAULT_METHOD
from core_logging import log_stage, current_request_id
from core_utils import jsonx

from .errors import AuthConfigurationError, InputValidationError
from .models import (
    AUTH_KINDS,
    ApiKeyAuth,
    AuthenticationSpec,
    BasicAuth,
    BearerTokenAuth,
    PayloadFormat,
    RdfOptions,
    RequestEnvelope,
    XmlParserOptions,
)


def _blank(value: Any) -> bool:
    return value is None or value == "" or value is False


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def _scalar_text(value: Any) -> Optional[str]:
    """Credential value as header text; ``None`` when absent or not a scalar."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return None


class RequestEnvelopeValidator:
    """Turn raw inbound bytes into a :class:`RequestEnvelope` for one entry point."""

    def __init__(self, expected: PayloadFormat, *, logger: logging.Logger) -> None:
        self.expected = expected
        self._logger = logger

    def validate(self, raw: bytes | str) -> RequestEnvelope:
        doc = self._decode(raw)

        api_url = doc.get("apiUrl")
        if _blank(api_url):
            raise InputValidationError("Missing 'apiUrl' in request body.")
        if not isinstance(api_url, str):
            raise InputValidationError("Invalid 'apiUrl'. Expected a string.")

        data_type = doc.get("dataType")
        if _blank(data_type):
            raise InputValidationError("Missing 'dataType' in request body.")
        if data_type != self.expected.value:
            raise InputValidationError(
                f"Invalid 'dataType'. Expected '{self.expected.value}', got '{data_type}'."
            )

        authentication = self._authentication(doc.get("authentication"))

        envelope = RequestEnvelope(
            target_url=api_url,
            format=self.expected,
            method=self._method(doc.get("method")),
            headers=self._headers(doc.get("headers")),
            body=doc.get("body"),
            authentication=authentication,
            timeout_ms=self._timeout(doc.get("timeoutMs")),
            xml_options=self._options(doc, "xmlParserOptions", XmlParserOptions, PayloadFormat.xml),
            rdf_options=self._options(doc, "rdf", RdfOptions, PayloadFormat.rdf),
        )
        log_stage(
            self._logger, "validate", "envelope.accepted",
            request_id=current_request_id(),
            format=self.expected.value,
            method=envelope.method,
            target_host=urlsplit(api_url).hostname or "",
            auth_kind=authentication.type if authentication else None,
            has_body=envelope.has_body,
        )
        return envelope

    # ── steps ──────────────────────────────────────────────────────────────
    @staticmethod
    def _decode(raw: bytes | str) -> Dict[str, Any]:
        try:
            doc = jsonx.loads(raw)
        except ValueError as exc:
            raise InputValidationError("Invalid JSON in request body.", details=str(exc)) from exc
        if not isinstance(doc, dict):
            raise InputValidationError(
                "Invalid JSON in request body.",
                details=f"Expected a JSON object, got {type(doc).__name__}.",
            )
        return doc

    @staticmethod
    def _authentication(raw: Any) -> Optional[AuthenticationSpec]:
        if _blank(raw):
            return None
        if not isinstance(raw, Mapping) or _blank(raw.get("type")) or _blank(raw.get("credentials")):
            raise InputValidationError(
                "Invalid 'authentication' object. Missing 'type' or 'credentials'."
            )
        kind = raw["type"]
        if kind not in AUTH_KINDS:
            raise AuthConfigurationError(f"Unsupported authentication type: '{kind}'.")

        creds = raw["credentials"]
        if not isinstance(creds, Mapping):
            creds = {}

        if kind == "apiKey":
            key, header_name = _scalar_text(creds.get("key")), _scalar_text(creds.get("headerName"))
            if not key or not header_name:
                raise InputValidationError(
                    "Invalid 'apiKey' credentials. Missing 'key' or 'headerName'."
                )
            prefix = _scalar_text(creds.get("prefix")) if not _blank(creds.get("prefix")) else ""
            if prefix is None:
                raise InputValidationError("Invalid 'apiKey' prefix. Expected a string.")
            return ApiKeyAuth(key=key, header_name=header_name, prefix=prefix)

        if kind == "bearerToken":
            token = _scalar_text(creds.get("token"))
            if not token:
                raise InputValidationError("Invalid 'bearerToken' credentials. Missing 'token'.")
            return BearerTokenAuth(token=token)

        # basicAuth: the password only has to be present
        username, password = _scalar_text(creds.get("username")), _scalar_text(creds.get("password"))
        if not username or password is None:
            raise InputValidationError(
                "Invalid 'basicAuth' credentials. Missing 'username' or 'password'."
            )
        return BasicAuth(username=username, password=password)

    @staticmethod
    def _method(raw: Any) -> str:
        if raw is None:
            return DEFAULT_METHOD
        if not _is_text(raw) or not raw.strip():
            raise InputValidationError("Invalid 'method'. Expected a non-empty string.")
        return raw.strip().upper()

    @staticmethod
    def _headers(raw: Any) -> Dict[str, str]:
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise InputValidationError("Invalid 'headers'. Expected an object of string values.")
        out: Dict[str, str] = {}
        for name, value in raw.items():
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise InputValidationError(
                    "Invalid 'headers'. Expected an object of string values.",
                    details={"header": name},
                )
            out[name] = str(value)
        return out

    @staticmethod
    def _timeout(raw: Any) -> Optional[int]:
        if raw is None:
            return None
        if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
            raise InputValidationError("Invalid 'timeoutMs'. Expected a positive integer.")
        return raw

    def _options(self, doc: Mapping[str, Any], field: str, model, fmt: PayloadFormat):
        raw = doc.get(field)
        # Options of the other formats are not this entry point's business
        if raw is None or fmt is not self.expected:
            return model()
        if not isinstance(raw, Mapping):
            raise InputValidationError(f"Invalid '{field}'. Expected an object.")
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            raise InputValidationError(
                f"Invalid '{field}'.",
                details=jsonx.sanitize(exc.errors(include_url=False)),
            ) from exc


__all__ = ["RequestEnvelopeValidator"]
