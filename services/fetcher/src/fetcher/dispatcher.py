"""
Outbound HTTP call on the caller's behalf.

The dispatcher owns header merging and body encoding, issues exactly one
request and classifies the outcome. It never retries.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

import httpx

from core_config.constants import BODY_METHODS, DEFAULT_OUTBOUND_CONTENT_TYPE
from core_http.headers import CONTENT_TYPE, USER_AGENT, find_header, header_names, merge_headers
from core_logging import log_stage, current_request_id
from core_utils import jsonx

from .errors import (
    InputValidationError,
    NetworkFailureError,
    UpstreamAuthFailureError,
    UpstreamFailureError,
)
from .models import RequestEnvelope

AMBIGUOUS_BODY_MESSAGE = (
    "Request body must be a string for non-JSON content types, "
    "or if 'Content-Type' is not 'application/json'."
)


class BodyReadError(Exception):
    """The upstream answered but its body could not be read in full."""


@dataclass(frozen=True)
class OutboundRequest:
    method: str
    url: str
    headers: Dict[str, str]
    content: Optional[Union[str, bytes]] = None


class OutboundResponse:
    """A received 2xx response whose body has not been read yet."""

    def __init__(self, response: httpx.Response, *, max_body_bytes: int = 0) -> None:
        self._response = response
        self._max_body_bytes = max_body_bytes

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def reason_phrase(self) -> str:
        return self._response.reason_phrase

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    @property
    def content_type(self) -> Optional[str]:
        return self._response.headers.get(CONTENT_TYPE)

    @property
    def encoding(self) -> str:
        return self._response.charset_encoding or "utf-8"

    @property
    def url(self) -> str:
        return str(self._response.url)

    async def read_body(self) -> bytes:
        chunks: list[bytes] = []
        total = 0
        try:
            async for chunk in self._response.aiter_bytes():
                total += len(chunk)
                if self._max_body_bytes and total > self._max_body_bytes:
                    raise BodyReadError(
                        f"Response body exceeds the {self._max_body_bytes} byte limit."
                    )
                chunks.append(chunk)
        except httpx.HTTPError as exc:
            raise BodyReadError(str(exc) or exc.__class__.__name__) from exc
        return b"".join(chunks)

    async def aclose(self) -> None:
        await self._response.aclose()


class OutboundDispatcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        logger: logging.Logger,
        user_agent: Optional[str] = None,
        max_body_bytes: int = 0,
    ) -> None:
        self._client = client
        self._logger = logger
        self._user_agent = user_agent
        self._max_body_bytes = max_body_bytes

    # ── request assembly ───────────────────────────────────────────────────
    def prepare(self, envelope: RequestEnvelope, auth_headers: Mapping[str, str]) -> OutboundRequest:
        defaults = {CONTENT_TYPE: DEFAULT_OUTBOUND_CONTENT_TYPE}
        if self._user_agent:
            defaults[USER_AGENT] = self._user_agent
        headers = merge_headers(defaults, envelope.headers, auth_headers)

        content: Optional[Union[str, bytes]] = None
        if envelope.method in BODY_METHODS and envelope.has_body:
            content = self._encode_body(envelope.body, find_header(headers, CONTENT_TYPE))
        return OutboundRequest(envelope.method, envelope.target_url, headers, content)

    @staticmethod
    def _encode_body(body: Any, content_type: Optional[str]) -> Union[str, bytes]:
        if isinstance(body, str):
            return body
        if content_type and "json" in content_type.lower():
            return jsonx.dumps_bytes(body)
        raise InputValidationError(AMBIGUOUS_BODY_MESSAGE)

    # ── call ───────────────────────────────────────────────────────────────
    async def dispatch(self, outbound: OutboundRequest) -> OutboundResponse:
        """
        Send *outbound* and return the still-unread 2xx response.

        Raises NetworkFailureError when nothing came back, and
        UpstreamAuthFailureError / UpstreamFailureError for non-2xx answers.
        """
        host = urlsplit(outbound.url).hostname or ""
        log_stage(
            self._logger, "dispatch", "outbound.sending",
            request_id=current_request_id(),
            method=outbound.method,
            target_host=host,
            header_names=list(header_names(outbound.headers)),
            has_body=outbound.content is not None,
        )
        t0 = time.perf_counter()
        try:
            request = self._client.build_request(
                outbound.method, outbound.url,
                headers=outbound.headers, content=outbound.content,
            )
            response = await self._client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # ValueError covers URLs and header values httpx refuses to encode
            message = str(exc) or exc.__class__.__name__
            log_stage(
                self._logger, "dispatch", "outbound.transport_failed",
                request_id=current_request_id(),
                target_host=host,
                error_type=exc.__class__.__name__,
                error=message,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise NetworkFailureError(
                "External API request failed (network error).", details=message
            ) from exc

        log_stage(
            self._logger, "dispatch", "outbound.received",
            request_id=current_request_id(),
            target_host=host,
            status_code=response.status_code,
            latency_ms=(time.perf_counter() - t0) * 1000,
        )
        if response.is_success:
            return OutboundResponse(response, max_body_bytes=self._max_body_bytes)

        try:
            details = {
                "originalStatus": response.status_code,
                "originalStatusText": response.reason_phrase,
                "originalBody": await self._best_effort_text(response),
            }
        finally:
            await response.aclose()
        if response.status_code in (401, 403):
            raise UpstreamAuthFailureError(
                "Authentication failed with external API.",
                upstream_status=response.status_code,
                details=details,
            )
        raise UpstreamFailureError("External API request failed.", details=details)

    @staticmethod
    async def _best_effort_text(response: httpx.Response) -> Optional[str]:
        try:
            await response.aread()
            return response.text
        except (httpx.HTTPError, UnicodeDecodeError, LookupError):
            return None


__all__ = [
    "AMBIGUOUS_BODY_MESSAGE",
    "BodyReadError",
    "OutboundRequest",
    "OutboundResponse",
    "OutboundDispatcher",
]
