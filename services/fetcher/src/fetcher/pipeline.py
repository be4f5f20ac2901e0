"""
One inbound request, start to finish: validate → authenticate → dispatch →
read → parse → respond. Any stage may short-circuit to the builder with a
:class:`GatewayError`.
"""
from __future__ import annotations

import logging
import time
from typing import Optional
from urllib.parse import urlsplit

import httpx

from core_config.constants import clamp_timeout_ms
from core_config.settings import Settings
from core_http.client import outbound_client
from core_logging import log_stage, current_request_id
from core_metrics import record_latency_ms

from .auth import AuthenticationResolver
from .builder import ResponseEnvelopeBuilder, Stage
from .dispatcher import BodyReadError, OutboundDispatcher
from .errors import GatewayError, InternalIOError
from .parsers import ContentParser, ParseInput
from .validator import RequestEnvelopeValidator


class FetchPipeline:
    def __init__(
        self,
        parser: ContentParser,
        *,
        settings: Settings,
        logger: logging.Logger,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.parser = parser
        self.format = parser.format
        self._settings = settings
        self._logger = logger
        self._transport = transport

    async def run(self, raw_body: bytes):
        builder = ResponseEnvelopeBuilder(self.format, logger=self._logger)
        try:
            envelope = RequestEnvelopeValidator(self.format, logger=self._logger).validate(raw_body)

            builder.enter(Stage.authenticating)
            auth_headers = AuthenticationResolver(logger=self._logger).resolve(envelope.authentication)

            builder.enter(Stage.dispatching)
            timeout_ms = clamp_timeout_ms(
                envelope.timeout_ms,
                default_ms=self._settings.outbound_timeout_ms,
                max_ms=self._settings.outbound_timeout_max_ms,
            )
            async with outbound_client(
                timeout_ms=timeout_ms,
                follow_redirects=self._settings.outbound_follow_redirects,
                transport=self._transport,
            ) as client:
                dispatcher = OutboundDispatcher(
                    client,
                    logger=self._logger,
                    user_agent=self._settings.outbound_user_agent,
                    max_body_bytes=self._settings.outbound_max_body_bytes,
                )
                outbound = dispatcher.prepare(envelope, auth_headers)
                t0 = time.perf_counter()
                response = await dispatcher.dispatch(outbound)
                try:
                    body = await response.read_body()
                except BodyReadError as exc:
                    raise InternalIOError(
                        f"Failed to read text response from external API for {self.format.label} parsing.",
                        details=str(exc),
                    ) from exc
                finally:
                    await response.aclose()
                record_latency_ms("fetcher_outbound_latency_ms", t0, format=self.format.value)

            builder.enter(Stage.parsing)
            payload = ParseInput(
                body=body,
                content_type=response.content_type,
                encoding=response.encoding,
                source_url=envelope.target_url,
            )
            with log_stage(self._logger, "parse", f"{self.format.value}.parse").ctx(
                request_id=current_request_id(),
                target_host=urlsplit(envelope.target_url).hostname or "",
            ):
                data = await self.parser.parse(payload, self.parser.options_for(envelope))
        except GatewayError as exc:
            return builder.failure(exc)
        return builder.success(data)


__all__ = ["FetchPipeline"]
