from __future__ import annotations

from typing import Any

from core_logging import log_stage, current_request_id
from core_utils import jsonx

from ..errors import ParseFailureError
from ..models import PayloadFormat
from .base import ContentParser, ParseInput


class JsonContentParser(ContentParser):
    format = PayloadFormat.json

    async def parse(self, payload: ParseInput, options: Any = None) -> Any:
        try:
            data = jsonx.loads(payload.body)
        except ValueError as exc:
            log_stage(
                self._logger, "parse", "json.parse_failed",
                request_id=current_request_id(), error=str(exc),
                body_bytes=len(payload.body),
            )
            raise ParseFailureError(
                "Failed to parse JSON response from external API.", details=str(exc)
            ) from exc
        log_stage(
            self._logger, "parse", "json.parsed",
            request_id=current_request_id(), body_bytes=len(payload.body),
        )
        return data


__all__ = ["JsonContentParser"]
