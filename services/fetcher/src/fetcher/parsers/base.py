from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..models import PayloadFormat, RequestEnvelope


@dataclass(frozen=True)
class ParseInput:
    """Upstream body plus the response facts a parser may need."""
    body: bytes
    content_type: Optional[str]
    encoding: str
    source_url: str

    def text(self) -> str:
        return self.body.decode(self.encoding or "utf-8", errors="replace")


class ContentParser(abc.ABC):
    """
    One implementation per payload format. ``parse`` returns the normalized
    payload or raises :class:`~fetcher.errors.ParseFailureError`.
    """

    format: PayloadFormat

    def __init__(self, *, logger: logging.Logger) -> None:
        self._logger = logger

    def options_for(self, envelope: RequestEnvelope) -> Any:
        return None

    @abc.abstractmethod
    async def parse(self, payload: ParseInput, options: Any = None) -> Any:
        raise NotImplementedError


__all__ = ["ParseInput", "ContentParser"]
