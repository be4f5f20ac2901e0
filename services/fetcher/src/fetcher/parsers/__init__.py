"""
Format → parser registry. Each entry point picks its parser from here once,
at startup; nothing is chosen per request.
"""
from typing import Dict, Type

from ..models import PayloadFormat
from .base import ContentParser, ParseInput
from .json_parser import JsonContentParser
from .rdf_parser import RdfContentParser
from .xml_parser import XmlContentParser

PARSERS: Dict[PayloadFormat, Type[ContentParser]] = {
    PayloadFormat.json: JsonContentParser,
    PayloadFormat.xml: XmlContentParser,
    PayloadFormat.rdf: RdfContentParser,
}


def missing_parsers() -> list[str]:
    """Formats without a registered parser; empty when the registry is complete."""
    return [fmt.value for fmt in PayloadFormat if fmt not in PARSERS]


__all__ = [
    "PARSERS",
    "ContentParser",
    "ParseInput",
    "JsonContentParser",
    "XmlContentParser",
    "RdfContentParser",
    "missing_parsers",
]
