"""
Tree-markup payloads.

Two passes over the body: a well-formedness check with a bare expat parser
that reports *where* the document is broken, then the real conversion with
xmltodict driven by the caller's ``xmlParserOptions``.
"""
from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Tuple
from xml.parsers import expat
from xml.parsers.expat import errors as expat_errors

import xmltodict

from core_logging import log_stage, current_request_id

from ..errors import ParseFailureError
from ..models import PayloadFormat, RequestEnvelope, XmlParserOptions
from .base import ContentParser, ParseInput

# expat reason → defect code surfaced to callers
_DEFECT_CODES: Dict[str, str] = {
    expat_errors.XML_ERROR_TAG_MISMATCH: "InvalidTag",
    expat_errors.XML_ERROR_UNCLOSED_TOKEN: "InvalidTag",
    expat_errors.XML_ERROR_UNBOUND_PREFIX: "InvalidTag",
    expat_errors.XML_ERROR_DUPLICATE_ATTRIBUTE: "InvalidAttr",
    expat_errors.XML_ERROR_INVALID_TOKEN: "InvalidChar",
    expat_errors.XML_ERROR_PARTIAL_CHAR: "InvalidChar",
    expat_errors.XML_ERROR_BAD_CHAR_REF: "InvalidChar",
    expat_errors.XML_ERROR_UNDEFINED_ENTITY: "InvalidEntity",
    expat_errors.XML_ERROR_RECURSIVE_ENTITY_REF: "InvalidEntity",
    expat_errors.XML_ERROR_ASYNC_ENTITY: "InvalidEntity",
    expat_errors.XML_ERROR_BINARY_ENTITY_REF: "InvalidEntity",
}

# Reasons that mean "an element was left open" when raised inside one
_UNCLOSED_REASONS = {
    expat_errors.XML_ERROR_NO_ELEMENTS,
    expat_errors.XML_ERROR_UNCLOSED_TOKEN,
    expat_errors.XML_ERROR_TAG_MISMATCH,
}

_NUMBER = re.compile(r"[+-]?0*(?:\d+(?:\.\d+)?|\.\d+)(?:[eE][+-]?\d+)?")
_HEX = re.compile(r"[+-]?0x[0-9a-fA-F]+")
# integers beyond 64 bits stay text
_INT_LIMIT = 2 ** 63


def find_xml_defect(body: bytes) -> Optional[Dict[str, Any]]:
    """``None`` for a well-formed document, else ``{code, msg, line, col[, tag]}``."""
    open_tags: List[str] = []
    parser = expat.ParserCreate()
    parser.StartElementHandler = lambda name, attrs: open_tags.append(name)
    parser.EndElementHandler = lambda name: open_tags.pop()
    try:
        parser.Parse(body, True)
    except expat.ExpatError as exc:
        reason = expat_errors.messages.get(exc.code, str(exc))
        code = _DEFECT_CODES.get(reason, "InvalidXml")
        defect: Dict[str, Any] = {"code": code, "msg": reason, "line": exc.lineno, "col": exc.offset + 1}
        if reason in _UNCLOSED_REASONS and open_tags:
            defect["code"] = "InvalidTag"
            defect["msg"] = f"{reason}: '{open_tags[-1]}' is not closed properly."
            defect["tag"] = open_tags[-1]
        return defect
    return None


def _coerce_scalar(text: str) -> Any:
    """Booleans, decimal (leading zeros allowed), exponent and hex forms become values."""
    candidate = text.strip()
    if candidate in ("true", "false"):
        return candidate == "true"
    if _HEX.fullmatch(candidate):
        sign = -1 if candidate.startswith("-") else 1
        value = sign * int(candidate.lstrip("+-")[2:], 16)
    elif _NUMBER.fullmatch(candidate):
        if any(c in candidate for c in ".eE"):
            number = float(candidate)
            return number if math.isfinite(number) else text
        value = int(candidate)
    else:
        return text
    return value if -_INT_LIMIT < value < _INT_LIMIT else text


def _local_name(name: str) -> str:
    return name.split(":", 1)[1] if ":" in name else name


class _Postprocessor:
    """xmltodict hook applying the value and naming flags to each key/value."""

    def __init__(self, options: XmlParserOptions) -> None:
        self.o = options

    def __call__(self, path, key: str, value: Any) -> Optional[Tuple[str, Any]]:
        o = self.o
        prefix = o.attribute_name_prefix
        is_attr = bool(prefix) and key != o.text_node_name and key.startswith(prefix)

        if o.remove_ns_prefix:
            if is_attr:
                name = key[len(prefix):]
                if name == "xmlns" or name.startswith("xmlns:"):
                    return None
                key = prefix + _local_name(name)
            elif key != o.text_node_name:
                key = _local_name(key)

        if value is None:
            value = ""
        elif isinstance(value, str):
            if (o.parse_attribute_value if is_attr else o.parse_tag_value):
                value = _coerce_scalar(value)
        return key, value


class XmlContentParser(ContentParser):
    format = PayloadFormat.xml

    def options_for(self, envelope: RequestEnvelope) -> XmlParserOptions:
        return envelope.xml_options

    async def parse(self, payload: ParseInput, options: Optional[XmlParserOptions] = None) -> Any:
        opts = options or XmlParserOptions()

        defect = find_xml_defect(payload.body)
        if defect is not None:
            log_stage(
                self._logger, "parse", "xml.invalid",
                request_id=current_request_id(), defect=defect,
            )
            raise ParseFailureError("Failed to validate XML response: Malformed XML.", details=defect)

        try:
            data = xmltodict.parse(
                payload.body,
                xml_attribs=not opts.ignore_attributes,
                attr_prefix=opts.attribute_name_prefix,
                cdata_key=opts.text_node_name,
                strip_whitespace=opts.trim_values,
                force_cdata=opts.always_create_text_node,
                postprocessor=_Postprocessor(opts),
                dict_constructor=dict,
            )
        except (expat.ExpatError, ValueError, TypeError) as exc:
            log_stage(
                self._logger, "parse", "xml.parse_failed",
                request_id=current_request_id(), error=str(exc),
            )
            raise ParseFailureError(
                "Failed to parse XML response from external API.", details=str(exc)
            ) from exc

        log_stage(
            self._logger, "parse", "xml.parsed",
            request_id=current_request_id(),
            body_bytes=len(payload.body),
            root=next(iter(data), None) if isinstance(data, dict) else None,
        )
        return data


__all__ = ["XmlContentParser", "find_xml_defect"]
