"""
Request-side data model of the fetch gateway.

The wire envelope uses camelCase (``apiUrl``, ``dataType``, ``headerName`` …);
models accept both the wire alias and the Python field name.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PayloadFormat(str, Enum):
    json = "json"
    xml = "xml"
    rdf = "rdf"

    @property
    def label(self) -> str:
        return self.value.upper()


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ── Authentication: closed union keyed by ``type`` ─────────────────────────
class ApiKeyAuth(_Wire):
    type: Literal["apiKey"] = "apiKey"
    key: str
    header_name: str = Field(alias="headerName")
    prefix: str = ""


class BearerTokenAuth(_Wire):
    type: Literal["bearerToken"] = "bearerToken"
    token: str


class BasicAuth(_Wire):
    type: Literal["basicAuth"] = "basicAuth"
    username: str
    # Presence is required, truthiness is not: "" is a valid password.
    password: str


AuthenticationSpec = Annotated[
    Union[ApiKeyAuth, BearerTokenAuth, BasicAuth],
    Field(discriminator="type"),
]

AUTH_KINDS: tuple[str, ...] = ("apiKey", "bearerToken", "basicAuth")


# ── Format-specific options ────────────────────────────────────────────────
class XmlParserOptions(BaseModel):
    """Tree-markup parsing flags; unknown flags are accepted and ignored."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    ignore_attributes: bool = Field(default=True, alias="ignoreAttributes")
    attribute_name_prefix: str = Field(default="@_", alias="attributeNamePrefix")
    text_node_name: str = Field(default="#text", alias="textNodeName")
    trim_values: bool = Field(default=True, alias="trimValues")
    parse_tag_value: bool = Field(default=True, alias="parseTagValue")
    parse_attribute_value: bool = Field(default=False, alias="parseAttributeValue")
    remove_ns_prefix: bool = Field(default=False, alias="removeNSPrefix")
    always_create_text_node: bool = Field(default=False, alias="alwaysCreateTextNode")


class RdfOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    content_type: Optional[str] = Field(default=None, alias="contentType")
    base_iri: Optional[str] = Field(default=None, alias="baseIRI")


# ── Envelope ───────────────────────────────────────────────────────────────
class RequestEnvelope(_Wire):
    target_url: str = Field(alias="apiUrl")
    format: PayloadFormat = Field(alias="dataType")
    method: str = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = None
    authentication: Optional[AuthenticationSpec] = None
    timeout_ms: Optional[int] = Field(default=None, alias="timeoutMs")
    xml_options: XmlParserOptions = Field(default_factory=XmlParserOptions, alias="xmlParserOptions")
    rdf_options: RdfOptions = Field(default_factory=RdfOptions, alias="rdf")

    @property
    def has_body(self) -> bool:
        return self.body is not None and self.body != ""


__all__ = [
    "PayloadFormat",
    "ApiKeyAuth",
    "BearerTokenAuth",
    "BasicAuth",
    "AuthenticationSpec",
    "AUTH_KINDS",
    "XmlParserOptions",
    "RdfOptions",
    "RequestEnvelope",
]
