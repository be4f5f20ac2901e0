"""
Linked-data payloads.

rdflib parses the document in a worker thread; a store hook forwards every
quad as soon as the parser asserts it, through a bounded asyncio queue, to a
consumer task on the event loop. The two sides are joined so that a parser
error always wins over the consumer having seen the end marker.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import traceback
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import rdflib
from rdflib import BNode, Graph, Literal, URIRef
from rdflib.graph import DATASET_DEFAULT_GRAPH_ID
from rdflib.namespace import XSD
from rdflib.parser import Parser
from rdflib.plugin import PluginException
from rdflib.plugins.stores.memory import Memory

from core_config.constants import RDF_STREAM_BUFFER
from core_http.headers import media_type
from core_logging import log_stage, current_request_id

from ..errors import ParseFailureError, ServerMisconfigurationError
from ..models import PayloadFormat, RdfOptions, RequestEnvelope
from .base import ContentParser, ParseInput

# media type → rdflib parser plugin
MEDIA_TYPE_FORMATS: Dict[str, str] = {
    "text/turtle": "turtle",
    "application/x-turtle": "turtle",
    "application/n-triples": "nt",
    "application/n-quads": "nquads",
    "application/trig": "trig",
    "application/trix": "trix",
    "text/n3": "n3",
    "text/rdf+n3": "n3",
    "application/rdf+xml": "xml",
    "application/ld+json": "json-ld",
    "application/json": "json-ld",
}

# path suffix → rdflib parser plugin, used only when no media type is known
EXTENSION_FORMATS: Dict[str, str] = {
    ".ttl": "turtle",
    ".turtle": "turtle",
    ".nt": "nt",
    ".nq": "nquads",
    ".trig": "trig",
    ".trix": "trix",
    ".n3": "n3",
    ".rdf": "xml",
    ".owl": "xml",
    ".jsonld": "json-ld",
    ".json": "json-ld",
}

RDF_LANG_STRING = "http://www.w3.org/1999/02/22-rdf-syntax-ns#langString"
DEFAULT_GRAPH = URIRef("urn:x-fetcher:default-graph")

_END = object()

Quad = Dict[str, Dict[str, Any]]


class _ChannelClosed(Exception):
    """Raised inside the producer once the consumer side has gone away."""


class _ChannelStore(Memory):
    """In-memory store that also hands every asserted quad to *listener*."""

    def __init__(self, listener: Callable[[Tuple[Any, Any, Any], Graph], None]) -> None:
        super().__init__()
        self._listener = listener

    def add(self, triple, context, quoted=False):
        super().add(triple, context, quoted)
        # quoted formulae (N3) are not part of the asserted data
        if not quoted:
            self._listener(triple, context)


class QuadEncoder:
    """
    rdflib terms → plain term records. Blank nodes get ``b0, b1, …`` in order
    of first appearance so two parses of the same document compare equal.
    """

    def __init__(self, default_graph: URIRef = DEFAULT_GRAPH) -> None:
        self._default_graph = default_graph
        self._blank_labels: Dict[str, str] = {}

    def term(self, node: Any) -> Dict[str, Any]:
        if isinstance(node, BNode):
            label = self._blank_labels.setdefault(str(node), f"b{len(self._blank_labels)}")
            return {"termType": "BlankNode", "value": label}
        if isinstance(node, Literal):
            if node.language:
                datatype, language = RDF_LANG_STRING, node.language
            else:
                datatype, language = str(node.datatype or XSD.string), ""
            return {
                "termType": "Literal",
                "value": str(node),
                "language": language,
                "datatype": {"termType": "NamedNode", "value": datatype},
            }
        if isinstance(node, URIRef):
            return {"termType": "NamedNode", "value": str(node)}
        return {"termType": type(node).__name__, "value": str(node)}

    def graph(self, context: Any) -> Dict[str, Any]:
        identifier = getattr(context, "identifier", context)
        if identifier is None or identifier in (self._default_graph, DATASET_DEFAULT_GRAPH_ID):
            return {"termType": "DefaultGraph", "value": ""}
        return self.term(identifier)

    def quad(self, triple: Tuple[Any, Any, Any], context: Any) -> Quad:
        s, p, o = triple
        return {
            "subject": self.term(s),
            "predicate": self.term(p),
            "object": self.term(o),
            "graph": self.graph(context),
        }


def resolve_rdf_format(
    options: RdfOptions,
    upstream_content_type: Optional[str],
    source_url: str,
) -> Tuple[Optional[str], str, Optional[str]]:
    """
    ``(rdflib format | None, source, media type or suffix considered)``.

    Precedence: the caller's ``rdf.contentType``, then the upstream
    ``Content-Type``, then the file suffix of the base IRI or target URL.
    """
    for source, value in (("override", options.content_type), ("upstream", upstream_content_type)):
        mt = media_type(value)
        if mt:
            return MEDIA_TYPE_FORMATS.get(mt), source, mt
    for candidate in (options.base_iri, source_url):
        if not candidate:
            continue
        path = urlsplit(candidate).path.lower()
        for suffix, fmt in EXTENSION_FORMATS.items():
            if path.endswith(suffix):
                return fmt, "detected", suffix
    return None, "detected", None


class RdfContentParser(ContentParser):
    format = PayloadFormat.rdf

    def __init__(self, *, logger: logging.Logger, buffer_size: int = RDF_STREAM_BUFFER) -> None:
        super().__init__(logger=logger)
        self._buffer_size = max(1, int(buffer_size))

    def options_for(self, envelope: RequestEnvelope) -> RdfOptions:
        return envelope.rdf_options

    async def parse(self, payload: ParseInput, options: Optional[RdfOptions] = None) -> List[Quad]:
        opts = options or RdfOptions()
        fmt, source, considered = resolve_rdf_format(opts, payload.content_type, payload.source_url)
        if source == "detected":
            self._logger.warning(
                "rdf_content_type_unresolved",
                extra={
                    "stage": "parse",
                    "request_id": current_request_id(),
                    "detected_format": fmt,
                    "suffix": considered,
                },
            )
        if fmt is None:
            reason = (
                f"Unsupported content type '{considered}'."
                if considered and source != "detected"
                else "Unable to determine the RDF serialization."
            )
            raise ParseFailureError(
                f"Failed to parse RDF response from external API: {reason}",
                details={"contentType": considered, "source": source},
            )
        try:
            rdflib.plugin.get(fmt, Parser)
        except PluginException as exc:
            raise ServerMisconfigurationError(
                f"RDF parser for '{fmt}' is not available.", details=str(exc)
            ) from exc

        base_iri = opts.base_iri or payload.source_url
        try:
            quads = await self._stream(payload.text(), fmt, base_iri)
        except Exception as exc:
            log_stage(
                self._logger, "parse", "rdf.parse_failed",
                request_id=current_request_id(),
                rdf_format=fmt, error_type=exc.__class__.__name__, error=str(exc),
            )
            raise ParseFailureError(
                f"Failed to parse RDF response from external API: {exc}",
                details="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            ) from exc

        log_stage(
            self._logger, "parse", "rdf.parsed",
            request_id=current_request_id(),
            rdf_format=fmt, format_source=source, quads=len(quads),
        )
        return quads

    async def _stream(self, text: str, fmt: str, base_iri: str) -> List[Quad]:
        loop = asyncio.get_running_loop()
        channel: asyncio.Queue = asyncio.Queue(maxsize=self._buffer_size)
        closed = threading.Event()
        encoder = QuadEncoder()

        def put(item: Any) -> None:
            if closed.is_set():
                raise _ChannelClosed()
            asyncio.run_coroutine_threadsafe(channel.put(item), loop).result()

        def emit(triple, context) -> None:
            put(encoder.quad(triple, context))

        def produce() -> None:
            sink = Graph(store=_ChannelStore(emit), identifier=DEFAULT_GRAPH)
            sink.parse(data=text, format=fmt, publicID=base_iri)
            put(_END)

        async def consume() -> List[Quad]:
            records: List[Quad] = []
            while True:
                item = await channel.get()
                if item is _END:
                    return records
                records.append(item)

        producer = asyncio.ensure_future(asyncio.to_thread(produce))
        consumer = asyncio.ensure_future(consume())
        try:
            await asyncio.wait({producer, consumer}, return_when=asyncio.FIRST_EXCEPTION)
            if producer.done():
                # re-raises the parser's error before looking at the consumer
                producer.result()
            return await consumer
        finally:
            closed.set()
            if not consumer.done():
                consumer.cancel()
            if not producer.done():
                producer.add_done_callback(self._producer_abandoned)
            while not channel.empty():
                channel.get_nowait()

    def _producer_abandoned(self, task: "asyncio.Future[Any]") -> None:
        exc = None if task.cancelled() else task.exception()
        log_stage(
            self._logger, "parse", "rdf.producer_stopped",
            error_type=exc.__class__.__name__ if exc else None,
        )


__all__ = [
    "RdfContentParser",
    "QuadEncoder",
    "resolve_rdf_format",
    "MEDIA_TYPE_FORMATS",
    "EXTENSION_FORMATS",
]
