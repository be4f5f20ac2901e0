from typing import Type

import rdflib
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from rdflib.parser import Parser
from rdflib.plugin import PluginException

from core_config import get_settings
from core_config.constants import FETCHER_JSON_PATH, FETCHER_RDF_PATH, FETCHER_XML_PATH
from core_http.errors import attach_standard_error_handlers
from core_logging import get_logger, log_once_process
from core_utils.fastapi_bootstrap import setup_service
from core_utils.health import attach_health_routes

from .builder import render_error
from .models import PayloadFormat
from .parsers import PARSERS, ContentParser, RdfContentParser, missing_parsers
from .parsers.rdf_parser import MEDIA_TYPE_FORMATS
from .pipeline import FetchPipeline

settings = get_settings()
logger = get_logger("fetcher", settings.service_log_level)

app = FastAPI(title="Fetch Gateway", version="0.1.0")
setup_service(app, "fetcher", cors_origins=settings.cors_origins)
attach_standard_error_handlers(app, service="fetcher", render=render_error)

# Tests swap in an httpx.MockTransport; production lets httpx pick
app.state.outbound_transport = None


def _readiness() -> dict:
    missing = missing_parsers()
    rdf_missing = []
    for fmt in sorted(set(MEDIA_TYPE_FORMATS.values())):
        try:
            rdflib.plugin.get(fmt, Parser)
        except PluginException:
            rdf_missing.append(fmt)
    ready = not missing and not rdf_missing
    return {
        "ready": ready,
        "status": "ready" if ready else "degraded",
        "missing_parsers": missing,
        "missing_rdf_formats": rdf_missing,
    }


attach_health_routes(app, checks={"liveness": lambda: True, "readiness": _readiness})


def _build_parser(fmt: PayloadFormat) -> ContentParser:
    cls: Type[ContentParser] = PARSERS[fmt]
    child = get_logger(f"fetcher.parse.{fmt.value}")
    if cls is RdfContentParser:
        return RdfContentParser(logger=child, buffer_size=settings.rdf_stream_buffer)
    return cls(logger=child)


_JSON_PARSER = _build_parser(PayloadFormat.json)
_XML_PARSER = _build_parser(PayloadFormat.xml)
_RDF_PARSER = _build_parser(PayloadFormat.rdf)


async def _fetch(parser: ContentParser, request: Request) -> JSONResponse:
    pipeline = FetchPipeline(
        parser,
        settings=settings,
        logger=logger,
        transport=request.app.state.outbound_transport,
    )
    return await pipeline.run(await request.body())


@app.post(FETCHER_JSON_PATH)
async def fetch_json(request: Request):
    return await _fetch(_JSON_PARSER, request)


@app.post(FETCHER_XML_PATH)
async def fetch_xml(request: Request):
    return await _fetch(_XML_PARSER, request)


@app.post(FETCHER_RDF_PATH)
async def fetch_rdf(request: Request):
    return await _fetch(_RDF_PARSER, request)


@app.on_event("startup")
async def _announce() -> None:
    log_once_process(
        logger, "fetcher.startup", event="fetcher.startup",
        entry_points=[FETCHER_JSON_PATH, FETCHER_XML_PATH, FETCHER_RDF_PATH],
        environment=settings.environment,
        outbound_timeout_ms=settings.outbound_timeout_ms,
    )
