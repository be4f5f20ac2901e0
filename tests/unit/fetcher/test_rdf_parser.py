import logging

import pytest

from fetcher.errors import ParseFailureError
from fetcher.models import RdfOptions
from fetcher.parsers import ParseInput, RdfContentParser
from fetcher.parsers.rdf_parser import resolve_rdf_format

pytest.importorskip("pytest_asyncio")

XSD_STRING = "http://www.w3.org/2001/XMLSchema#string"
LANG_STRING = "http://www.w3.org/1999/02/22-rdf-syntax-ns#langString"

TURTLE_RELATIVE = b'<#subject1> <#predicate1> "object1" .\n'


@pytest.fixture
def rdf_logger():
    # Propagates to the root logger so caplog sees the records
    return logging.getLogger("tests.rdf")


def _input(body: bytes, *, content_type=None, url="https://api.example.com/data") -> ParseInput:
    return ParseInput(body=body, content_type=content_type, encoding="utf-8", source_url=url)


def test_content_type_precedence():
    override = RdfOptions(content_type="text/turtle")
    assert resolve_rdf_format(override, "application/ld+json", "https://a/x.nt")[:2] == ("turtle", "override")
    assert resolve_rdf_format(RdfOptions(), "application/n-triples; charset=utf-8", "https://a/x.ttl")[:2] == ("nt", "upstream")
    assert resolve_rdf_format(RdfOptions(), None, "https://a/dump.ttl?page=2")[:2] == ("turtle", "detected")
    assert resolve_rdf_format(RdfOptions(base_iri="https://a/doc.jsonld"), None, "https://a/x")[:2] == ("json-ld", "detected")
    assert resolve_rdf_format(RdfOptions(), None, "https://a/data")[0] is None
    assert resolve_rdf_format(RdfOptions(), "text/html", "https://a/x.ttl")[0] is None


@pytest.mark.asyncio
async def test_base_iri_resolves_relative_iris(rdf_logger):
    opts = RdfOptions(content_type="text/turtle", base_iri="https://api.example.com/base/")
    quads = await RdfContentParser(logger=rdf_logger).parse(_input(TURTLE_RELATIVE), opts)
    assert quads == [{
        "subject": {"termType": "NamedNode", "value": "https://api.example.com/base/#subject1"},
        "predicate": {"termType": "NamedNode", "value": "https://api.example.com/base/#predicate1"},
        "object": {
            "termType": "Literal",
            "value": "object1",
            "language": "",
            "datatype": {"termType": "NamedNode", "value": XSD_STRING},
        },
        "graph": {"termType": "DefaultGraph", "value": ""},
    }]


@pytest.mark.asyncio
async def test_target_url_is_the_default_base(rdf_logger):
    quads = await RdfContentParser(logger=rdf_logger).parse(
        _input(TURTLE_RELATIVE, content_type="text/turtle", url="https://api.example.com/doc"),
    )
    assert quads[0]["subject"]["value"] == "https://api.example.com/doc#subject1"


@pytest.mark.asyncio
async def test_language_literal_and_named_graph(rdf_logger):
    body = b'<http://ex/s> <http://ex/p> "hallo"@de <http://ex/g> .\n'
    quads = await RdfContentParser(logger=rdf_logger).parse(_input(body, content_type="application/n-quads"))
    assert quads[0]["object"] == {
        "termType": "Literal",
        "value": "hallo",
        "language": "de",
        "datatype": {"termType": "NamedNode", "value": LANG_STRING},
    }
    assert quads[0]["graph"] == {"termType": "NamedNode", "value": "http://ex/g"}


@pytest.mark.asyncio
async def test_blank_nodes_are_relabelled_stably(rdf_logger):
    body = b"_:x <http://ex/p> _:y .\n_:y <http://ex/p> _:x .\n"
    parser = RdfContentParser(logger=rdf_logger)
    first = await parser.parse(_input(body, content_type="application/n-triples"))
    second = await parser.parse(_input(body, content_type="application/n-triples"))
    assert first == second
    assert [q["subject"]["value"] for q in first] == ["b0", "b1"]
    assert [q["object"]["value"] for q in first] == ["b1", "b0"]


@pytest.mark.asyncio
async def test_order_is_document_order(rdf_logger):
    body = b"".join(
        f'<http://ex/s> <http://ex/p> "{i}" .\n'.encode() for i in range(50)
    )
    quads = await RdfContentParser(logger=rdf_logger, buffer_size=4).parse(
        _input(body, content_type="application/n-triples")
    )
    assert [q["object"]["value"] for q in quads] == [str(i) for i in range(50)]


@pytest.mark.asyncio
async def test_error_after_valid_quads_wins(rdf_logger):
    body = (
        b'<http://ex/s> <http://ex/p> "a" .\n'
        b'<http://ex/s> <http://ex/p> "b" .\n'
        b"<http://ex/s> <http://ex/p> .\n"
    )
    with pytest.raises(ParseFailureError) as ei:
        await RdfContentParser(logger=rdf_logger, buffer_size=1).parse(
            _input(body, content_type="text/turtle")
        )
    assert ei.value.message.startswith("Failed to parse RDF response from external API: ")
    assert "Traceback" in ei.value.details


@pytest.mark.asyncio
async def test_unknown_media_type(rdf_logger):
    with pytest.raises(ParseFailureError) as ei:
        await RdfContentParser(logger=rdf_logger).parse(_input(TURTLE_RELATIVE, content_type="text/html"))
    assert "text/html" in ei.value.message


@pytest.mark.asyncio
async def test_detected_format_logs_warning(rdf_logger, caplog):
    caplog.set_level(logging.WARNING, logger="tests.rdf")
    quads = await RdfContentParser(logger=rdf_logger).parse(
        _input(b'<http://ex/s> <http://ex/p> "o" .\n', url="https://api.example.com/dump.nt")
    )
    assert len(quads) == 1
    assert any(r.getMessage() == "rdf_content_type_unresolved" for r in caplog.records)


@pytest.mark.asyncio
async def test_ambiguous_payload_fails_with_warning(rdf_logger, caplog):
    caplog.set_level(logging.WARNING, logger="tests.rdf")
    with pytest.raises(ParseFailureError) as ei:
        await RdfContentParser(logger=rdf_logger).parse(_input(TURTLE_RELATIVE))
    assert "Failed to parse RDF response" in ei.value.message
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert [r.getMessage() for r in warnings] == ["rdf_content_type_unresolved"]
