import httpx
import orjson
import pytest

from fetcher.dispatcher import AMBIGUOUS_BODY_MESSAGE

JSON_URL = "/api/fetchers/json"
XML_URL = "/api/fetchers/xml"
RDF_URL = "/api/fetchers/rdf"


class _BrokenStream(httpx.AsyncByteStream):
    async def __aiter__(self):
        yield b'{"partial":'
        raise httpx.ReadError("connection reset while reading")


def test_json_success(client, upstream):
    upstream.handler = lambda request: httpx.Response(200, json={"message": "Success!"})
    r = client.post(JSON_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "json"})
    assert r.status_code == 200
    assert r.json() == {"success": True, "data": {"message": "Success!"}}
    assert len(upstream.requests) == 1
    assert upstream.requests[0].method == "GET"
    assert str(upstream.requests[0].url) == "https://api.example.com/data"


def test_mismatched_data_type_makes_no_outbound_call(client, upstream):
    r = client.post(XML_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "json"})
    assert r.status_code == 400
    assert r.json() == {"success": False, "error": "Invalid 'dataType'. Expected 'xml', got 'json'."}
    assert upstream.requests == []


def test_malformed_inbound_body(client, upstream):
    r = client.post(JSON_URL, content=b"{oops", headers={"Content-Type": "application/json"})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "Invalid JSON in request body."
    assert body["details"]
    assert upstream.requests == []


def test_unsupported_auth_kind_is_400(client, upstream):
    r = client.post(JSON_URL, json={
        "apiUrl": "https://api.example.com/data", "dataType": "json",
        "authentication": {"type": "digest", "credentials": {"user": "u"}},
    })
    assert r.status_code == 400
    assert r.json()["error"] == "Unsupported authentication type: 'digest'."
    assert upstream.requests == []


@pytest.mark.parametrize("auth, header, value", [
    ({"type": "apiKey", "credentials": {"key": "k1", "headerName": "X-API-Key", "prefix": "Token "}},
     "X-API-Key", "Token k1"),
    ({"type": "bearerToken", "credentials": {"token": "tok"}}, "Authorization", "Bearer tok"),
    ({"type": "basicAuth", "credentials": {"username": "user", "password": "pass"}},
     "Authorization", "Basic dXNlcjpwYXNz"),
    ({"type": "basicAuth", "credentials": {"username": "user", "password": 1234}},
     "Authorization", "Basic dXNlcjoxMjM0"),
    ({"type": "apiKey", "credentials": {"key": 98765, "headerName": "X-API-Key"}},
     "X-API-Key", "98765"),
])
def test_authentication_headers_reach_upstream(client, upstream, auth, header, value):
    r = client.post(JSON_URL, json={
        "apiUrl": "https://api.example.com/data", "dataType": "json", "authentication": auth,
    })
    assert r.status_code == 200
    assert upstream.requests[0].headers[header] == value


def test_post_body_is_forwarded_as_json(client, upstream):
    r = client.post(JSON_URL, json={
        "apiUrl": "https://api.example.com/items", "dataType": "json",
        "method": "post", "body": {"name": "widget"}, "headers": {"X-Trace": "1"},
    })
    assert r.status_code == 200
    sent = upstream.requests[0]
    assert sent.method == "POST"
    assert sent.headers["Content-Type"] == "application/json"
    assert sent.headers["X-Trace"] == "1"
    assert orjson.loads(sent.content) == {"name": "widget"}


def test_ambiguous_body_is_rejected_before_dispatch(client, upstream):
    r = client.post(JSON_URL, json={
        "apiUrl": "https://api.example.com/items", "dataType": "json",
        "method": "POST", "body": {"name": "widget"}, "headers": {"Content-Type": "text/plain"},
    })
    assert r.status_code == 400
    assert r.json()["error"] == AMBIGUOUS_BODY_MESSAGE
    assert upstream.requests == []


def test_transport_failure_is_502(client, upstream):
    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    upstream.handler = refuse
    r = client.post(JSON_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "json"})
    assert r.status_code == 502
    assert r.json() == {
        "success": False,
        "error": "External API request failed (network error).",
        "details": "Connection refused",
    }


@pytest.mark.parametrize("status", [401, 403])
def test_upstream_auth_failure_passes_status_through(client, upstream, status):
    upstream.handler = lambda request: httpx.Response(status, text="nope")
    r = client.post(JSON_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "json"})
    assert r.status_code == status
    body = r.json()
    assert body["error"] == "Authentication failed with external API."
    assert body["details"]["originalStatus"] == status
    assert body["details"]["originalBody"] == "nope"


def test_upstream_failure_is_502(client, upstream):
    upstream.handler = lambda request: httpx.Response(404, text="missing")
    r = client.post(JSON_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "json"})
    assert r.status_code == 502
    assert r.json() == {
        "success": False,
        "error": "External API request failed.",
        "details": {"originalStatus": 404, "originalStatusText": "Not Found", "originalBody": "missing"},
    }


def test_unreadable_success_body_is_500(client, upstream):
    upstream.handler = lambda request: httpx.Response(200, stream=_BrokenStream())
    r = client.post(XML_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "xml"})
    assert r.status_code == 500
    assert r.json()["error"] == "Failed to read text response from external API for XML parsing."


def test_json_parse_failure_is_422(client, upstream):
    upstream.handler = lambda request: httpx.Response(200, text="<html>")
    r = client.post(JSON_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "json"})
    assert r.status_code == 422
    assert r.json()["error"] == "Failed to parse JSON response from external API."


def test_xml_success_with_attributes(client, upstream):
    upstream.handler = lambda request: httpx.Response(
        200, content=b"<root><item id='1'>Test</item><item id='2'>Data</item></root>",
        headers={"Content-Type": "application/xml"},
    )
    r = client.post(XML_URL, json={
        "apiUrl": "https://api.example.com/data.xml", "dataType": "xml",
        "xmlParserOptions": {"ignoreAttributes": False},
    })
    assert r.status_code == 200
    assert r.json()["data"] == {
        "root": {"item": [{"#text": "Test", "@_id": "1"}, {"#text": "Data", "@_id": "2"}]}
    }


def test_xml_missing_closing_tag_is_422(client, upstream):
    upstream.handler = lambda request: httpx.Response(200, content=b"<root><item>Test</item><item>Data</root")
    r = client.post(XML_URL, json={"apiUrl": "https://api.example.com/data.xml", "dataType": "xml"})
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "Failed to validate XML response: Malformed XML."
    assert body["details"]["code"] == "InvalidTag"


def test_rdf_with_base_iri(client, upstream):
    upstream.handler = lambda request: httpx.Response(
        200, content=b'<#subject1> <#predicate1> "object1" .\n',
        headers={"Content-Type": "text/turtle"},
    )
    r = client.post(RDF_URL, json={
        "apiUrl": "https://api.example.com/data", "dataType": "rdf",
        "rdf": {"baseIRI": "https://api.example.com/base/"},
    })
    assert r.status_code == 200
    data = r.json()["data"]
    assert data[0]["subject"] == {"termType": "NamedNode", "value": "https://api.example.com/base/#subject1"}
    assert data[0]["object"]["value"] == "object1"


def test_rdf_without_any_content_type_is_422(client, upstream):
    upstream.handler = lambda request: httpx.Response(200, content=b'<#s> <#p> "o" .\n')
    r = client.post(RDF_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "rdf"})
    assert r.status_code == 422
    body = r.json()
    assert body["success"] is False
    assert body["error"].startswith("Failed to parse RDF response from external API")


def test_rdf_syntax_error_is_422_with_trace(client, upstream):
    upstream.handler = lambda request: httpx.Response(
        200, content=b"<http://ex/s> <http://ex/p> .\n", headers={"Content-Type": "text/turtle"},
    )
    r = client.post(RDF_URL, json={"apiUrl": "https://api.example.com/data", "dataType": "rdf"})
    assert r.status_code == 422
    assert "Traceback" in r.json()["details"]


def test_repeated_requests_yield_identical_payloads(client, upstream):
    upstream.handler = lambda request: httpx.Response(
        200,
        content=b'_:a <http://ex/knows> _:b .\n_:b <http://ex/name> "Bob"@en .\n',
        headers={"Content-Type": "application/n-triples"},
    )
    req = {"apiUrl": "https://api.example.com/people", "dataType": "rdf"}
    first = client.post(RDF_URL, json=req)
    second = client.post(RDF_URL, json=req)
    assert first.status_code == second.status_code == 200
    assert first.content == second.content
