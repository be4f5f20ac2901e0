import base64

import pytest

from fetcher.auth import AuthenticationResolver
from fetcher.models import ApiKeyAuth, BasicAuth, BearerTokenAuth


@pytest.fixture
def resolver(logger):
    return AuthenticationResolver(logger=logger)


def test_no_authentication_means_no_headers(resolver):
    assert resolver.resolve(None) == {}


def test_api_key_with_prefix(resolver):
    spec = ApiKeyAuth(key="secret", header_name="X-API-Key", prefix="Key ")
    assert resolver.resolve(spec) == {"X-API-Key": "Key secret"}


def test_api_key_without_prefix(resolver):
    assert resolver.resolve(ApiKeyAuth(key="secret", header_name="X-API-Key")) == {"X-API-Key": "secret"}


def test_bearer_token(resolver):
    assert resolver.resolve(BearerTokenAuth(token="abc.def")) == {"Authorization": "Bearer abc.def"}


def test_basic_auth(resolver):
    assert resolver.resolve(BasicAuth(username="user", password="pass")) == {
        "Authorization": "Basic dXNlcjpwYXNz"
    }


def test_basic_auth_encodes_utf8(resolver):
    expected = base64.b64encode("jürgen:pässword".encode("utf-8")).decode("ascii")
    assert resolver.resolve(BasicAuth(username="jürgen", password="pässword")) == {
        "Authorization": f"Basic {expected}"
    }


def test_basic_auth_empty_password(resolver):
    assert resolver.resolve(BasicAuth(username="user", password="")) == {
        "Authorization": "Basic " + base64.b64encode(b"user:").decode("ascii")
    }
