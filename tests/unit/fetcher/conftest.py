from typing import Callable, List

import httpx
import pytest
from fastapi.testclient import TestClient

from core_logging import get_logger
from fetcher.app import app


class Upstream:
    """Stands in for the external API: records requests, answers via ``handler``."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = \
            lambda request: httpx.Response(200, json={})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def client(upstream):
    app.state.outbound_transport = httpx.MockTransport(upstream)
    try:
        yield TestClient(app)
    finally:
        app.state.outbound_transport = None


@pytest.fixture
def logger():
    return get_logger("fetcher.tests")
