from __future__ import annotations

from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest


def attach_prometheus_endpoint(app: FastAPI, path: str = "/metrics") -> None:
    """Serve the default registry at *path*; a second call for the same path does nothing."""
    if any(getattr(route, "path", None) == path for route in app.router.routes):
        return

    async def scrape(_: Request) -> Response:
        return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    app.add_route(path, scrape, methods=["GET"], include_in_schema=False)
