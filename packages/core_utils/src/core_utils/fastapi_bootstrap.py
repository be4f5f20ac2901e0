"""
Shared FastAPI wiring: tracing, request logging, ``/metrics``, CORS and
forwarded-header handling. Health routes stay with the service because
readiness is service specific.

Environment:
  CORS_ORIGINS   comma or space separated origins, used when none are passed
  PROXY_HEADERS  trust ``X-Forwarded-*`` from the ingress (default ``1``)
"""
from __future__ import annotations

import os
import re
from typing import Iterable

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from core_observability.fastapi import instrument_app


def split_origins(raw: str | Iterable[str] | None) -> list[str]:
    if raw is None:
        return []
    parts = re.split(r"[\s,]+", raw) if isinstance(raw, str) else list(raw)
    return [p.strip() for p in parts if p and p.strip()]


def setup_service(
    app: FastAPI,
    service_name: str,
    *,
    cors_origins: str | Iterable[str] | None = None,
    attach_metrics_endpoint: bool = True,
) -> None:
    instrument_app(app, service_name, attach_metrics_endpoint=attach_metrics_endpoint)

    origins = split_origins(cors_origins) or split_origins(os.getenv("CORS_ORIGINS"))
    if origins:
        # the gateway only exposes POST entry points and GET probes
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["POST", "GET", "OPTIONS"],
            allow_headers=["*"],
        )
    if os.getenv("PROXY_HEADERS", "1").lower() in ("1", "true", "yes"):
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")


__all__ = ["setup_service", "split_origins"]
