"""
ledger-rpc — Middleware wiring
==============================

`apply_middleware(app, cfg)` installs the standard stack on a FastAPI app:

1) HTTP metrics  → request counters/latency (when cfg.metrics_enabled).
2) Logging       → one structured access-log line per request.
3) CORS          → outermost, so headers are added even to error responses.

Starlette runs the most recently added middleware first, hence the reverse
installation order below.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.middleware.cors import CORSMiddleware

from ..metrics import http_metrics_middleware
from .logging import LoggingMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI  # pragma: no cover

    from ..config import RpcConfig  # pragma: no cover


def apply_middleware(app: "FastAPI", cfg: "RpcConfig") -> None:
    if cfg.metrics_enabled:
        app.add_middleware(http_metrics_middleware)

    app.add_middleware(LoggingMiddleware, request_body_sample=cfg.log_body_sample)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors.allow_origins,
        allow_credentials=cfg.cors.allow_credentials,
        allow_methods=cfg.cors.allow_methods,
        allow_headers=cfg.cors.allow_headers,
        max_age=3600,
    )


__all__ = ["apply_middleware", "LoggingMiddleware"]
