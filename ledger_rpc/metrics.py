from __future__ import annotations

"""
Prometheus metrics for the RPC service.

- Exposes a /metrics endpoint (text/plain; version=0.0.4).
- Provides HTTP request counters & latency histograms.
- Provides JSON-RPC method-level metrics via explicit hooks.
- Counts ledger round-trips by operation and outcome.
- Optional support for multiprocess mode if PROMETHEUS_MULTIPROC_DIR is set.

Usage
-----
from ledger_rpc.metrics import mount_metrics, http_metrics_middleware, rpc_metrics

app = FastAPI()
mount_metrics(app)                        # adds GET /metrics
app.add_middleware(http_metrics_middleware)

# In the JSON-RPC dispatcher:
obs = rpc_metrics.observe_jsonrpc("eth_getBlockByNumber")
try:
    result = handler(...)
    obs.ok()
except RpcError as e:
    obs.error(str(e.code))
    raise

# Around a ledger call:
rpc_metrics.ledger_lookup("get_block", "ok")
"""

import os
import time

from fastapi import APIRouter, FastAPI, Request
from prometheus_client import (CONTENT_TYPE_LATEST, REGISTRY,
                               CollectorRegistry, Counter, Gauge, Histogram,
                               generate_latest)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response


def _registry() -> CollectorRegistry:
    mp_dir = os.getenv("PROMETHEUS_MULTIPROC_DIR")
    if mp_dir:
        # Multiprocess mode (Gunicorn/Uvicorn workers). You must clear the
        # dir on boot (handled by your process manager).
        from prometheus_client import multiprocess

        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return registry
    return REGISTRY  # default in-process registry


REG = _registry()


# ---- Metric definitions ----------------------------------------------------

# HTTP
HTTP_REQUESTS = Counter(
    "ledger_rpc_http_requests_total",
    "Total HTTP requests by method and path and status.",
    ["method", "path", "status"],
    registry=REG,
)

HTTP_LATENCY = Histogram(
    "ledger_rpc_http_request_duration_seconds",
    "HTTP request duration in seconds by method and path.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
    registry=REG,
)

# JSON-RPC
JSONRPC_CALLS = Counter(
    "ledger_rpc_jsonrpc_requests_total",
    "Total JSON-RPC method calls by method, status and code.",
    ["method", "status", "code"],
    registry=REG,
)
JSONRPC_LATENCY = Histogram(
    "ledger_rpc_jsonrpc_request_duration_seconds",
    "JSON-RPC method latency in seconds by method.",
    ["method"],
    buckets=(0.001, 0.003, 0.0075, 0.015, 0.03, 0.06, 0.12, 0.25, 0.5, 1, 2, 5),
    registry=REG,
)

# Ledger
LEDGER_LOOKUPS = Counter(
    "ledger_rpc_ledger_lookups_total",
    "Ledger round-trips by operation and outcome (ok, not_found, error).",
    ["op", "outcome"],
    registry=REG,
)
CHAIN_HEIGHT = Gauge(
    "ledger_rpc_chain_height",
    "Most recent chain height served by eth_blockNumber.",
    registry=REG,
)


# ---- HTTP Middleware -------------------------------------------------------


def _short_path(path: str) -> str:
    """
    Collapse high-cardinality path segments. Only a few stable paths become
    Prometheus labels; everything else is reported as '/other'.
    """
    if path in ("/rpc", "/metrics", "/healthz", "/readyz", "/version"):
        return path
    return "/other"


class _HttpMetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        method = request.method.upper()
        path = _short_path(request.url.path)

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            # Count error as 500 to avoid losing the event.
            elapsed = time.perf_counter() - start
            HTTP_REQUESTS.labels(method=method, path=path, status="500").inc()
            HTTP_LATENCY.labels(method=method, path=path).observe(elapsed)
            raise

        elapsed = time.perf_counter() - start
        HTTP_REQUESTS.labels(
            method=method, path=path, status=str(response.status_code)
        ).inc()
        HTTP_LATENCY.labels(method=method, path=path).observe(elapsed)
        return response


# exported alias for app.add_middleware(...)
http_metrics_middleware = _HttpMetricsMiddleware


# ---- JSON-RPC helper (explicit instrumentation) ---------------------------


class _RpcObservation:
    __slots__ = ("_method", "_start", "_ended")

    def __init__(self, method: str) -> None:
        self._method = method
        self._start = time.perf_counter()
        self._ended = False

    def _finish(self, status: str, code: str = "0") -> None:
        if self._ended:
            return
        self._ended = True
        dt = time.perf_counter() - self._start
        JSONRPC_CALLS.labels(method=self._method, status=status, code=code).inc()
        JSONRPC_LATENCY.labels(method=self._method).observe(dt)

    def ok(self) -> None:
        """Mark successful completion."""
        self._finish("ok", "0")

    def error(self, code: str = "internal") -> None:
        """Mark failed completion, with a string code label (e.g., '-32602')."""
        self._finish("error", code)


class _RpcMetrics:
    """
    Central helper for explicit JSON-RPC and ledger instrumentation.
    """

    def observe_jsonrpc(self, method: str) -> _RpcObservation:
        return _RpcObservation(method=method)

    def ledger_lookup(self, op: str, outcome: str) -> None:
        LEDGER_LOOKUPS.labels(op=op, outcome=outcome).inc()

    def set_height(self, height: int) -> None:
        CHAIN_HEIGHT.set(max(0, int(height)))


rpc_metrics = _RpcMetrics()


# ---- /metrics endpoint -----------------------------------------------------


def _metrics_handler() -> Response:
    data = generate_latest(REG)  # bytes
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


def mount_metrics(app: FastAPI) -> None:
    """
    Mount GET /metrics on the provided FastAPI app, ready for Prometheus to scrape.
    """
    router = APIRouter()
    router.add_api_route(
        "/metrics", _metrics_handler, methods=["GET"], include_in_schema=False
    )
    app.include_router(router)


__all__ = [
    "mount_metrics",
    "http_metrics_middleware",
    "rpc_metrics",
    "HTTP_REQUESTS",
    "HTTP_LATENCY",
    "JSONRPC_CALLS",
    "JSONRPC_LATENCY",
    "LEDGER_LOOKUPS",
    "CHAIN_HEIGHT",
]
