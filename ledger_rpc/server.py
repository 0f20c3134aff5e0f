from __future__ import annotations

import json
import logging
import typing as t

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from ledger_rpc import config as rpc_config
from ledger_rpc import deps
from ledger_rpc import errors as rpc_errors
from ledger_rpc import jsonrpc
from ledger_rpc import version as rpc_version
from ledger_rpc.client import LedgerClient
from ledger_rpc.metrics import mount_metrics
from ledger_rpc.middleware import apply_middleware

# -----------------------------------------------------------------------------
# Logger
# -----------------------------------------------------------------------------
log = logging.getLogger("ledger_rpc.server")

_RPC_USAGE = {
    "error": "Method not allowed",
    "hint": "Send JSON-RPC requests as POST with application/json to /rpc.",
    "examples": {
        "single": {"jsonrpc": "2.0", "method": "eth_blockNumber", "id": 1},
        "withParams": {
            "jsonrpc": "2.0",
            "method": "eth_getBlockByNumber",
            "params": ["latest", False],
            "id": "head",
        },
        "batch": [
            {"jsonrpc": "2.0", "method": "eth_blockNumber", "id": "a"},
            {
                "jsonrpc": "2.0",
                "method": "eth_getBlockTransactionCountByNumber",
                "params": ["0x0"],
                "id": "b",
            },
        ],
    },
}


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------
def create_app(
    cfg: rpc_config.RpcConfig | None = None, ledger: LedgerClient | None = None
) -> FastAPI:
    """
    Build the FastAPI app with:
      - /rpc  (JSON-RPC)
      - /metrics (when enabled)
      - /healthz, /readyz, /version

    If `ledger` is given it becomes the shared client immediately; otherwise the
    client is built from `cfg` (fixture or empty in-memory ledger) on startup.
    """
    cfg = cfg or rpc_config.load()

    # Basic logging if caller hasn't configured it
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=getattr(logging, cfg.log_level.upper(), logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    if ledger is not None:
        deps.set_ledger(ledger, cfg)

    app = FastAPI(
        title="ledger-rpc",
        version=rpc_version.__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.middleware("http")
    async def _method_not_allowed_hint(
        request: Request, call_next: t.Callable[[Request], t.Awaitable[Response]]
    ):
        if request.url.path.rstrip("/") == "/rpc" and request.method not in {"POST", "OPTIONS"}:
            return JSONResponse(_RPC_USAGE, status_code=405, headers={"Allow": "POST"})
        return await call_next(request)

    apply_middleware(app, cfg)

    # --- Lifecycle wiring ---
    @app.on_event("startup")
    async def _on_startup() -> None:
        log.info(
            "RPC server starting",
            extra={"host": cfg.host, "port": cfg.port, "fixture": str(cfg.fixture_path or "")},
        )
        await deps.startup(cfg)

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        log.info("RPC server stopping")
        await deps.shutdown()

    # --- Health endpoints ---
    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        return JSONResponse({"ok": True, "version": rpc_version.__version__})

    @app.get("/readyz")
    async def readyz() -> JSONResponse:
        ready, details = await deps.ready()
        return JSONResponse({"ready": ready, "details": details}, status_code=200 if ready else 503)

    @app.get("/version")
    async def version() -> JSONResponse:
        return JSONResponse(
            {"version": rpc_version.__version__, "build": rpc_version.version_with_git()}
        )

    # --- JSON-RPC ---
    @app.post("/rpc")
    async def rpc_endpoint(request: Request) -> Response:
        body = await request.body()
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            log.debug("unparseable JSON-RPC body: %s", e)
            return JSONResponse(rpc_errors.error_response(None, rpc_errors.ParseError()))

        result = await jsonrpc.dispatch(payload)
        if result is None:
            # notification(s) only
            return Response(status_code=204)
        return JSONResponse(result)

    if cfg.metrics_enabled:
        mount_metrics(app)

    @app.get("/")
    async def index() -> JSONResponse:
        endpoints = ["/rpc", "/healthz", "/readyz", "/version"]
        if cfg.metrics_enabled:
            endpoints.append("/metrics")
        return JSONResponse(
            {"name": "ledger-rpc", "version": rpc_version.__version__, "endpoints": endpoints}
        )

    return app


# -----------------------------------------------------------------------------
# Entrypoint (uvicorn)
# -----------------------------------------------------------------------------
def main() -> None:
    cfg = rpc_config.load()
    app = create_app(cfg)
    import uvicorn

    uvicorn.run(
        app,
        host=cfg.host,
        port=cfg.port,
        log_level=cfg.log_level.lower(),
        workers=1,
    )


if __name__ == "__main__":
    main()
