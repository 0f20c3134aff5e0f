from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_LOG = logging.getLogger("ledger_rpc.access")


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def _get_client_ip(request: Request) -> str:
    # First hop of X-Forwarded-For; informational only
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    client = request.client
    return client.host if client else "-"


def _maybe_utf8(b: bytes, limit: int) -> str:
    if limit <= 0 or not b:
        return ""
    sample = b[:limit]
    try:
        s = sample.decode("utf-8", errors="strict")
    except UnicodeDecodeError:
        s = "0x" + sample.hex()
    if len(b) > limit:
        s += "…"
    return s


def _detect_jsonrpc_method(b: bytes) -> Optional[str]:
    if not b:
        return None
    try:
        obj = json.loads(b.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None

    if isinstance(obj, list) and obj:
        # batch: report the first member
        obj = obj[0]
    if isinstance(obj, dict):
        m = obj.get("method")
        return m if isinstance(m, str) else None
    return None


def _ensure_request_id(request: Request) -> str:
    return request.headers.get("x-request-id") or uuid.uuid4().hex


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Structured access logging.

    Emits a single JSON line per HTTP request on the "ledger_rpc.access" logger:
      {
        "event":"http_request",
        "req_id":"…",
        "method":"POST",
        "path":"/rpc",
        "status":200,
        "duration_ms":12.34,
        "bytes_sent":1234,
        "client_ip":"203.0.113.5",
        "user_agent":"…",
        "jsonrpc_method":"eth_getBlockByNumber",
        "body_sample":"{…}"
      }

    2xx/3xx log at INFO, 4xx/5xx at WARNING, exceptions at ERROR with traceback.
    The `X-Request-ID` response header echoes the incoming one or a fresh id.
    `request_body_sample` bytes of the request body are included (default: 0).
    """

    def __init__(self, app, request_body_sample: int = 0) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self.request_body_sample = max(0, int(request_body_sample))

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        req_id = _ensure_request_id(request)
        start = time.perf_counter()

        method = request.method
        path = request.url.path
        client_ip = _get_client_ip(request)
        ua = request.headers.get("user-agent", "-")

        # Starlette caches the body on the request, so handlers can still read it
        body = await request.body()
        jsonrpc_method = _detect_jsonrpc_method(body)

        status = 500
        bytes_sent: Optional[int] = None
        exc_info: Optional[BaseException] = None
        try:
            response: Response = await call_next(request)
            status = int(response.status_code)
            response.headers["X-Request-ID"] = req_id
            cl = response.headers.get("content-length")
            if cl and cl.isdigit():
                bytes_sent = int(cl)
            return response
        except Exception as e:
            exc_info = e
            raise
        finally:
            record: Dict[str, Any] = {
                "event": "http_request",
                "req_id": req_id,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round((time.perf_counter() - start) * 1000.0, 3),
                "bytes_sent": bytes_sent,
                "client_ip": client_ip,
                "user_agent": ua,
            }
            if jsonrpc_method:
                record["jsonrpc_method"] = jsonrpc_method
            if self.request_body_sample > 0:
                record["body_sample"] = _maybe_utf8(body, self.request_body_sample)

            line = _dumps(record)
            if exc_info is None and 100 <= status < 400:
                _LOG.info(line)
            elif exc_info is None:
                _LOG.warning(line)
            else:
                _LOG.error(line, exc_info=exc_info)


__all__ = ["LoggingMiddleware"]
