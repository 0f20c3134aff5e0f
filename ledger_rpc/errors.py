"""
JSON-RPC error objects raised by ledger-rpc handlers.

Every error a caller can see is an RpcError carrying (code, message, data) and
is turned into the wire envelope by `error_response`:

    {"jsonrpc": "2.0", "id": <req id>, "error": {"code": ..., "message": ..., "data"?: ...}}

Which class to raise:
- malformed eth_* params            → InvalidParams (message names the expected shape)
- anything wrong inside the ledger  → InternalError, always opaque; log the cause
- ledger not wired yet              → TemporarilyUnavailable
ParseError / InvalidRequest / MethodNotFound are raised by the dispatcher only.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Union


class JsonRpcCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # server range (-32000..-32099)
    TEMPORARILY_UNAVAILABLE = -32002


@dataclass(eq=False)
class RpcError(Exception):
    code: int
    message: str
    data: Optional[Mapping[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data:
            err["data"] = {str(k): _plain(v) for k, v in self.data.items()}
        return err

    def __str__(self) -> str:  # pragma: no cover
        return f"[{self.code}] {self.message}"


def _plain(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    return str(v)


class ParseError(RpcError):
    def __init__(self) -> None:
        super().__init__(JsonRpcCode.PARSE_ERROR, "Parse error")


class InvalidRequest(RpcError):
    def __init__(self, detail: str = "Invalid request") -> None:
        super().__init__(JsonRpcCode.INVALID_REQUEST, detail)


class MethodNotFound(RpcError):
    def __init__(self, method: str) -> None:
        super().__init__(JsonRpcCode.METHOD_NOT_FOUND, "Method not found", {"method": method})


class InvalidParams(RpcError):
    def __init__(self, detail: str = "Invalid params", **data: Any) -> None:
        super().__init__(JsonRpcCode.INVALID_PARAMS, detail, data or None)


class InternalError(RpcError):
    """Only ever code -32603 and 'Internal error'; no data."""

    def __init__(self) -> None:
        super().__init__(JsonRpcCode.INTERNAL_ERROR, "Internal error")


class TemporarilyUnavailable(RpcError):
    def __init__(self, detail: str = "Temporarily unavailable") -> None:
        super().__init__(JsonRpcCode.TEMPORARILY_UNAVAILABLE, detail)


def error_response(req_id: Optional[Union[str, int, float]], err: RpcError) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "error": err.to_dict()}


__all__ = [
    "JsonRpcCode",
    "RpcError",
    "ParseError",
    "InvalidRequest",
    "MethodNotFound",
    "InvalidParams",
    "InternalError",
    "TemporarilyUnavailable",
    "error_response",
]
