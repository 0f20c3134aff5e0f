"""
ledger-rpc — JSON-RPC 2.0 Dispatcher
===================================

Takes an already-parsed JSON payload (object or batch array) and returns the
response object(s), or None when nothing must be sent back (notifications).

- Methods are looked up in the ledger_rpc.methods registry.
- params may be an array (positional) or an object (named); binding failures
  surface as -32602.
- RpcError subclasses raised by a method reach the caller as-is. Any other
  exception is logged with its traceback and reaches the caller only as an
  opaque -32603 "Internal error".
- Batch members are served one after another, in order.

The HTTP endpoint lives in ledger_rpc.server.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from . import methods as method_registry
from .errors import (InternalError, InvalidParams, InvalidRequest,
                     JsonRpcCode, MethodNotFound, RpcError, error_response)
from .metrics import rpc_metrics

log = logging.getLogger(__name__)

Json = Dict[str, Any]
Params = Union[List[Any], Dict[str, Any]]

_NO_ID = object()  # sentinel for notification


# --------------------------------------------------------------------------------------
# Request validation
# --------------------------------------------------------------------------------------


def _valid_id(id_val: Any) -> bool:
    # string, number, or null; bool is an int subclass but not a valid id
    return id_val is None or (
        isinstance(id_val, (str, int, float)) and not isinstance(id_val, bool)
    )


def _validate_request_obj(obj: Json) -> Tuple[str, Optional[Params], Any]:
    """
    Check the envelope and return (method, params, id). The id is _NO_ID for
    notifications. Method existence is not checked here.
    """
    if obj.get("jsonrpc") != "2.0":
        raise InvalidRequest("jsonrpc must be '2.0'")
    if "id" in obj and not _valid_id(obj["id"]):
        raise InvalidRequest("id must be string, number, or null")

    method = obj.get("method")
    if not isinstance(method, str) or not method:
        raise InvalidRequest("method must be a non-empty string")

    params = obj.get("params")
    if params is not None and not isinstance(params, (list, dict)):
        raise InvalidParams("Invalid params", reason="params, if present, must be array or object")

    return method, params, obj.get("id", _NO_ID)


def _response_id(obj: Json) -> Any:
    req_id = obj.get("id", _NO_ID)
    if req_id is _NO_ID or _valid_id(req_id):
        return req_id
    return None


# --------------------------------------------------------------------------------------
# Invocation
# --------------------------------------------------------------------------------------


def _bind(fn: Callable[..., Any], params: Optional[Params]) -> inspect.BoundArguments:
    sig = inspect.signature(fn)
    try:
        if isinstance(params, dict):
            return sig.bind(**params)
        return sig.bind(*(params or []))
    except TypeError as e:
        # wrong arity or unknown keyword
        log.debug("param binding failed for %s: %s", getattr(fn, "__name__", fn), e)
        raise InvalidParams("Invalid params") from None


async def _invoke(method_name: str, params: Optional[Params]) -> Any:
    spec = method_registry.resolve(method_name)
    if spec is None:
        rpc_metrics.observe_jsonrpc("unknown").error(str(int(JsonRpcCode.METHOD_NOT_FOUND)))
        raise MethodNotFound(method_name)

    obs = rpc_metrics.observe_jsonrpc(spec.name)
    try:
        bound = _bind(spec.func, params)
        result = spec.func(*bound.args, **bound.kwargs)
        if inspect.isawaitable(result):
            result = await result
    except RpcError as e:
        obs.error(str(int(e.code)))
        raise
    except Exception as e:
        obs.error(str(int(JsonRpcCode.INTERNAL_ERROR)))
        log.exception("Unhandled error in JSON-RPC method %s", method_name)
        raise InternalError() from e
    obs.ok()
    return result


# --------------------------------------------------------------------------------------
# Core dispatch
# --------------------------------------------------------------------------------------


async def dispatch_one(obj: Json) -> Optional[Json]:
    """
    Dispatch a single JSON-RPC request object.
    Returns a response object or None (for notifications).
    """
    try:
        method_name, params, req_id = _validate_request_obj(obj)
        result = await _invoke(method_name, params)
    except RpcError as exc:
        req_id = _response_id(obj)
        if req_id is _NO_ID:
            # Notifications get no response, even on error
            log.debug("Error in notification %s: %s", obj.get("method"), exc)
            return None
        return error_response(req_id, exc)

    if req_id is _NO_ID:
        return None
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


async def dispatch(payload: Any) -> Union[Json, List[Json], None]:
    """Dispatch a parsed JSON payload: a single request object or a batch."""
    if isinstance(payload, list):
        if not payload:
            return error_response(None, InvalidRequest("empty batch"))

        results: List[Json] = []
        for obj in payload:
            if isinstance(obj, dict):
                r = await dispatch_one(obj)
            else:
                r = error_response(None, InvalidRequest("Request must be an object"))
            if r is not None:
                results.append(r)
        # All notifications: nothing to return
        return results or None

    if isinstance(payload, dict):
        return await dispatch_one(payload)

    return error_response(None, InvalidRequest("payload must be object or array"))


__all__ = ["dispatch", "dispatch_one"]
