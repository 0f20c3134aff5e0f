from __future__ import annotations

"""
ledger_rpc.methods
==================

A lightweight registry that binds JSON-RPC method names (e.g. "eth_blockNumber")
to Python callables.

Design goals
------------
- Simple: a dict mapping {method_name: MethodSpec}.
- Lazy: importing this package does not load method modules; ensure_loaded() does.
- Safe: duplicate registrations must opt-in with replace=True.

Typical method module usage
---------------------------
from . import method

@method("eth_blockNumber")
async def block_number() -> str:
    ...

Dispatcher integration
----------------------
The JSON-RPC dispatcher (ledger_rpc/jsonrpc.py) resolves names here:

    from ledger_rpc.methods import resolve

    spec = resolve("eth_getBlockByNumber")
    result = await spec.func(*params)
"""

import importlib
import re
import threading
import typing as t
from dataclasses import dataclass

_NAME_RE = re.compile(r"^([A-Za-z][A-Za-z0-9]*)[._]([A-Za-z][A-Za-z0-9_]*)$")


@dataclass(frozen=True)
class MethodSpec:
    """Metadata about a JSON-RPC method binding."""

    name: str
    func: t.Callable[..., t.Any]
    namespace: str | None = None


# ---- Global registry --------------------------------------------------------

_REGISTRY: dict[str, MethodSpec] = {}
_LOADED = False
_LOCK = threading.RLock()

_BUILTIN_MODULES = (
    "ledger_rpc.methods.block",
    "ledger_rpc.methods.rpc",
)


def register(
    name: str,
    func: t.Callable[..., t.Any],
    *,
    replace: bool = False,
) -> MethodSpec:
    """Register a method callable under a JSON-RPC name."""
    m = _NAME_RE.match(name) if isinstance(name, str) else None
    if m is None:
        raise ValueError(
            f"Method name must be namespaced like 'ns_method' or 'ns.method', got {name!r}"
        )

    with _LOCK:
        if name in _REGISTRY and not replace:
            raise KeyError(f"Method {name!r} is already registered")
        spec = MethodSpec(
            name=name,
            func=func,
            namespace=m.group(1),
        )
        _REGISTRY[name] = spec
        return spec


def method(
    name: str,
    *,
    replace: bool = False,
):
    """
    Decorator to register a function as a JSON-RPC method.

    Example:
        @method("eth_blockNumber")
        async def block_number(): ...
    """

    def _wrap(fn: t.Callable[..., t.Any]):
        register(name, fn, replace=replace)
        return fn

    return _wrap


def resolve(name: str) -> MethodSpec | None:
    """Return the MethodSpec bound to `name`, or None."""
    ensure_loaded()
    with _LOCK:
        return _REGISTRY.get(name)


def list_methods(namespace: str | None = None) -> list[str]:
    ensure_loaded()
    with _LOCK:
        return sorted(name for name, s in _REGISTRY.items() if not namespace or s.namespace == namespace)


def load_builtins() -> None:
    """Import built-in method modules so their @method decorators run."""
    for mod in _BUILTIN_MODULES:
        importlib.import_module(mod)


def ensure_loaded() -> None:
    global _LOADED
    with _LOCK:
        if _LOADED:
            return
        load_builtins()
        _LOADED = True


__all__ = [
    "MethodSpec",
    "register",
    "method",
    "resolve",
    "list_methods",
    "ensure_loaded",
]
