from __future__ import annotations

"""
ledger_rpc.deps
===============
Wires the RPC layer to the ledger it serves:

- Holds the single shared LedgerClient instance (the only object shared
  between concurrent requests; it must be safe for concurrent use)
- Builds a MemoryLedger from the configured YAML fixture when nothing else is
  wired in
- Provides startup/shutdown/readiness hooks used by ledger_rpc.server

Typical usage
-------------
from ledger_rpc import deps

deps.set_ledger(my_client)      # e.g. a client for a remote validator
client = deps.get_ledger()      # in handlers
"""

import logging
import threading
import typing as t
from dataclasses import dataclass

from . import config as rpc_config
from . import errors as rpc_errors
from .client import LedgerClient
from .memory import MemoryLedger, load_fixture

log = logging.getLogger(__name__)


@dataclass
class RpcContext:
    cfg: rpc_config.RpcConfig
    ledger: LedgerClient

    @property
    def parallel_tx_lookups(self) -> bool:
        return self.cfg.parallel_tx_lookups

    def close(self) -> None:
        # Close the ledger if it exposes a close() method
        close = getattr(self.ledger, "close", None)
        if callable(close):
            close()


_CTX: RpcContext | None = None
_CTX_LOCK = threading.RLock()


def _default_ledger(cfg: rpc_config.RpcConfig) -> LedgerClient:
    if cfg.fixture_path is not None:
        return load_fixture(cfg.fixture_path)
    log.warning("no LEDGER_RPC_FIXTURE configured; serving an empty in-memory ledger")
    return MemoryLedger()


def build_context(cfg: rpc_config.RpcConfig | None = None, ledger: LedgerClient | None = None) -> RpcContext:
    cfg = cfg or rpc_config.load()
    return RpcContext(cfg=cfg, ledger=ledger if ledger is not None else _default_ledger(cfg))


def ensure_started(
    cfg: rpc_config.RpcConfig | None = None, ledger: LedgerClient | None = None
) -> RpcContext:
    """
    Initialize the context if it is not already set. Passing `ledger` (or a
    different `cfg`) replaces the current context.
    """
    global _CTX
    with _CTX_LOCK:
        rebuild = _CTX is None or ledger is not None or (cfg is not None and cfg != _CTX.cfg)
        if rebuild:
            if _CTX is not None:
                try:
                    _CTX.close()
                finally:
                    _CTX = None
            _CTX = build_context(cfg, ledger)
        return _CTX


def set_ledger(ledger: LedgerClient, cfg: rpc_config.RpcConfig | None = None) -> RpcContext:
    """Install `ledger` as the shared client (keeps the current config unless `cfg` is given)."""
    with _CTX_LOCK:
        if cfg is None and _CTX is not None:
            cfg = _CTX.cfg
        return ensure_started(cfg, ledger)


def get_ctx() -> RpcContext:
    with _CTX_LOCK:
        if _CTX is None:
            raise rpc_errors.TemporarilyUnavailable("ledger not initialized")
        return _CTX


def get_ledger() -> LedgerClient:
    return get_ctx().ledger


async def startup(cfg: rpc_config.RpcConfig | None = None) -> RpcContext:
    """Idempotently build and cache the RPC context for the server lifecycle."""
    return ensure_started(cfg)


async def shutdown() -> None:
    """Release the shared ledger client."""
    global _CTX
    with _CTX_LOCK:
        if _CTX is not None:
            try:
                _CTX.close()
            finally:
                _CTX = None


async def ready() -> tuple[bool, dict[str, t.Any]]:
    """Return a readiness tuple consumed by /readyz."""
    try:
        ctx = get_ctx()
    except rpc_errors.RpcError as e:
        return False, {"error": e.message}
    return True, {"ledger": type(ctx.ledger).__name__}


__all__ = [
    "RpcContext",
    "build_context",
    "ensure_started",
    "set_ledger",
    "get_ctx",
    "get_ledger",
    "startup",
    "shutdown",
    "ready",
]
