"""
Test utilities for ledger-rpc.

Usage in tests:
    from ledger_rpc.tests import new_test_client, rpc_call, sample_ledger

    def test_health():
        client, cfg, ledger = new_test_client()
        r = client.get("/healthz")
        assert r.json()["ok"] is True

    def test_rpc_example():
        client, _, ledger = new_test_client(sample_ledger())
        res = rpc_call(client, "eth_blockNumber")
        assert res["result"] == "0x5"
"""
from __future__ import annotations

import dataclasses
import typing as t

from fastapi.testclient import TestClient

from ledger_rpc import config as rpc_config
from ledger_rpc import server as rpc_server
from ledger_rpc.client import LedgerClient, Transaction
from ledger_rpc.memory import MemoryLedger, derive_id

SENDER = "02" + "ab" * 32
RECIPIENT = "c0" * 20


def make_test_config(**overrides: t.Any) -> rpc_config.RpcConfig:
    """
    Build a RpcConfig suitable for tests (quiet logs, wide-open CORS).
    """
    cfg = rpc_config.RpcConfig(
        host="127.0.0.1",
        port=0,  # unused by TestClient
        cors=rpc_config.CorsConfig(allow_origins=["*"]),
        log_level="ERROR",
    )
    return dataclasses.replace(cfg, **overrides)


def make_txn(n: int, **fields: t.Any) -> Transaction:
    """Deterministic transaction #n (id, nonce and value derived from n)."""
    base: dict[str, t.Any] = {
        "header_signature": derive_id(f"txn-{n}".encode()),
        "nonce": n,
        "from_address": SENDER,
        "to": RECIPIENT,
        "gas_limit": 90000,
        "gas_price": 1,
        "value": n,
    }
    base.update(fields)
    return Transaction(**base)


def sample_ledger() -> MemoryLedger:
    """
    Height 5 chain:
      0  genesis
      1  batches [[t1, t2], [t3]], 21000 gas each
      2-4 empty
      5  one batch [t4 (21000 gas), t5 (50000 gas)]
    """
    ledger = MemoryLedger()
    ledger.append_block(
        [
            [(make_txn(1), 21000), (make_txn(2), 21000)],
            [(make_txn(3), 21000)],
        ]
    )
    for _ in range(3):
        ledger.append_block([])
    ledger.append_block([[(make_txn(4), 21000), (make_txn(5), 50000)]])
    return ledger


def new_test_client(
    ledger: LedgerClient | None = None, **cfg_overrides: t.Any
) -> tuple[TestClient, rpc_config.RpcConfig, LedgerClient]:
    """
    Create a TestClient bound to a fresh app serving `ledger` (an empty
    MemoryLedger by default). Returns (client, cfg, ledger).
    """
    cfg = make_test_config(**cfg_overrides)
    if ledger is None:
        ledger = MemoryLedger()
    # create_app installs the ledger right away, so startup events are not needed
    app = rpc_server.create_app(cfg, ledger=ledger)
    client = TestClient(app)
    return client, cfg, ledger


def rpc_call(
    client: TestClient,
    method: str,
    params: t.Any | None = None,
    *,
    id: t.Any = 1,
    expect_error: bool = False,
) -> dict:
    """
    Convenience wrapper to POST a JSON-RPC request to /rpc and return the parsed response.
    Set expect_error=True to assert an 'error' object is present.
    """
    payload: dict = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        payload["params"] = params
    resp = client.post("/rpc", json=payload)
    assert resp.status_code == 200, f"HTTP {resp.status_code}: {resp.text}"
    data = resp.json()
    if expect_error:
        assert "error" in data, f"expected JSON-RPC error, got {data}"
    else:
        assert "result" in data, f"expected JSON-RPC result, got {data}"
    return data


__all__ = [
    "new_test_client",
    "rpc_call",
    "make_test_config",
    "make_txn",
    "sample_ledger",
    "SENDER",
    "RECIPIENT",
]
