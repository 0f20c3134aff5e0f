import pytest

from ledger_rpc import deps, jsonrpc, methods
from ledger_rpc.tests import new_test_client, rpc_call, sample_ledger

ETH_METHODS = {
    "eth_blockNumber",
    "eth_getBlockByHash",
    "eth_getBlockByNumber",
    "eth_getBlockTransactionCountByHash",
    "eth_getBlockTransactionCountByNumber",
}


def test_list_methods_includes_block_queries():
    client, _, _ = new_test_client()
    names = rpc_call(client, "rpc.listMethods")["result"]
    assert ETH_METHODS <= set(names)
    assert names == sorted(names)
    assert methods.list_methods("eth") == sorted(ETH_METHODS)


def test_registry_names_are_unique():
    names = methods.list_methods()
    assert len(names) == len(set(names))
    spec = methods.resolve("eth_blockNumber")
    assert spec is not None and spec.namespace == "eth"
    with pytest.raises(KeyError):
        methods.register("eth_blockNumber", spec.func)
    with pytest.raises(ValueError):
        methods.register("blockNumber", spec.func)


def test_malformed_json_is_parse_error():
    client, _, _ = new_test_client()
    resp = client.post("/rpc", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 200
    assert resp.json() == {"jsonrpc": "2.0", "id": None, "error": {"code": -32700, "message": "Parse error"}}


def test_method_not_found():
    client, _, _ = new_test_client()
    err = rpc_call(client, "eth_getUncleByBlockHashAndIndex", [], id=7, expect_error=True)
    assert err["id"] == 7
    assert err["error"]["code"] == -32601
    assert err["error"]["message"] == "Method not found"


def test_invalid_params_type_rejected():
    client, _, _ = new_test_client()
    payload = {"jsonrpc": "2.0", "method": "eth_blockNumber", "params": "oops", "id": 99}
    data = client.post("/rpc", json=payload).json()
    assert data["id"] == 99
    assert data["error"]["code"] == -32602
    assert data["error"]["message"] == "Invalid params"


def test_named_params_do_not_bind_to_positional_methods():
    client, _, _ = new_test_client(sample_ledger())
    err = rpc_call(
        client, "eth_getBlockByNumber", {"blockNum": "0x1", "full": False}, expect_error=True
    )["error"]
    assert err["code"] == -32602


@pytest.mark.parametrize(
    "payload",
    [
        {"jsonrpc": "1.0", "method": "eth_blockNumber", "id": 1},
        {"jsonrpc": "2.0", "method": "", "id": 1},
        {"jsonrpc": "2.0", "method": 5, "id": 1},
        {"jsonrpc": "2.0", "method": "eth_blockNumber", "id": {"x": 1}},
    ],
)
def test_invalid_request_envelope(payload):
    client, _, _ = new_test_client()
    data = client.post("/rpc", json=payload).json()
    assert data["error"]["code"] == -32600
    assert data["id"] in (1, None)


def test_notification_has_no_response():
    client, _, _ = new_test_client()
    resp = client.post("/rpc", json={"jsonrpc": "2.0", "method": "eth_blockNumber"})
    assert resp.status_code == 204
    assert resp.content == b""


def test_batch_preserves_order_and_skips_notifications():
    client, _, _ = new_test_client(sample_ledger())
    batch = [
        {"jsonrpc": "2.0", "method": "eth_blockNumber", "id": "a"},
        {"jsonrpc": "2.0", "method": "eth_blockNumber"},
        {"jsonrpc": "2.0", "method": "eth_getBlockTransactionCountByNumber", "params": ["0x1"], "id": "b"},
        {"jsonrpc": "2.0", "method": "nope_method", "id": "c"},
        42,
    ]
    out = client.post("/rpc", json=batch).json()
    assert [r["id"] for r in out] == ["a", "b", "c", None]
    assert out[0]["result"] == "0x5"
    assert out[1]["result"] == "0x3"
    assert out[2]["error"]["code"] == -32601
    assert out[3]["error"]["code"] == -32600


def test_empty_batch_is_invalid_request():
    client, _, _ = new_test_client()
    data = client.post("/rpc", json=[]).json()
    assert data["error"]["code"] == -32600


def test_unexpected_exception_is_opaque_internal_error():
    @methods.method("test.raiseInternal", replace=True)
    def raise_internal():  # pragma: no cover - registered for test
        raise RuntimeError("secret backend detail")

    client, _, _ = new_test_client()
    res = rpc_call(client, "test.raiseInternal", expect_error=True)
    assert res["error"] == {"code": -32603, "message": "Internal error"}
    assert "secret" not in str(res)


def test_uninitialized_ledger_is_temporarily_unavailable():
    client, _, _ = new_test_client()
    try:
        # simulate a server that has not finished startup
        deps._CTX = None
        err = rpc_call(client, "eth_blockNumber", expect_error=True)["error"]
        assert err["code"] == -32002
        assert client.get("/readyz").status_code == 503
    finally:
        deps.ensure_started()


@pytest.mark.asyncio
async def test_dispatch_without_http():
    deps.set_ledger(sample_ledger())
    res = await jsonrpc.dispatch({"jsonrpc": "2.0", "method": "eth_blockNumber", "params": [], "id": 3})
    assert res == {"jsonrpc": "2.0", "id": 3, "result": "0x5"}

    batch = await jsonrpc.dispatch([{"jsonrpc": "2.0", "method": "eth_blockNumber"}])
    assert batch is None


# ---- HTTP surface -----------------------------------------------------------


def test_health_and_version():
    client, _, _ = new_test_client()
    assert client.get("/healthz").json()["ok"] is True
    ready = client.get("/readyz")
    assert ready.status_code == 200
    assert ready.json()["details"]["ledger"] == "MemoryLedger"
    assert client.get("/version").json()["version"]


def test_get_on_rpc_returns_usage_hint():
    client, _, _ = new_test_client()
    resp = client.get("/rpc")
    assert resp.status_code == 405
    assert resp.headers["allow"] == "POST"
    assert "hint" in resp.json()


def test_request_id_is_echoed():
    client, _, _ = new_test_client()
    resp = client.post(
        "/rpc",
        json={"jsonrpc": "2.0", "method": "eth_blockNumber", "id": 1},
        headers={"x-request-id": "req-123"},
    )
    assert resp.headers["x-request-id"] == "req-123"
    assert client.get("/healthz").headers["x-request-id"]


def test_metrics_endpoint_counts_calls():
    client, _, _ = new_test_client(sample_ledger())
    rpc_call(client, "eth_blockNumber")
    body = client.get("/metrics").text
    assert "ledger_rpc_jsonrpc_requests_total" in body
    assert 'method="eth_blockNumber"' in body
    assert "ledger_rpc_chain_height 5.0" in body


def test_metrics_can_be_disabled():
    client, _, _ = new_test_client(metrics_enabled=False)
    assert client.get("/metrics").status_code == 404
