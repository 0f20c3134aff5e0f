from pathlib import Path

from ledger_rpc import config as rpc_config

_VARS = (
    "LEDGER_RPC_HOST",
    "LEDGER_RPC_PORT",
    "LEDGER_RPC_CORS_ORIGINS",
    "LEDGER_RPC_LOG_LEVEL",
    "LEDGER_RPC_LOG_BODY_SAMPLE",
    "LEDGER_RPC_METRICS_ENABLED",
    "LEDGER_RPC_FIXTURE",
    "LEDGER_RPC_PARALLEL_TX_LOOKUPS",
)


def _clear(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)
    cfg = rpc_config.load()
    assert cfg.host == "127.0.0.1"
    assert cfg.port == 8545
    assert cfg.log_level == "INFO"
    assert cfg.metrics_enabled is True
    assert cfg.fixture_path is None
    assert cfg.parallel_tx_lookups is False
    assert cfg.base_url == "http://127.0.0.1:8545"


def test_env_overrides(monkeypatch, tmp_path):
    _clear(monkeypatch)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("LEDGER_RPC_HOST", "0.0.0.0")
    monkeypatch.setenv("LEDGER_RPC_PORT", "9000")
    monkeypatch.setenv("LEDGER_RPC_CORS_ORIGINS", '["https://a.example", "https://b.example"]')
    monkeypatch.setenv("LEDGER_RPC_LOG_LEVEL", "debug")
    monkeypatch.setenv("LEDGER_RPC_LOG_BODY_SAMPLE", "256")
    monkeypatch.setenv("LEDGER_RPC_METRICS_ENABLED", "off")
    monkeypatch.setenv("LEDGER_RPC_FIXTURE", "~/ledger/devnet.yaml")
    monkeypatch.setenv("LEDGER_RPC_PARALLEL_TX_LOOKUPS", "yes")

    cfg = rpc_config.load()

    assert cfg.host == "0.0.0.0"
    assert cfg.port == 9000
    assert cfg.cors.allow_origins == ["https://a.example", "https://b.example"]
    assert cfg.log_level == "DEBUG"
    assert cfg.log_body_sample == 256
    assert cfg.metrics_enabled is False
    assert cfg.fixture_path == tmp_path / "ledger" / "devnet.yaml"
    assert isinstance(cfg.fixture_path, Path)
    assert cfg.parallel_tx_lookups is True


def test_csv_origins_and_malformed_numbers(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("LEDGER_RPC_CORS_ORIGINS", "http://x.test, http://y.test")
    monkeypatch.setenv("LEDGER_RPC_PORT", "eighty")
    monkeypatch.setenv("LEDGER_RPC_LOG_BODY_SAMPLE", "-5")

    cfg = rpc_config.load()

    assert cfg.cors.allow_origins == ["http://x.test", "http://y.test"]
    assert cfg.port == 8545
    assert cfg.log_body_sample == 0
