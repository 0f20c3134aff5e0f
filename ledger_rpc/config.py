"""
ledger-rpc configuration.

This module centralizes tunables for the HTTP JSON-RPC service:
- host/port
- CORS policy
- logging level and access-log body sampling
- metrics toggle
- ledger fixture (YAML) for the in-memory backend
- follow-up lookup mode for full-transaction block rendering

Environment variables (examples):
  LEDGER_RPC_HOST=0.0.0.0
  LEDGER_RPC_PORT=8545
  LEDGER_RPC_CORS_ORIGINS=["http://localhost:5173","https://explorer.example.org"]
  LEDGER_RPC_LOG_LEVEL=INFO
  LEDGER_RPC_LOG_BODY_SAMPLE=256
  LEDGER_RPC_METRICS_ENABLED=true
  LEDGER_RPC_FIXTURE=~/ledger/devnet.yaml
  LEDGER_RPC_PARALLEL_TX_LOOKUPS=false

Notes
- JSON-like env values accept either JSON or a comma-separated list.
- Paths beginning with ~ are expanded.
- This module has no external deps (no dotenv). Use your process manager to inject env.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v is not None else default


def _env_bool(name: str, default: bool) -> bool:
    v = _env(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(v.strip())
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    """
    Parse JSON array or comma-separated string into a list of strings.
    """
    v = _env(name)
    if v is None or v.strip() == "":
        return list(default)
    s = v.strip()
    # Try JSON first
    if (s.startswith("[") and s.endswith("]")) or (s.startswith('"') and s.endswith('"')):
        try:
            parsed = json.loads(s)
            if isinstance(parsed, list):
                return [str(x) for x in parsed]
            # Single string JSON
            return [str(parsed)]
        except json.JSONDecodeError:
            pass
    # Fallback: comma-separated
    return [item.strip() for item in s.split(",") if item.strip()]


def _env_path(name: str) -> Optional[Path]:
    v = _env(name)
    if v is None or v.strip() == "":
        return None
    return Path(os.path.expandvars(v.strip())).expanduser()


@dataclass(frozen=True)
class CorsConfig:
    allow_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    allow_credentials: bool = False
    allow_methods: List[str] = field(default_factory=lambda: ["POST", "GET", "OPTIONS"])
    allow_headers: List[str] = field(default_factory=lambda: ["content-type"])


@dataclass(frozen=True)
class RpcConfig:
    host: str = "127.0.0.1"
    port: int = 8545
    cors: CorsConfig = field(default_factory=CorsConfig)
    log_level: str = "INFO"
    log_body_sample: int = 0
    metrics_enabled: bool = True
    fixture_path: Optional[Path] = None
    parallel_tx_lookups: bool = False

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


def load() -> RpcConfig:
    """
    Build a RpcConfig from environment variables with sensible defaults.
    """
    host = _env("LEDGER_RPC_HOST", "127.0.0.1") or "127.0.0.1"
    port = _env_int("LEDGER_RPC_PORT", 8545)

    cors = CorsConfig(
        allow_origins=_env_list("LEDGER_RPC_CORS_ORIGINS", ["http://localhost:5173"]),
        allow_credentials=_env_bool("LEDGER_RPC_CORS_ALLOW_CREDENTIALS", False),
        allow_methods=_env_list("LEDGER_RPC_CORS_METHODS", ["POST", "GET", "OPTIONS"]),
        allow_headers=_env_list("LEDGER_RPC_CORS_HEADERS", ["content-type"]),
    )

    log_level = (_env("LEDGER_RPC_LOG_LEVEL", "INFO") or "INFO").upper()

    return RpcConfig(
        host=host,
        port=port,
        cors=cors,
        log_level=log_level,
        log_body_sample=max(0, _env_int("LEDGER_RPC_LOG_BODY_SAMPLE", 0)),
        metrics_enabled=_env_bool("LEDGER_RPC_METRICS_ENABLED", True),
        fixture_path=_env_path("LEDGER_RPC_FIXTURE"),
        parallel_tx_lookups=_env_bool("LEDGER_RPC_PARALLEL_TX_LOOKUPS", False),
    )


__all__ = [
    "CorsConfig",
    "RpcConfig",
    "load",
]
