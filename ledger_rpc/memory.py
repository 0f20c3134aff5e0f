from __future__ import annotations

"""
ledger_rpc.memory
=================

An in-process LedgerClient. It keeps an append-only list of native blocks plus
the receipt and transaction indexes the RPC layer reads, and is what the server
runs against when no external ledger is wired in (dev, demos, tests).

Blocks are built the way the native ledger builds them: a canonical CBOR
header (see ledger_rpc.client.encode_header) whose signature doubles as the
block hash, and an ordered list of batches of transaction ids.

Fixtures
--------
`load_fixture(path)` reads a YAML document of the form:

    blocks:
      - batches:
          - transactions:
              - {from: "02ab…", to: "c0ff…", nonce: 0, gas_used: 21000}
              - {from: "02ab…", nonce: 1, gas_used: 50000, data: "0x6060"}
      - batches: []

A genesis block (height 0, no batches) is always present; fixture blocks are
appended after it. Ids are derived deterministically unless given as `id`.
"""

import hashlib
import logging
import threading
import typing as t
from collections import OrderedDict
from dataclasses import asdict
from pathlib import Path

import cbor2
import yaml

from .client import (Batch, BlockHeader, BlockKey, BlockTag, ByHash, ByHeight,
                     ExecutionReceipt, NativeBlock, NoResource, Symbolic,
                     Transaction, encode_header)

log = logging.getLogger(__name__)

_GENESIS_PARENT = "0" * 128
_GENESIS_STATE_ROOT = "0" * 64

# (transaction, gas_used) pairs grouped per batch
BatchSpec = t.Sequence[t.Tuple[Transaction, int]]


def derive_id(obj: t.Any) -> str:
    """128 hex digit id, the same width as the ledger's header signatures."""
    if isinstance(obj, (bytes, bytearray)):
        data = bytes(obj)
    else:
        data = cbor2.dumps(obj, canonical=True)
    return hashlib.sha512(data).hexdigest()


def _next_state_root(prev: str, txn_ids: t.Iterable[str]) -> str:
    h = hashlib.sha3_256(prev.encode("ascii"))
    for txn_id in txn_ids:
        h.update(txn_id.encode("ascii"))
    return h.hexdigest()


class MemoryLedger:
    """
    Thread-safe in-memory ledger implementing the LedgerClient protocol.
    """

    def __init__(self, *, signer_public_key: str = "") -> None:
        self._lock = threading.RLock()
        self._signer = signer_public_key
        self._blocks: list[NativeBlock] = []
        self._heights: dict[str, int] = {}
        self._state_roots: list[str] = []
        self._receipts: dict[str, ExecutionReceipt] = {}
        self._txns: dict[str, tuple[Transaction, int]] = {}
        self.append_block([])

    # ---- writes ---------------------------------------------------------

    def append_block(
        self,
        batches: t.Sequence[BatchSpec],
        *,
        state_root_hash: str | None = None,
    ) -> NativeBlock:
        """
        Seal a new block on top of the current head and index its receipts.
        Returns the sealed NativeBlock.
        """
        with self._lock:
            height = len(self._blocks)
            parent = self._blocks[-1].header_signature if self._blocks else _GENESIS_PARENT
            prev_root = self._state_roots[-1] if self._state_roots else _GENESIS_STATE_ROOT

            sealed: list[Batch] = []
            for entries in batches:
                txn_ids = tuple(txn.header_signature for txn, _ in entries)
                sealed.append(Batch(header_signature=derive_id(list(txn_ids)), transactions=txn_ids))

            all_ids = [txn_id for b in sealed for txn_id in b.transactions]
            dupes = [i for i in all_ids if i in self._txns]
            if dupes or len(set(all_ids)) != len(all_ids):
                raise ValueError(f"duplicate transaction ids: {dupes or all_ids}")

            root = state_root_hash or _next_state_root(prev_root, all_ids)
            header = BlockHeader(
                block_num=height,
                previous_block_id=parent,
                state_root_hash=root,
                signer_public_key=self._signer,
                batch_ids=tuple(b.header_signature for b in sealed),
            )
            header_bytes = encode_header(header)
            block = NativeBlock(
                header=header_bytes,
                header_signature=derive_id(header_bytes),
                batches=tuple(sealed),
            )

            for entries in batches:
                for txn, gas_used in entries:
                    self._txns[txn.header_signature] = (txn, height)
                    self._receipts[txn.header_signature] = ExecutionReceipt(
                        transaction_id=txn.header_signature,
                        gas_used=int(gas_used),
                        contract_address=None if txn.to else derive_id(asdict(txn))[:40],
                    )

            self._blocks.append(block)
            self._heights[block.header_signature] = height
            self._state_roots.append(root)
            log.debug("sealed block %d (%d txs) %s", height, len(all_ids), block.header_signature[:16])
            return block

    # ---- LedgerClient ---------------------------------------------------

    @property
    def height(self) -> int:
        with self._lock:
            return len(self._blocks) - 1

    async def current_block(self) -> NativeBlock:
        with self._lock:
            return self._blocks[-1]

    async def get_block(self, key: BlockKey) -> NativeBlock:
        with self._lock:
            if isinstance(key, ByHeight):
                if key.height < len(self._blocks):
                    return self._blocks[key.height]
                raise NoResource(f"no block at height {key.height}")
            if isinstance(key, ByHash):
                idx = self._heights.get(key.signature.lower())
                if idx is None:
                    raise NoResource(f"no block with signature {key.signature}")
                return self._blocks[idx]
            if isinstance(key, Symbolic):
                if key.tag is BlockTag.EARLIEST:
                    return self._blocks[0]
                # No pending block is ever materialized; pending reads as the head.
                return self._blocks[-1]
            raise TypeError(f"unsupported block key: {key!r}")

    async def get_receipts_for_block(self, block: NativeBlock) -> t.Mapping[str, ExecutionReceipt]:
        with self._lock:
            if block.header_signature not in self._heights:
                raise NoResource(f"unknown block {block.header_signature}")
            out: OrderedDict[str, ExecutionReceipt] = OrderedDict()
            for txn_id in block.transaction_ids:
                receipt = self._receipts.get(txn_id)
                if receipt is not None:
                    out[txn_id] = receipt
            return out

    async def get_transaction(self, txn_id: str) -> tuple[Transaction, NativeBlock]:
        with self._lock:
            entry = self._txns.get(txn_id)
            if entry is None:
                raise NoResource(f"no transaction {txn_id}")
            txn, height = entry
            return txn, self._blocks[height]


# ---- fixtures ---------------------------------------------------------------

def _data_bytes(v: t.Any) -> bytes:
    if v is None or v == "":
        return b""
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    s = str(v)
    if s.startswith("0x"):
        s = s[2:]
    return bytes.fromhex(s)


def _txn_from_fixture(d: t.Mapping[str, t.Any]) -> tuple[Transaction, int]:
    fields = {
        "nonce": int(d.get("nonce", 0)),
        "from_address": str(d.get("from", "")),
        "to": (str(d["to"]) if d.get("to") else None),
        "gas_limit": int(d.get("gas_limit", d.get("gas", 0))),
        "gas_price": int(d.get("gas_price", 0)),
        "value": int(d.get("value", 0)),
        "data": _data_bytes(d.get("data")),
    }
    txn_id = str(d.get("id") or derive_id(fields))
    return Transaction(header_signature=txn_id, **fields), int(d.get("gas_used", 0))


def ledger_from_fixture(doc: t.Mapping[str, t.Any]) -> MemoryLedger:
    ledger = MemoryLedger(signer_public_key=str(doc.get("signer_public_key", "")))
    for blk in doc.get("blocks") or []:
        batches = [
            [_txn_from_fixture(txd) for txd in (batch.get("transactions") or [])]
            for batch in (blk.get("batches") or [])
        ]
        ledger.append_block(batches, state_root_hash=blk.get("state_root"))
    return ledger


def load_fixture(path: str | Path) -> MemoryLedger:
    """Build a MemoryLedger from a YAML fixture file."""
    p = Path(path).expanduser()
    with p.open("rt", encoding="utf-8") as fh:
        doc = yaml.safe_load(fh) or {}
    if not isinstance(doc, dict):
        raise ValueError(f"{p}: fixture must be a mapping")
    ledger = ledger_from_fixture(doc)
    log.info("loaded ledger fixture %s (height=%d)", p, ledger.height)
    return ledger


__all__ = ["MemoryLedger", "derive_id", "ledger_from_fixture", "load_fixture"]
