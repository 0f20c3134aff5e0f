"""
ledger_rpc.client
=================

The contract between the RPC layer and the native ledger:

- BlockKey: a closed union selecting one block (by height, by header signature,
  or by a symbolic tag such as "latest"), plus `parse_block_key` for the
  QUANTITY|TAG grammar used by eth_*ByNumber methods.
- Native records as the ledger hands them out: NativeBlock (opaque header bytes,
  header signature, batches), ExecutionReceipt, Transaction.
- BlockHeader and its canonical CBOR codec (`encode_header` / `decode_header`).
- LedgerClient: the async protocol every backend implements, and the ledger
  error types (NoResource is the "block does not exist" signal).

Identifiers (block and transaction header signatures) are lowercase hex text
*without* a "0x" prefix, exactly as the ledger reports them.
"""

from __future__ import annotations

import enum
import typing as t
from dataclasses import asdict, dataclass, field

import cbor2

from .types import parse_quantity


# ───────────────────────────────────────────────────────────────────────────────
# Ledger errors
# ───────────────────────────────────────────────────────────────────────────────

class LedgerError(Exception):
    """Base class for failures reported by a LedgerClient."""


class NoResource(LedgerError):
    """The requested block/transaction does not exist."""


class LedgerUnavailable(LedgerError):
    """The backend could not be reached or answered with garbage."""


class HeaderDecodeError(LedgerError):
    """Header bytes could not be decoded into a BlockHeader."""


class BlockKeyError(ValueError):
    """A block identifier string is syntactically malformed."""


# ───────────────────────────────────────────────────────────────────────────────
# Block keys
# ───────────────────────────────────────────────────────────────────────────────

class BlockTag(str, enum.Enum):
    LATEST = "latest"
    EARLIEST = "earliest"
    PENDING = "pending"


@dataclass(frozen=True)
class ByHeight:
    height: int

    def __post_init__(self) -> None:
        if self.height < 0:
            raise BlockKeyError("block height must be >= 0")


@dataclass(frozen=True)
class ByHash:
    signature: str


@dataclass(frozen=True)
class Symbolic:
    tag: BlockTag


BlockKey = t.Union[ByHeight, ByHash, Symbolic]


def parse_block_key(text: str) -> BlockKey:
    """
    Parse a QUANTITY|TAG string:
      'latest' | 'earliest' | 'pending'  → Symbolic
      '0x…' hex quantity                 → ByHeight
    Anything else raises BlockKeyError.
    """
    if not isinstance(text, str):
        raise BlockKeyError("block number must be a string")
    s = text.lower()
    try:
        return Symbolic(BlockTag(s))
    except ValueError:
        pass
    try:
        return ByHeight(parse_quantity(s))
    except ValueError as e:
        raise BlockKeyError(f"invalid block number: {text!r}") from e


def describe_key(key: BlockKey) -> str:
    """Short human-readable form for logs."""
    if isinstance(key, ByHeight):
        return f"height={key.height}"
    if isinstance(key, ByHash):
        return f"hash={key.signature[:16]}…"
    if isinstance(key, Symbolic):
        return f"tag={key.tag.value}"
    raise TypeError(f"not a BlockKey: {key!r}")


# ───────────────────────────────────────────────────────────────────────────────
# Native records
# ───────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Batch:
    header_signature: str
    transactions: tuple[str, ...] = ()


@dataclass(frozen=True)
class NativeBlock:
    header: bytes
    header_signature: str
    batches: tuple[Batch, ...] = ()

    @property
    def transaction_ids(self) -> list[str]:
        """All transaction ids in block order (batch order, then in-batch order)."""
        return [txn_id for batch in self.batches for txn_id in batch.transactions]


@dataclass(frozen=True)
class ExecutionReceipt:
    transaction_id: str
    gas_used: int
    status: int = 1
    contract_address: str | None = None


@dataclass(frozen=True)
class Transaction:
    header_signature: str
    nonce: int = 0
    from_address: str = ""
    to: str | None = None
    gas_limit: int = 0
    gas_price: int = 0
    value: int = 0
    data: bytes = b""


# ───────────────────────────────────────────────────────────────────────────────
# Header codec (canonical CBOR)
# ───────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BlockHeader:
    block_num: int
    previous_block_id: str
    state_root_hash: str
    signer_public_key: str = ""
    batch_ids: tuple[str, ...] = field(default_factory=tuple)
    consensus: bytes = b""


_HEADER_REQUIRED = ("block_num", "previous_block_id", "state_root_hash")


def encode_header(header: BlockHeader) -> bytes:
    d = asdict(header)
    d["batch_ids"] = list(header.batch_ids)
    return cbor2.dumps(d, canonical=True)


def decode_header(data: bytes) -> BlockHeader:
    """
    Decode canonical CBOR header bytes. Raises HeaderDecodeError on any
    malformed input (bad CBOR, wrong shape, missing or mistyped fields).
    """
    try:
        obj = cbor2.loads(bytes(data))
    except (cbor2.CBORDecodeError, ValueError, TypeError, EOFError) as e:
        raise HeaderDecodeError(f"header is not valid CBOR: {e}") from e

    if not isinstance(obj, dict):
        raise HeaderDecodeError(f"header must be a map, got {type(obj).__name__}")
    missing = [k for k in _HEADER_REQUIRED if k not in obj]
    if missing:
        raise HeaderDecodeError(f"header missing fields: {', '.join(missing)}")

    block_num = obj["block_num"]
    if isinstance(block_num, bool) or not isinstance(block_num, int) or block_num < 0:
        raise HeaderDecodeError("block_num must be a non-negative integer")
    for k in ("previous_block_id", "state_root_hash"):
        if not isinstance(obj[k], str):
            raise HeaderDecodeError(f"{k} must be text")
    consensus = obj.get("consensus") or b""
    if not isinstance(consensus, (bytes, bytearray)):
        raise HeaderDecodeError("consensus must be bytes")
    signer = obj.get("signer_public_key", "")
    if not isinstance(signer, str):
        raise HeaderDecodeError("signer_public_key must be text")
    batch_ids = obj.get("batch_ids", [])
    if not isinstance(batch_ids, list) or not all(isinstance(b, str) for b in batch_ids):
        raise HeaderDecodeError("batch_ids must be a list of text")

    return BlockHeader(
        block_num=block_num,
        previous_block_id=obj["previous_block_id"],
        state_root_hash=obj["state_root_hash"],
        signer_public_key=signer,
        batch_ids=tuple(batch_ids),
        consensus=bytes(consensus),
    )


# ───────────────────────────────────────────────────────────────────────────────
# Client protocol
# ───────────────────────────────────────────────────────────────────────────────

@t.runtime_checkable
class LedgerClient(t.Protocol):
    """
    What the RPC layer needs from a ledger backend. Implementations must be
    safe for concurrent use by many in-flight requests.
    """

    async def current_block(self) -> NativeBlock:
        ...

    async def get_block(self, key: BlockKey) -> NativeBlock:
        """Return the block or raise NoResource."""
        ...

    async def get_receipts_for_block(self, block: NativeBlock) -> t.Mapping[str, ExecutionReceipt]:
        """Ordered mapping txn_id → receipt, in block order."""
        ...

    async def get_transaction(self, txn_id: str) -> tuple[Transaction, NativeBlock]:
        """Return (transaction, containing block) or raise NoResource."""
        ...


__all__ = [
    # errors
    "LedgerError",
    "NoResource",
    "LedgerUnavailable",
    "HeaderDecodeError",
    "BlockKeyError",
    # keys
    "BlockTag",
    "ByHeight",
    "ByHash",
    "Symbolic",
    "BlockKey",
    "parse_block_key",
    "describe_key",
    # records
    "Batch",
    "NativeBlock",
    "ExecutionReceipt",
    "Transaction",
    "BlockHeader",
    "encode_header",
    "decode_header",
    # protocol
    "LedgerClient",
]
