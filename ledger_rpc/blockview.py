"""
Block views: native ledger blocks rendered as Ethereum JSON-RPC block objects.

The native ledger has no nonce, uncles, bloom, difficulty or gas limit. Those
fields are still required by every Ethereum client, so they are filled from
PLACEHOLDERS, a constant table of zero values at their protocol widths.

Failure policy for every operation here:
- the ledger says the block does not exist  → result is None (JSON null)
- anything else goes wrong talking to or decoding the ledger → the detail is
  logged and an opaque rpc_errors.InternalError is raised. A partially built
  view is never returned.
"""

from __future__ import annotations

import asyncio
import logging
import types
import typing as t

from . import errors as rpc_errors
from .client import (BlockHeader, BlockKey, ExecutionReceipt, HeaderDecodeError,
                     LedgerClient, NativeBlock, NoResource, decode_header,
                     describe_key)
from .metrics import rpc_metrics
from .transform import txn_view_no_block
from .types import hex_prefix, num_to_hex, zero_bytes

log = logging.getLogger(__name__)

# field → width in bytes; width 0 encodes as the bare scalar "0x0"
_PLACEHOLDER_WIDTHS = (
    ("nonce", 8),
    ("sha3Uncles", 32),
    ("logsBloom", 256),
    ("transactionsRoot", 32),
    ("receiptsRoot", 32),
    ("miner", 20),
    ("difficulty", 0),
    ("totalDifficulty", 0),
    ("extraData", 0),
    ("size", 0),
    ("gasLimit", 0),
)

PLACEHOLDERS: t.Mapping[str, str] = types.MappingProxyType(
    {name: zero_bytes(width) for name, width in _PLACEHOLDER_WIDTHS}
)

BLOCK_VIEW_KEYS = frozenset(
    ("number", "hash", "parentHash", "stateRoot", "transactions", "gasUsed", "uncles")
) | frozenset(PLACEHOLDERS)


# -----------------------
# Ledger stages
# -----------------------

async def _fetch_block(client: LedgerClient, key: BlockKey) -> NativeBlock | None:
    try:
        block = await client.get_block(key)
    except NoResource:
        rpc_metrics.ledger_lookup("get_block", "not_found")
        log.debug("block not found (%s)", describe_key(key))
        return None
    except Exception as e:
        rpc_metrics.ledger_lookup("get_block", "error")
        log.error("Error requesting block (%s): %r", describe_key(key), e, exc_info=e)
        raise rpc_errors.InternalError() from e
    rpc_metrics.ledger_lookup("get_block", "ok")
    return block


def _decode(block: NativeBlock) -> BlockHeader:
    try:
        return decode_header(block.header)
    except HeaderDecodeError as e:
        log.error("Error parsing block header of %s: %s", block.header_signature, e)
        raise rpc_errors.InternalError() from e


async def _fetch_receipts(client: LedgerClient, block: NativeBlock) -> t.Mapping[str, ExecutionReceipt]:
    try:
        receipts = await client.get_receipts_for_block(block)
    except Exception as e:
        rpc_metrics.ledger_lookup("get_receipts", "error")
        log.error("Error getting receipts for %s: %r", block.header_signature, e, exc_info=e)
        raise rpc_errors.InternalError() from e
    rpc_metrics.ledger_lookup("get_receipts", "ok")
    return receipts


def _total_gas(block: NativeBlock, txn_ids: t.Sequence[str], receipts: t.Mapping[str, ExecutionReceipt]) -> int:
    """Sum gas over the block's transactions; every transaction must have exactly one receipt."""
    in_block = set(txn_ids)
    missing = [i for i in txn_ids if i not in receipts]
    extra = [i for i in receipts if i not in in_block]
    if missing or extra:
        log.error(
            "Receipt mismatch for block %s: %d without receipt, %d receipts not in block",
            block.header_signature,
            len(missing),
            len(extra),
        )
        raise rpc_errors.InternalError()
    return sum(int(receipts[i].gas_used) for i in txn_ids)


async def _fetch_txn_view(client: LedgerClient, txn_id: str) -> dict[str, t.Any]:
    try:
        txn, _containing_block = await client.get_transaction(txn_id)
    except Exception as e:
        rpc_metrics.ledger_lookup("get_transaction", "error")
        log.error("Error getting transaction %s: %r", txn_id, e, exc_info=e)
        raise rpc_errors.InternalError() from e
    rpc_metrics.ledger_lookup("get_transaction", "ok")
    return txn_view_no_block(txn)


async def _txn_views_parallel(client: LedgerClient, txn_ids: t.Sequence[str]) -> list[dict[str, t.Any]]:
    """
    Concurrent follow-ups. Output order is block order regardless of completion
    order; the first failure cancels whatever is still in flight.
    """
    if not txn_ids:
        return []
    tasks = [asyncio.ensure_future(_fetch_txn_view(client, i)) for i in txn_ids]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    failed = [task for task in tasks if task in done and not task.cancelled() and task.exception() is not None]
    if failed:
        for task in pending:
            task.cancel()
        # no follow-up outlives the request
        await asyncio.gather(*pending, return_exceptions=True)
        raise t.cast(BaseException, failed[0].exception())
    return [task.result() for task in tasks]


async def _txn_views(client: LedgerClient, txn_ids: t.Sequence[str], parallel: bool) -> list[dict[str, t.Any]]:
    if parallel:
        return await _txn_views_parallel(client, txn_ids)
    views = []
    for txn_id in txn_ids:
        views.append(await _fetch_txn_view(client, txn_id))
    return views


# -----------------------
# Operations
# -----------------------

async def render_block(
    client: LedgerClient,
    key: BlockKey,
    full: bool,
    *,
    parallel: bool = False,
) -> dict[str, t.Any] | None:
    """
    Render the block selected by `key`, or None if the ledger has no such block.

    `full` selects transaction objects (one follow-up lookup per transaction)
    instead of bare "0x"-prefixed transaction ids.
    """
    block = await _fetch_block(client, key)
    if block is None:
        return None

    header = _decode(block)
    receipts = await _fetch_receipts(client, block)
    txn_ids = block.transaction_ids
    gas = _total_gas(block, txn_ids, receipts)

    if full:
        transactions: list[t.Any] = await _txn_views(client, txn_ids, parallel)
    else:
        transactions = [hex_prefix(txn_id) for txn_id in txn_ids]

    view: dict[str, t.Any] = {
        "number": num_to_hex(header.block_num),
        "hash": hex_prefix(block.header_signature),
        "parentHash": hex_prefix(header.previous_block_id),
        "stateRoot": hex_prefix(header.state_root_hash),
        "transactions": transactions,
        "gasUsed": num_to_hex(gas),
    }
    # No counterpart in the native ledger
    view.update(PLACEHOLDERS)
    view["uncles"] = []
    return view


async def count_transactions(client: LedgerClient, key: BlockKey) -> int | None:
    """Total transactions across all batches of the block, or None if it does not exist."""
    block = await _fetch_block(client, key)
    if block is None:
        return None
    return sum(len(batch.transactions) for batch in block.batches)


async def current_height(client: LedgerClient) -> int:
    """Height of the ledger's current head block."""
    try:
        block = await client.current_block()
    except Exception as e:
        rpc_metrics.ledger_lookup("current_block", "error")
        log.error("Error requesting block: %r", e, exc_info=e)
        raise rpc_errors.InternalError() from e
    rpc_metrics.ledger_lookup("current_block", "ok")
    height = _decode(block).block_num
    rpc_metrics.set_height(height)
    return height


__all__ = [
    "PLACEHOLDERS",
    "BLOCK_VIEW_KEYS",
    "render_block",
    "count_transactions",
    "current_height",
]
