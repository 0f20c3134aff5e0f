"""
eth_* block query methods.

Positional params only, validated against the Ethereum JSON-RPC shapes:

  eth_blockNumber                         []
  eth_getBlockByHash                      [blockHash: DATA, full: BOOL]
  eth_getBlockByNumber                    [blockNum: QUANTITY|TAG, full: BOOL]
  eth_getBlockTransactionCountByHash      [blockHash: DATA]
  eth_getBlockTransactionCountByNumber    [blockNum: QUANTITY|TAG]

In the native ledger a block's hash is its header signature, which is 64 bytes
rather than Ethereum's 32.
"""

from __future__ import annotations

import logging
import typing as t

from pydantic import StrictBool, StrictStr, TypeAdapter, ValidationError

from ledger_rpc import deps
from ledger_rpc import errors as rpc_errors
from ledger_rpc.blockview import count_transactions, current_height, render_block
from ledger_rpc.client import BlockKey, BlockKeyError, ByHash, parse_block_key
from ledger_rpc.methods import method
from ledger_rpc.types import num_to_hex, strip_hex_prefix

log = logging.getLogger(__name__)

_KEY_AND_FLAG = TypeAdapter(t.Tuple[StrictStr, StrictBool])
_KEY_ONLY = TypeAdapter(t.Tuple[StrictStr])


# -----------------------
# Param helpers
# -----------------------

def _parse(adapter: TypeAdapter, params: t.Sequence[t.Any], usage: str) -> tuple:
    try:
        return adapter.validate_python(list(params))
    except ValidationError:
        log.debug("rejected params %r (%s)", params, usage)
        raise rpc_errors.InvalidParams(usage) from None


def _hash_key(block_hash: str) -> BlockKey:
    try:
        return ByHash(strip_hex_prefix(block_hash))
    except ValueError:
        raise rpc_errors.InvalidParams("Invalid block hash, must have 0x") from None


def _number_key(block_num: str) -> BlockKey:
    try:
        return parse_block_key(block_num)
    except BlockKeyError:
        raise rpc_errors.InvalidParams("Invalid block number") from None


async def _block(key: BlockKey, full: bool) -> dict[str, t.Any] | None:
    ctx = deps.get_ctx()
    return await render_block(ctx.ledger, key, full, parallel=ctx.parallel_tx_lookups)


async def _txn_count(key: BlockKey) -> str | None:
    count = await count_transactions(deps.get_ledger(), key)
    return None if count is None else num_to_hex(count)


# -----------------------
# Methods
# -----------------------

@method("eth_blockNumber")
async def block_number(*_params: t.Any) -> str:
    """Return the number of the most recent block as a hex QUANTITY."""
    log.info("eth_blockNumber")
    return num_to_hex(await current_height(deps.get_ledger()))


@method("eth_getBlockByHash")
async def get_block_by_hash(*params: t.Any) -> dict[str, t.Any] | None:
    """Return a block by hash, or null if unknown."""
    log.info("eth_getBlockByHash")
    block_hash, full = _parse(_KEY_AND_FLAG, params, "Takes [blockHash: DATA(64), full: BOOL]")
    return await _block(_hash_key(block_hash), full)


@method("eth_getBlockByNumber")
async def get_block_by_number(*params: t.Any) -> dict[str, t.Any] | None:
    """Return a block by number or tag, or null if unknown."""
    log.info("eth_getBlockByNumber")
    block_num, full = _parse(_KEY_AND_FLAG, params, "Takes [blockNum: QUANTITY|TAG, full: BOOL]")
    return await _block(_number_key(block_num), full)


@method("eth_getBlockTransactionCountByHash")
async def get_block_transaction_count_by_hash(*params: t.Any) -> str | None:
    """Return the number of transactions in a block by hash, or null if unknown."""
    log.info("eth_getBlockTransactionCountByHash")
    (block_hash,) = _parse(_KEY_ONLY, params, "Takes [blockHash: DATA(64)]")
    return await _txn_count(_hash_key(block_hash))


@method("eth_getBlockTransactionCountByNumber")
async def get_block_transaction_count_by_number(*params: t.Any) -> str | None:
    """Return the number of transactions in a block by number or tag, or null if unknown."""
    log.info("eth_getBlockTransactionCountByNumber")
    (block_num,) = _parse(_KEY_ONLY, params, "Takes [blockNum: QUANTITY|TAG]")
    return await _txn_count(_number_key(block_num))
