"""
Native ledger records → Ethereum JSON-RPC shapes.

Only the transaction projection lives here; the block projection is assembled
in ledger_rpc.blockview because it needs follow-up ledger lookups.
"""

from __future__ import annotations

import typing as t

from .client import Transaction
from .types import hex_prefix, num_to_hex


def txn_view_no_block(txn: Transaction) -> dict[str, t.Any]:
    """
    Project a native Transaction into an Ethereum transaction object without
    block context (blockHash/blockNumber/transactionIndex are null).
    """
    return {
        "hash": hex_prefix(txn.header_signature),
        "nonce": num_to_hex(txn.nonce),
        "blockHash": None,
        "blockNumber": None,
        "transactionIndex": None,
        "from": hex_prefix(txn.from_address),
        "to": hex_prefix(txn.to) if txn.to else None,
        "value": num_to_hex(txn.value),
        "gas": num_to_hex(txn.gas_limit),
        "gasPrice": num_to_hex(txn.gas_price),
        "input": hex_prefix(txn.data),
    }


__all__ = ["txn_view_no_block"]
