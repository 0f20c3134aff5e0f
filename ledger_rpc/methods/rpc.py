from __future__ import annotations

import typing as t

from ledger_rpc import methods
from ledger_rpc.methods import method


@method("rpc.listMethods")
async def list_methods(*_params: t.Any) -> list[str]:
    """Return the list of registered method names (for debugging/clients)."""
    return methods.list_methods()
