"""
ledgerkit.rpc
=============

- :mod:`ledgerkit.rpc.http`   : async JSON-RPC 2.0 transport over httpx
- :mod:`ledgerkit.rpc.ledger` : typed ledger reads, transaction prepare/send/confirm
"""

from __future__ import annotations

from .http import AsyncRpcClient
from .ledger import LedgerRpc, resolve_cluster

__all__ = ["AsyncRpcClient", "LedgerRpc", "resolve_cluster"]
