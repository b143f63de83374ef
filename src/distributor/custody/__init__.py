"""Custody subsystem — asset store contract and its adapters.

Adding a new store = implement the AssetStore Protocol. Zero changes to
claim, sweep, or ledger logic.
"""

from distributor.custody.base import AssetStore, TransferError, TransferPending
from distributor.custody.memory import InMemoryAssetStore

__all__ = [
    "AssetStore",
    "InMemoryAssetStore",
    "TransferError",
    "TransferPending",
]
