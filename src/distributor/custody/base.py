"""Custody contract — the asset store the distributor disburses from.

The distributor never holds balances itself. It holds a handle to an
external fungible-asset store, bound to the distributor's own custody
account, and may only request transfers out of that account.

Any store integrated here must implement the AssetStore Protocol.
The claim and sweep paths never interact with a concrete store
directly; swapping an in-memory ledger for an ERC-20 token requires no
change to claim logic.

A store reports a transfer in one of three ways:
- returns True: value moved.
- returns False or raises TransferError: value did not move.
- raises TransferPending: the transfer left the store's hands and may
  still land. Never treated as a failure.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class TransferError(Exception):
    """The asset store refused or could not complete a transfer.

    The message is the store's own reason and is reported to the caller
    unchanged.
    """


class TransferPending(Exception):
    """A transfer was broadcast but its outcome is unknown.

    tx_hash identifies the transaction to reconcile against the chain.
    """

    def __init__(self, tx_hash: str, message: str) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash


@runtime_checkable
class AssetStore(Protocol):
    """A custody handle over one fungible asset."""

    @property
    def asset_id(self) -> str:
        """Identifier of the asset (token address or symbol)."""
        ...

    def transfer(self, to: str, amount: int) -> bool:
        """Move amount from custody to `to`.

        Returns True on success and False if the transfer was rejected.
        A rejected transfer must leave balances unchanged. Stores may
        raise TransferError instead of returning False to carry a reason,
        and TransferPending when they cannot tell whether value moved.
        """
        ...

    def balance(self) -> int:
        """Current custody balance."""
        ...
