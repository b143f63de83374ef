"""In-memory asset store — an integer balance ledger for one asset.

Used for local distributions, dry runs, and tests. Balances are keyed by
checksummed address. A receive hook registered for an address runs after
tokens arrive there, standing in for recipient-side code (a contract
callback, a compliance check). A hook that returns False rejects the
transfer and the balance move is undone.
"""

from __future__ import annotations

import threading
from typing import Callable, Dict

from distributor.crypto.merkle import normalize_address, validate_amount
from distributor.custody.base import TransferError

ReceiveHook = Callable[[str, int], bool]


class InMemoryAssetStore:
    """Asset ledger with a custody handle bound to one holder.

    Usage:
        store = InMemoryAssetStore("DROP", custodian=distributor_address)
        store.credit(distributor_address, 1_000_000)
        store.transfer(recipient, 100)   # debits the custodian
    """

    def __init__(self, asset_id: str, custodian: str) -> None:
        self._asset_id = asset_id
        self._custodian = normalize_address(custodian)
        self._balances: Dict[str, int] = {}
        self._hooks: Dict[str, ReceiveHook] = {}
        self._lock = threading.RLock()

    @property
    def asset_id(self) -> str:
        return self._asset_id

    @property
    def custodian(self) -> str:
        return self._custodian

    def credit(self, holder: str, amount: int) -> None:
        """Mint amount to holder (funding custody, seeding balances)."""
        address = normalize_address(holder)
        validate_amount(amount)
        with self._lock:
            self._balances[address] = self._balances.get(address, 0) + amount

    def balance_of(self, holder: str) -> int:
        return self._balances.get(normalize_address(holder), 0)

    def balance(self) -> int:
        return self.balance_of(self._custodian)

    def set_receive_hook(self, holder: str, hook: ReceiveHook) -> None:
        self._hooks[normalize_address(holder)] = hook

    def transfer(self, to: str, amount: int) -> bool:
        """Debit custody and credit `to`.

        Raises TransferError if custody cannot cover the amount. Returns
        False if the recipient's hook rejects the transfer.
        """
        recipient = normalize_address(to)
        validate_amount(amount)
        with self._lock:
            available = self._balances.get(self._custodian, 0)
            if amount > available:
                raise TransferError(
                    f"Insufficient custody balance for {self._asset_id}: "
                    f"{available} < {amount}"
                )
            self._move(self._custodian, recipient, amount)

            hook = self._hooks.get(recipient)
            if hook is None:
                return True
            try:
                accepted = hook(recipient, amount)
            except Exception:
                self._move(recipient, self._custodian, amount)
                raise
            if not accepted:
                self._move(recipient, self._custodian, amount)
                return False
            return True

    def _move(self, source: str, dest: str, amount: int) -> None:
        self._balances[source] = self._balances.get(source, 0) - amount
        self._balances[dest] = self._balances.get(dest, 0) + amount
