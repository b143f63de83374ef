"""Shared fixtures — an in-process stand-in for a web3 node and token contract."""

from typing import Optional

import pytest
from web3.exceptions import ContractLogicError


class FakeCall:
    def __init__(self, contract: "FakeContract", args: tuple) -> None:
        self._contract = contract
        self._args = args

    def build_transaction(self, params: dict) -> dict:
        if self._contract.revert_message:
            raise ContractLogicError(self._contract.revert_message)
        self._contract.built.append((self._args, params))
        tx = dict(params)
        tx.setdefault("gas", 60_000)
        tx.update({"to": self._contract.address, "value": 0, "data": "0xa9059cbb"})
        return tx

    def call(self) -> int:
        return self._contract.balances.get(self._args[0], 0)


class FakeFunctions:
    def __init__(self, contract: "FakeContract") -> None:
        self._contract = contract

    def transfer(self, to: str, amount: int) -> FakeCall:
        return FakeCall(self._contract, (to, amount))

    def balanceOf(self, holder: str) -> FakeCall:
        return FakeCall(self._contract, (holder,))


class FakeContract:
    def __init__(self, address: str) -> None:
        self.address = address
        self.functions = FakeFunctions(self)
        self.built: list = []
        self.balances: dict[str, int] = {}
        self.revert_message = ""


class FakeEth:
    """Node side: records raw transactions, answers receipts."""

    def __init__(self, receipt_status: int) -> None:
        self.receipt_status = receipt_status
        self.contracts: dict[str, FakeContract] = {}
        self.sent: list[bytes] = []
        self.send_error: Optional[Exception] = None
        self.receipt_error: Optional[Exception] = None

    def contract(self, address: str, abi: list) -> FakeContract:
        return self.contracts.setdefault(address, FakeContract(address))

    def get_transaction_count(self, address: str) -> int:
        return len(self.sent)

    def send_raw_transaction(self, raw: bytes) -> bytes:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(bytes(raw))
        return b"\x12" * 32

    def wait_for_transaction_receipt(self, tx_hash: str, timeout: int) -> dict:
        if self.receipt_error is not None:
            raise self.receipt_error
        return {"status": self.receipt_status, "blockNumber": 1}


class FakeWeb3:
    def __init__(self, receipt_status: int = 1) -> None:
        self.eth = FakeEth(receipt_status)


@pytest.fixture
def fake_web3():
    """Factory for fake web3 instances: fake_web3(receipt_status=1)."""
    return FakeWeb3
