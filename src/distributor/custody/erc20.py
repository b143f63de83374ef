"""ERC-20 custody — disburses from a token balance held by an Ethereum account.

The custody account is the account whose key signs the transfers. Each
transfer is a signed `transfer(to, amount)` call on the token contract,
sent to the node and awaited for one confirmation. A receipt with
status 1 is success; status 0 is a rejected transfer. A revert detected
while estimating gas (insufficient balance, paused token) surfaces as
TransferError carrying the contract's revert message.

Once the signed transaction has been offered to the node, a failure no
longer proves that nothing moved: a receipt timeout or a dropped
connection raises TransferPending with the transaction hash. Only an
explicit JSON-RPC error from the node on submission counts as not sent.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from eth_account import Account
from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError, Web3RPCError

from distributor.crypto.merkle import normalize_address, validate_amount
from distributor.custody.base import TransferError, TransferPending

logger = logging.getLogger(__name__)

ERC20_ABI: list[dict[str, Any]] = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


class Erc20AssetStore:
    """Custody handle over an ERC-20 token balance.

    Usage:
        store = Erc20AssetStore.from_rpc(
            rpc_url, private_key, token_address, chain_id=11155111,
        )
        store.transfer("0xRecipient...", 100)
    """

    def __init__(
        self,
        w3: Any,
        account: Any,
        token_address: str,
        chain_id: int = 11155111,  # Sepolia
        gas: Optional[int] = None,
        gas_price_gwei: str = "2",
        receipt_timeout: int = 300,
    ) -> None:
        self._w3 = w3
        self._account = account
        self._token_address = normalize_address(token_address)
        self._chain_id = chain_id
        self._gas = gas
        self._gas_price_gwei = gas_price_gwei
        self._receipt_timeout = receipt_timeout
        self._contract = w3.eth.contract(address=self._token_address, abi=ERC20_ABI)

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        private_key: str,
        token_address: str,
        chain_id: int = 11155111,
        **kwargs: Any,
    ) -> Erc20AssetStore:
        """Connect over HTTP and sign with a hex-encoded private key."""
        w3 = Web3(HTTPProvider(rpc_url))
        account = Account.from_key(private_key)
        return cls(w3, account, token_address, chain_id=chain_id, **kwargs)

    @property
    def asset_id(self) -> str:
        return self._token_address

    @property
    def custodian(self) -> str:
        return self._account.address

    def balance(self) -> int:
        return self.balance_of(self._account.address)

    def balance_of(self, holder: str) -> int:
        return self._contract.functions.balanceOf(normalize_address(holder)).call()

    def transfer(self, to: str, amount: int) -> bool:
        recipient = normalize_address(to)
        validate_amount(amount)

        params: dict[str, Any] = {
            "from": self._account.address,
            "nonce": self._w3.eth.get_transaction_count(self._account.address),
            "chainId": self._chain_id,
            "gasPrice": Web3.to_wei(self._gas_price_gwei, "gwei"),
        }
        if self._gas is not None:
            params["gas"] = self._gas

        try:
            tx = self._contract.functions.transfer(recipient, amount).build_transaction(params)
        except ContractLogicError as e:
            raise TransferError(f"Token transfer reverted: {e}") from e

        signed = self._account.sign_transaction(tx)
        tx_hash = "0x" + bytes(signed.hash).hex()

        # From here on the transaction may be in a mempool.
        try:
            self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except Web3RPCError as e:
            raise TransferError(f"Token transfer refused by node: {e}") from e
        except Exception as e:
            raise TransferPending(tx_hash, f"Submission of {tx_hash} unconfirmed: {e}") from e
        logger.info("Sent transfer of %d to %s: tx %s", amount, recipient, tx_hash)

        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout,
            )
        except Exception as e:
            raise TransferPending(tx_hash, f"No receipt for {tx_hash}: {e}") from e
        if receipt["status"] != 1:
            logger.warning("Transfer tx %s failed on-chain", tx_hash)
            return False
        return True
