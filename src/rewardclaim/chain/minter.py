"""On-chain reward minter — mints reward batches on an ERC-1155 reward contract.

The settlement engine only needs a ``mint_batch`` capability. This adapter
provides it against a deployed reward contract by sending a signed
``safeBatchMint(address,uint256[],uint256[],bytes)`` transaction from an
account that holds the contract's minter role, then waiting for the
receipt. A reverted mint raises, which aborts the settlement that
requested it.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from eth_utils import to_checksum_address

logger = logging.getLogger(__name__)

SAFE_BATCH_MINT_ABI = [
    {
        "name": "safeBatchMint",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "ids", "type": "uint256[]"},
            {"name": "values", "type": "uint256[]"},
            {"name": "data", "type": "bytes"},
        ],
        "outputs": [],
    },
]


class MintTransactionFailed(RuntimeError):
    """A mint transaction was mined but reverted."""

    def __init__(self, tx_hash: str, recipient: str) -> None:
        super().__init__(f"Mint transaction {tx_hash} to {recipient} reverted")
        self.tx_hash = tx_hash
        self.recipient = recipient


class Web3RewardMinter:
    """RewardMinter backed by a web3 connection and a minter private key.

    Usage:
        minter = Web3RewardMinter.from_rpc(rpc_url, reward_contract, private_key)
        engine = ClaimSettlementEngine(owner, fee_contract, minter)
    """

    def __init__(
        self,
        w3: Any,
        reward_contract: str,
        private_key: str,
        chain_id: int,
        gas: int = 300_000,
        receipt_timeout: int = 300,
    ) -> None:
        from eth_account import Account

        self._w3 = w3
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._gas = gas
        self._receipt_timeout = receipt_timeout
        self._contract = w3.eth.contract(
            address=to_checksum_address(reward_contract),
            abi=SAFE_BATCH_MINT_ABI,
        )

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        reward_contract: str,
        private_key: str,
        chain_id: int = 11155111,  # Sepolia
        **kwargs: Any,
    ) -> Web3RewardMinter:
        from web3 import Web3, HTTPProvider

        return cls(Web3(HTTPProvider(rpc_url)), reward_contract, private_key, chain_id, **kwargs)

    @property
    def minter_address(self) -> str:
        return self._account.address

    def mint_batch(
        self,
        recipient: str,
        item_ids: Sequence[int],
        amounts: Sequence[int],
    ) -> str:
        """Send the mint transaction and wait for it. Returns the tx hash."""
        nonce = self._w3.eth.get_transaction_count(self._account.address)
        tx = self._contract.functions.safeBatchMint(
            to_checksum_address(recipient), list(item_ids), list(amounts), b"",
        ).build_transaction({
            "from": self._account.address,
            "nonce": nonce,
            "chainId": self._chain_id,
            "gas": self._gas,
        })

        signed = self._account.sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.info("mint sent: tx=%s recipient=%s", tx_hash.hex(), recipient)

        receipt = self._w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout,
        )
        if receipt.status != 1:
            raise MintTransactionFailed(tx_hash.hex(), recipient)

        logger.info("mint confirmed in block %s", receipt.blockNumber)
        return tx_hash.hex()
