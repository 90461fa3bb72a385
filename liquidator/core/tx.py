# /liquidator/core/tx.py
# Builds, signs and broadcasts transactions from the executor account.
from typing import Any, Dict

from web3 import Web3

from liquidator.core.logger import get_logger
from liquidator.core.resilient_rpc import ResilientWeb3Provider

log = get_logger(__name__)


class TransactionManager:
    """Manages the lifecycle of a transaction: fill, sign, send, await receipt."""

    def __init__(self, provider: ResilientWeb3Provider, chain_id: int = 1):
        if provider.account is None:
            raise ValueError("TransactionManager needs a provider with a signing account.")
        self.provider = provider
        self.w3 = provider.get_primary_provider()
        self.account = provider.account
        self.address = provider.address
        self.chain_id = chain_id
        log.info("TRANSACTION_MANAGER_INITIALIZED", address=self.address, chain_id=chain_id)

    @property
    def nonce(self) -> int:
        return self.w3.eth.get_transaction_count(self.address, "pending")

    def build_and_send_transaction(self, tx_params: Dict[str, Any]) -> str:
        """Builds, signs, and sends a transaction. Never retried: a resend could double-spend the nonce."""
        full_tx_params = {
            "from": self.address,
            "nonce": self.nonce,
            "chainId": self.chain_id,
            **tx_params,
        }
        try:
            if "gas" not in full_tx_params:
                full_tx_params["gas"] = self.w3.eth.estimate_gas(full_tx_params)

            if "maxFeePerGas" not in full_tx_params:
                full_tx_params["maxFeePerGas"] = self.w3.eth.gas_price * 2
                full_tx_params["maxPriorityFeePerGas"] = self.w3.eth.max_priority_fee

            signed_tx = self.w3.eth.account.sign_transaction(full_tx_params, self.account.key)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            log.error("TRANSACTION_FAILURE", nonce=full_tx_params["nonce"], error=str(e), exc_info=True)
            raise

        log.info("TRANSACTION_BROADCASTED", tx_hash=Web3.to_hex(tx_hash), nonce=full_tx_params["nonce"])
        return Web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: int = 120) -> Dict[str, Any]:
        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        log.info("TRANSACTION_MINED", tx_hash=tx_hash, status=receipt["status"], block=receipt["blockNumber"])
        return receipt
