# /liquidator/adapters/flashloan.py
# - Executor for live chains: hands a liquidation plan to the pre-deployed
#   receiver contract, which borrows, liquidates, swaps and repays in one
#   transaction. The chain's own revert semantics give the atomicity.

from typing import Protocol

from eth_abi import encode
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError

from liquidator.core.errors import LiquidationError, ProtocolRevert
from liquidator.core.logger import LIQUIDATION_ATTEMPTS, LIQUIDATION_PROFIT, get_logger
from liquidator.core.models import ExecutionResult, LiquidationPlan, Outcome, SwapQuote
from liquidator.core.tx import TransactionManager
from liquidator.engine.swap_planner import SwapPlanner

log = get_logger(__name__)

# A minimal ABI for our FlashloanReceiver contract
RECEIVER_ABI = [
    {"inputs": [{"internalType": "address[]", "name": "assets", "type": "address[]"}, {"internalType": "uint256[]", "name": "amounts", "type": "uint256[]"}, {"internalType": "bytes", "name": "params", "type": "bytes"}], "name": "initiateFlashloan", "outputs": [], "stateMutability": "nonpayable", "type": "function"},
]

# (collateralAsset, debtAsset, user, debtToCover, swapPath, minAmountOut, profitRecipient)
LIQUIDATION_PARAMS_TYPES = ["address", "address", "address", "uint256", "address[]", "uint256", "address"]


class BalanceReader(Protocol):
    def balance_of(self, asset: str, holder: str) -> int: ...


class FlashloanAdapter:
    """
    Adapter for interacting with our deployed FlashloanReceiver contract.
    Implements the same ``request(plan, initiator)`` as the in-process orchestrator.
    """
    def __init__(
        self,
        tx_manager: TransactionManager,
        receiver_address: str,
        planner: SwapPlanner,
        balances: BalanceReader,
    ):
        self.tx_manager = tx_manager
        self.w3: Web3 = tx_manager.w3
        self.planner = planner
        self.balances = balances
        self.receiver_address = Web3.to_checksum_address(receiver_address)
        self.receiver_contract: Contract = self.w3.eth.contract(
            address=self.receiver_address, abi=RECEIVER_ABI
        )
        log.info(
            "FLASHLOAN_ADAPTER_INITIALIZED",
            receiver_address=self.receiver_address
        )

    def encode_plan(self, plan: LiquidationPlan, quote: SwapQuote, recipient: str) -> bytes:
        """
        Encodes a plan into the ``params`` payload the receiver decodes in
        ``executeOperation``. A same-asset plan carries a single-element path
        and the receiver skips the swap.
        """
        return encode(
            LIQUIDATION_PARAMS_TYPES,
            [
                Web3.to_checksum_address(plan.collateral_asset),
                Web3.to_checksum_address(plan.debt_asset),
                Web3.to_checksum_address(plan.user),
                plan.debt_amount_to_cover,
                [Web3.to_checksum_address(a) for a in quote.route],
                quote.min_output_amount,
                Web3.to_checksum_address(recipient),
            ],
        )

    def request(self, plan: LiquidationPlan, initiator: str) -> ExecutionResult:
        try:
            quote = self.planner.quote(plan.collateral_asset, plan.expected_collateral_out, plan.debt_asset)
        except LiquidationError as e:
            return ExecutionResult.failed(plan.user, e)

        calldata = self.receiver_contract.encode_abi(
            "initiateFlashloan",
            args=[
                [Web3.to_checksum_address(plan.debt_asset)],
                [plan.debt_amount_to_cover],
                self.encode_plan(plan, quote, initiator),
            ],
        )
        log.info(
            "FLASHLOAN_INITIATED",
            user=plan.user,
            asset=plan.debt_asset,
            amount=str(plan.debt_amount_to_cover),
            receiver=self.receiver_address,
        )

        balance_before = self.balances.balance_of(plan.debt_asset, initiator)
        try:
            tx_hash = self.tx_manager.build_and_send_transaction({"to": self.receiver_address, "data": calldata})
        except ContractLogicError as e:
            # Reverted during gas estimation: nothing was mined, nothing was spent.
            return self._aborted(plan, ProtocolRevert(str(e)))

        receipt = self.tx_manager.wait_for_receipt(tx_hash)
        if receipt["status"] != 1:
            return self._aborted(plan, ProtocolRevert(f"transaction {tx_hash} reverted"))

        profit = self.balances.balance_of(plan.debt_asset, initiator) - balance_before
        LIQUIDATION_ATTEMPTS.labels(Outcome.PROFITABLE.value).inc()
        LIQUIDATION_PROFIT.labels(plan.debt_asset).inc(max(profit, 0))
        log.info("LIQUIDATION_SETTLED", user=plan.user, profit=str(profit), tx_hash=tx_hash)
        return ExecutionResult(
            user=plan.user,
            success=True,
            profit=profit,
            profit_asset=plan.debt_asset,
            outcome=Outcome.PROFITABLE,
            detail=tx_hash,
        )

    def _aborted(self, plan: LiquidationPlan, error: ProtocolRevert) -> ExecutionResult:
        LIQUIDATION_ATTEMPTS.labels(Outcome.ABORTED.value).inc()
        log.warning("LIQUIDATION_ABORTED", user=plan.user, detail=error.reason)
        return ExecutionResult.failed(plan.user, error, Outcome.ABORTED)
