# /liquidator/engine/orchestrator.py
"""
The atomic sequencer: borrow, liquidate, convert, verify, repay.

``request`` opens one atomic unit on the chain boundary and asks the loan
source for the plan's debt. The loan source calls back into ``execute``
synchronously from inside that unit; there is no suspension point between
borrowing and repaying. Any exception raised anywhere below ``request``
unwinds the whole unit through the boundary, so no step here performs
compensating actions of its own.
"""
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError

from liquidator.core.errors import (
    IllegalPhaseTransition,
    InsufficientOutputAmount,
    LiquidationError,
    MalformedFlashLoan,
    ProtocolRevert,
    RaceLost,
    SwapReverted,
    Unprofitable,
)
from liquidator.core.logger import (
    ATOMIC_ROLLBACKS,
    LIQUIDATION_ATTEMPTS,
    LIQUIDATION_PROFIT,
    get_logger,
)
from liquidator.core.models import (
    ExecutionResult,
    FlashLoanRequest,
    LiquidationPlan,
    Outcome,
    Phase,
)
from liquidator.engine.interfaces import (
    AtomicBoundary,
    FlashLoanService,
    LendingService,
    SwapService,
    TokenLedger,
)
from liquidator.engine.profit_guard import ProfitGuard
from liquidator.engine.swap_planner import SwapPlanner

log = get_logger(__name__)

_TRANSITIONS: Dict[Phase, set] = {
    Phase.IDLE: {Phase.REQUESTED},
    Phase.REQUESTED: {Phase.IN_CALLBACK, Phase.SETTLED},
    Phase.IN_CALLBACK: {Phase.REPAYING, Phase.SETTLED},
    Phase.REPAYING: {Phase.SETTLED},
    Phase.SETTLED: {Phase.IDLE},
}


class FlashLoanOrchestrator:
    def __init__(
        self,
        address: str,
        ledger: TokenLedger,
        chain: AtomicBoundary,
        lending: LendingService,
        flash_lender: FlashLoanService,
        venue: SwapService,
        planner: SwapPlanner,
        guard: ProfitGuard,
    ):
        self.address = address
        self.ledger = ledger
        self.chain = chain
        self.lending = lending
        self.flash_lender = flash_lender
        self.venue = venue
        self.planner = planner
        self.guard = guard

        self.phase = Phase.IDLE
        self.outcome: Optional[Outcome] = None
        self.trace: List[Phase] = [Phase.IDLE]
        self._baseline: Dict[str, int] = {}
        self._request: Optional[FlashLoanRequest] = None

    # -----------------------------------------------------------
    # State machine
    # -----------------------------------------------------------

    def _transition(self, to: Phase):
        if to not in _TRANSITIONS[self.phase]:
            raise IllegalPhaseTransition(f"{self.phase.value} -> {to.value}")
        log.debug("PHASE_TRANSITION", frm=self.phase.value, to=to.value)
        self.phase = to
        self.trace.append(to)

    def _settle(self, outcome: Outcome):
        self._transition(Phase.SETTLED)
        self.outcome = outcome
        self._request = None
        LIQUIDATION_ATTEMPTS.labels(outcome.value).inc()

    # -----------------------------------------------------------
    # Entry: Idle -> Requested -> ... -> Settled
    # -----------------------------------------------------------

    def request(self, plan: LiquidationPlan, initiator: str) -> ExecutionResult:
        if self.phase == Phase.SETTLED:
            self._transition(Phase.IDLE)
        self.trace = [self.phase]
        self.outcome = None
        self._transition(Phase.REQUESTED)

        log.info(
            "FLASHLOAN_REQUESTED",
            user=plan.user,
            asset=plan.debt_asset,
            amount=str(plan.debt_amount_to_cover),
            lender=self.flash_lender.address,
        )
        try:
            with self.chain.atomic():
                self._baseline = {plan.debt_asset: self.ledger.balance_of(plan.debt_asset, self.address)}
                self.flash_lender.flash_loan(
                    receiver=self,
                    assets=[plan.debt_asset],
                    amounts=[plan.debt_amount_to_cover],
                    params=plan.encode(),
                    initiator=self.address,
                )
                profit = self._sweep(plan.debt_asset, initiator)
        except (LiquidationError, ProtocolRevert) as e:
            return self._abort(plan, e)
        except Exception:
            ATOMIC_ROLLBACKS.inc()
            log.error("ATOMIC_UNIT_FAILED_UNEXPECTEDLY", user=plan.user, phase=self.phase.value, exc_info=True)
            self._settle(Outcome.ABORTED)
            raise

        self._settle(Outcome.PROFITABLE)
        LIQUIDATION_PROFIT.labels(plan.debt_asset).inc(profit)
        log.info("LIQUIDATION_SETTLED", user=plan.user, profit=str(profit), asset=plan.debt_asset)
        return ExecutionResult(
            user=plan.user,
            success=True,
            profit=profit,
            profit_asset=plan.debt_asset,
            outcome=Outcome.PROFITABLE,
        )

    def _abort(self, plan: LiquidationPlan, error: Exception) -> ExecutionResult:
        ATOMIC_ROLLBACKS.inc()
        log.warning(
            "LIQUIDATION_ABORTED",
            user=plan.user,
            phase=self.phase.value,
            reason=getattr(error, "code", type(error).__name__),
            detail=str(error),
        )
        self._settle(Outcome.ABORTED)
        return ExecutionResult.failed(plan.user, error, Outcome.ABORTED)

    def _sweep(self, asset: str, beneficiary: str) -> int:
        """Residual above the pre-attempt baseline goes to the initiator."""
        residual = self.ledger.balance_of(asset, self.address) - self._baseline.get(asset, 0)
        if residual > 0:
            self.ledger.transfer(asset, self.address, beneficiary, residual)
        return residual

    # -----------------------------------------------------------
    # Callback: Requested -> InCallback -> Repaying
    # -----------------------------------------------------------

    def execute(
        self,
        assets: Sequence[str],
        amounts: Sequence[int],
        premiums: Sequence[int],
        initiator: str,
        params: bytes,
    ) -> bool:
        if self.phase != Phase.REQUESTED:
            raise IllegalPhaseTransition(f"flash-loan callback received in phase {self.phase.value}")
        try:
            request = FlashLoanRequest(
                assets=tuple(assets),
                amounts=tuple(amounts),
                premiums=tuple(premiums),
                initiator=initiator,
                params=params,
            )
        except ValidationError as e:
            raise MalformedFlashLoan(str(e)) from e
        if initiator.lower() != self.address.lower():
            raise MalformedFlashLoan(f"flash loan initiated by {initiator}, not by this receiver")

        try:
            plan = LiquidationPlan.decode(request.params)
        except ValidationError as e:
            raise MalformedFlashLoan(f"undecodable params: {e}") from e
        if request.assets[0].lower() != plan.debt_asset.lower():
            raise MalformedFlashLoan("first borrowed asset is not the plan's debt asset")

        self._transition(Phase.IN_CALLBACK)
        self._request = request

        owed = request.owed(0)
        seized = self._liquidate(plan, request.amounts[0])
        self._convert(plan, seized, owed)

        for i, asset in enumerate(request.assets):
            available = self.ledger.balance_of(asset, self.address) - self._baseline.get(asset, 0)
            self.guard.check(available, request.owed(i))

        self._transition(Phase.REPAYING)
        for i, asset in enumerate(request.assets):
            self.ledger.approve(asset, self.address, self.flash_lender.address, request.owed(i))
        return True

    def _liquidate(self, plan: LiquidationPlan, amount: int) -> int:
        collateral_before = self.ledger.balance_of(plan.collateral_asset, self.address)
        self.ledger.approve(plan.debt_asset, self.address, self.lending.address, amount)
        try:
            self.lending.liquidation_call(
                plan.collateral_asset, plan.debt_asset, plan.user, amount, False, self.address
            )
        except ProtocolRevert as e:
            # The position moved since it was read, most often because someone liquidated it first.
            raise RaceLost(plan.user, e.reason) from e

        # Net of the repayment when collateral and debt are the same asset.
        seized = self.ledger.balance_of(plan.collateral_asset, self.address) - collateral_before
        if seized <= 0:
            raise RaceLost(plan.user, "liquidation returned no collateral")
        log.info("COLLATERAL_SEIZED", user=plan.user, asset=plan.collateral_asset, amount=str(seized))
        return seized

    def _convert(self, plan: LiquidationPlan, seized: int, owed: int):
        if plan.collateral_asset.lower() == plan.debt_asset.lower():
            return

        # Fresh quote for what was actually received, not what the plan expected.
        quote = self.planner.quote(plan.collateral_asset, seized, plan.debt_asset)
        available = self.ledger.balance_of(plan.debt_asset, self.address) - self._baseline.get(plan.debt_asset, 0)
        if available + quote.min_output_amount < owed:
            raise Unprofitable(available + quote.min_output_amount, owed, "worst-case swap output cannot cover repayment")

        self.ledger.approve(plan.collateral_asset, self.address, self.venue.address, seized)
        try:
            amount_out = self.venue.swap(quote, self.address, self.address)
        except InsufficientOutputAmount as e:
            raise Unprofitable(available + e.amount_out, owed, str(e)) from e
        except ProtocolRevert as e:
            raise SwapReverted(quote.route, e.reason) from e
        log.info("COLLATERAL_SWAPPED", route=list(quote.route), amount_in=str(seized), amount_out=str(amount_out))
