# /liquidator/strategies/liquidation.py
# Finds a liquidatable borrower, sizes the liquidation, and hands the plan to an
# executor: the in-process orchestrator on the simulated market, or the
# receiver contract on a live chain.
import uuid
from typing import Iterable, Optional, Tuple

from structlog.contextvars import unbind_contextvars

from liquidator.core.config import EngineConfig
from liquidator.core.errors import LiquidationError, NotLiquidatable, Unprofitable
from liquidator.core.logger import bind_attempt, get_logger
from liquidator.core.models import ExecutionResult, LiquidationPlan, SwapQuote
from liquidator.core.state import State
from liquidator.engine.interfaces import Executor
from liquidator.engine.position_oracle import PositionOracle
from liquidator.engine.sizer import LiquidationSizer
from liquidator.engine.swap_planner import SwapPlanner
from liquidator.strategies.base import AbstractStrategy

log = get_logger(__name__)


class LiquidationStrategy(AbstractStrategy):
    def __init__(
        self,
        oracle: PositionOracle,
        sizer: LiquidationSizer,
        planner: SwapPlanner,
        executor: Optional[Executor],
        config: EngineConfig,
        initiator: str,
    ):
        self.oracle = oracle
        self.sizer = sizer
        self.planner = planner
        self.executor = executor
        self.config = config
        self.initiator = initiator
        log.info("LIQUIDATION_STRATEGY_INITIALIZED", initiator=initiator)

    def _prepare(self, target_user: str) -> Tuple[LiquidationPlan, SwapQuote]:
        """Everything before the borrow. Raises on any reason not to proceed; costs nothing on chain."""
        position = self.oracle.read(target_user)
        plan = self.sizer.plan(position)
        if plan is None:
            raise NotLiquidatable(target_user, position.health_factor)

        quote = self.planner.quote(plan.collateral_asset, plan.expected_collateral_out, plan.debt_asset)
        premium = plan.debt_amount_to_cover * self.config.flashloan_premium_bps // 10_000
        owed = plan.debt_amount_to_cover + premium
        if quote.min_output_amount < owed:
            raise Unprofitable(quote.min_output_amount, owed, "rejected before borrowing")
        return plan, quote

    def simulate(self, target_user: str) -> Optional[Tuple[LiquidationPlan, SwapQuote]]:
        try:
            return self._prepare(target_user)
        except LiquidationError as e:
            log.info("SIMULATION_NO_OPPORTUNITY", user=target_user, reason=e.code, detail=str(e))
            return None

    def attempt_liquidation(self, target_user: str) -> ExecutionResult:
        """
        Single externally driven operation. Expected conditions (healthy
        position, lost race, no route, unprofitable) come back as an
        unsuccessful result; only programming or configuration errors raise.
        """
        bind_attempt(target_user, uuid.uuid4().hex)
        try:
            try:
                plan, quote = self._prepare(target_user)
            except LiquidationError as e:
                log.info("LIQUIDATION_NOT_ATTEMPTED", reason=e.code, detail=str(e))
                return ExecutionResult.failed(target_user, e)

            log.warning(
                "LIQUIDATABLE_TARGET_FOUND",
                debt_to_cover=str(plan.debt_amount_to_cover),
                expected_out=str(quote.expected_output_amount),
                min_out=str(quote.min_output_amount),
            )
            return self.executor.request(plan, self.initiator)
        finally:
            unbind_contextvars("target_user", "attempt_id")

    def run(self, state: State, targets: Iterable[str]) -> State:
        for target in targets:
            result = self.attempt_liquidation(target)
            state = state.record_attempt(result)
        return state

    def abort(self, reason: str):
        log.critical("STRATEGY_ABORTED", reason=reason)
