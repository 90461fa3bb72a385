# /main.py
# Entry point: reads every configured target from the live chain, sizes a
# liquidation for each, and either reports the dry run or submits it to the
# receiver contract when EXECUTE_LIVE is set.
import sys

from liquidator.adapters.aave import AaveV2Adapter
from liquidator.adapters.dex import UniswapV2Adapter
from liquidator.adapters.erc20 import Erc20Reader
from liquidator.adapters.flashloan import FlashloanAdapter
from liquidator.core.config import EngineConfig, Settings, settings
from liquidator.core.config_validator import validate as validate_config
from liquidator.core.logger import get_logger
from liquidator.core.resilient_rpc import ResilientWeb3Provider
from liquidator.core.state import State
from liquidator.core.tx import TransactionManager
from liquidator.engine.position_oracle import PositionOracle
from liquidator.engine.sizer import LiquidationSizer
from liquidator.engine.swap_planner import SwapPlanner
from liquidator.strategies.liquidation import LiquidationStrategy

log = get_logger("Liquidator.System")


def build_live_strategy(s: Settings) -> LiquidationStrategy:
    config = EngineConfig.from_settings(s)
    provider = ResilientWeb3Provider.from_settings(s)
    w3 = provider.get_primary_provider()

    aave = AaveV2Adapter(w3, s.AAVE_LENDING_POOL, s.AAVE_DATA_PROVIDER, s.AAVE_PRICE_ORACLE)
    planner = SwapPlanner(UniswapV2Adapter(w3, s.UNISWAP_V2_ROUTER), aave, config)

    executor = None
    initiator = provider.address
    if s.EXECUTE_LIVE:
        tx_manager = TransactionManager(provider, s.chain_id)
        executor = FlashloanAdapter(tx_manager, s.LIQUIDATION_RECEIVER_ADDRESS, planner, Erc20Reader(w3))

    return LiquidationStrategy(
        oracle=PositionOracle(aave, aave, config),
        sizer=LiquidationSizer(config),
        planner=planner,
        executor=executor,
        config=config,
        initiator=initiator,
    )


def dry_run(strategy: LiquidationStrategy, targets):
    for user in targets:
        opportunity = strategy.simulate(user)
        if opportunity:
            plan, quote = opportunity
            log.warning(
                "DRY_RUN_OPPORTUNITY",
                user=user,
                debt_asset=plan.debt_asset,
                debt_to_cover=str(plan.debt_amount_to_cover),
                collateral_asset=plan.collateral_asset,
                expected_out=str(quote.expected_output_amount),
                route=list(quote.route),
            )


def main() -> int:
    validate_config(settings)
    log.info("LIQUIDATOR_STARTING", execute_live=settings.EXECUTE_LIVE, targets=len(settings.TARGET_USERS))
    strategy = build_live_strategy(settings)

    try:
        if not settings.EXECUTE_LIVE:
            dry_run(strategy, settings.TARGET_USERS)
            return 0
        state = strategy.run(State(), settings.TARGET_USERS)
    except Exception as e:
        strategy.abort(f"{type(e).__name__}: {e}")
        raise

    log.info(
        "SESSION_COMPLETE",
        session_id=str(state.session_id),
        successful=state.successful_attempts,
        profit=state.profit_by_asset,
    )
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass
