# /liquidator/engine/sizer.py
from typing import Optional, Tuple

from liquidator.core.config import EngineConfig
from liquidator.core.fixed_point import PERCENTAGE_FACTOR, percent_div, percent_mul
from liquidator.core.logger import get_logger
from liquidator.core.models import AssetPosition, LiquidationPlan, Position

log = get_logger(__name__)


def collateral_for_debt(
    debt: AssetPosition,
    collateral: AssetPosition,
    debt_to_cover: int,
    liquidation_bonus: int,
) -> Tuple[int, int]:
    """
    Collateral seized for ``debt_to_cover`` and the debt actually repaid.

    Same arithmetic as Aave V2 ``_calculateAvailableCollateralToLiquidate``:
    when the bonus-inflated collateral exceeds what the user holds, the whole
    balance is seized and the repaid debt is scaled back down.
    """
    max_collateral = percent_mul(
        debt.price * debt_to_cover * collateral.unit, liquidation_bonus
    ) // (collateral.price * debt.unit)

    if max_collateral > collateral.collateral_amount:
        collateral_amount = collateral.collateral_amount
        debt_needed = percent_div(
            collateral.price * collateral_amount * debt.unit // (debt.price * collateral.unit),
            liquidation_bonus,
        )
        return collateral_amount, min(debt_needed, debt_to_cover)
    return max_collateral, debt_to_cover


def _asset_key(position: AssetPosition) -> str:
    return position.asset.lower()


class LiquidationSizer:
    """Picks the debt/collateral pair and sizes a single liquidation call."""

    def __init__(self, config: EngineConfig):
        self.config = config

    def select_debt(self, position: Position) -> Optional[AssetPosition]:
        # Largest debt by ETH value; raw balances are not comparable across decimals.
        # The pool refuses liquidations touching an inactive reserve.
        debts = sorted(
            (r for r in position.debts if r.is_active),
            key=lambda r: (-r.debt_value, _asset_key(r)),
        )
        return debts[0] if debts else None

    def select_collateral(self, position: Position) -> Optional[AssetPosition]:
        # Policy: maximise bonus * value. Not a protocol rule.
        eligible = [
            r for r in position.collaterals
            if r.is_active and r.liquidation_bonus > PERCENTAGE_FACTOR
        ]
        eligible.sort(key=lambda r: (-(r.liquidation_bonus * r.collateral_value), _asset_key(r)))
        return eligible[0] if eligible else None

    def plan(self, position: Position) -> Optional[LiquidationPlan]:
        if not position.is_liquidatable:
            return None

        debt = self.select_debt(position)
        collateral = self.select_collateral(position)
        if debt is None or collateral is None:
            log.info("NO_LIQUIDATABLE_PAIR", user=position.user, has_debt=debt is not None)
            return None

        # Floor rather than percent_mul's half-up so the close factor is never exceeded.
        max_cover = debt.debt_amount * self.config.close_factor_bps // PERCENTAGE_FACTOR
        debt_to_cover = min(max_cover, debt.debt_amount)
        collateral_out, debt_to_cover = collateral_for_debt(
            debt, collateral, debt_to_cover, collateral.liquidation_bonus
        )
        if debt_to_cover == 0 or collateral_out == 0:
            log.info("LIQUIDATION_TOO_SMALL", user=position.user, debt_asset=debt.asset)
            return None

        plan = LiquidationPlan(
            user=position.user,
            debt_asset=debt.asset,
            debt_amount_to_cover=debt_to_cover,
            total_debt=debt.debt_amount,
            collateral_asset=collateral.asset,
            expected_collateral_out=collateral_out,
            liquidation_bonus=collateral.liquidation_bonus,
            close_factor_bps=self.config.close_factor_bps,
        )
        log.info(
            "LIQUIDATION_PLANNED",
            user=position.user,
            debt_asset=debt.symbol or debt.asset,
            collateral_asset=collateral.symbol or collateral.asset,
            debt_to_cover=str(debt_to_cover),
            expected_collateral_out=str(collateral_out),
        )
        return plan
