# /liquidator/engine/position_oracle.py
# Normalized, protocol-exact view of a borrower's position.
from typing import Iterable, Tuple

from liquidator.core.config import EngineConfig
from liquidator.core.errors import OracleUnavailable
from liquidator.core.fixed_point import UINT256_MAX, percent_mul, wad_div
from liquidator.core.logger import get_logger
from liquidator.core.models import AssetPosition, Position
from liquidator.engine.interfaces import PositionService, PriceService

log = get_logger(__name__)


def calculate_account_totals(reserves: Iterable[AssetPosition]) -> Tuple[int, int, int, int]:
    """
    Returns ``(total_collateral_eth, total_debt_eth, avg_liquidation_threshold,
    health_factor)`` in the order of operations of Aave V2
    ``GenericLogic.calculateUserAccountData``.

    Each reserve is converted to ETH with its own truncating division before
    summing, and the weighted threshold is divided once at the end. Changing
    either order shifts results by a few wei, enough to flip eligibility for
    a position sitting at the 1.0 boundary.
    """
    total_collateral = 0
    total_debt = 0
    weighted_threshold = 0
    for reserve in reserves:
        if reserve.usage_as_collateral_enabled and reserve.collateral_amount > 0:
            value = reserve.price * reserve.collateral_amount // reserve.unit
            total_collateral += value
            weighted_threshold += value * reserve.liquidation_threshold
        if reserve.debt_amount > 0:
            total_debt += reserve.price * reserve.debt_amount // reserve.unit

    avg_threshold = weighted_threshold // total_collateral if total_collateral else 0
    return total_collateral, total_debt, avg_threshold, health_factor_from_balances(
        total_collateral, total_debt, avg_threshold
    )


def health_factor_from_balances(total_collateral_eth: int, total_debt_eth: int, liquidation_threshold: int) -> int:
    if total_debt_eth == 0:
        return UINT256_MAX
    return wad_div(percent_mul(total_collateral_eth, liquidation_threshold), total_debt_eth)


class PositionOracle:
    """Reads account data, reserves and prices into a single ``Position``."""

    def __init__(self, positions: PositionService, prices: PriceService, config: EngineConfig):
        self.positions = positions
        self.prices = prices
        self.config = config

    def read(self, user: str) -> Position:
        try:
            account = self.positions.get_user_account_data(user)
            reserves = []
            # Fixed enumeration over supported assets, never the protocol's list order.
            for asset in self.config.assets:
                user_reserve = self.positions.get_user_reserve_data(asset.address, user)
                if user_reserve.collateral_balance == 0 and user_reserve.total_debt == 0:
                    continue
                reserve_config = self.positions.get_reserve_configuration(asset.address)
                price = self.prices.get_asset_price(asset.address)
                if price <= 0:
                    raise OracleUnavailable(user, f"no price for {asset.symbol} ({asset.address})")
                reserves.append(AssetPosition(
                    asset=asset.address,
                    symbol=asset.symbol,
                    decimals=reserve_config.decimals,
                    collateral_amount=user_reserve.collateral_balance,
                    debt_amount=user_reserve.total_debt,
                    price=price,
                    liquidation_threshold=reserve_config.liquidation_threshold,
                    liquidation_bonus=reserve_config.liquidation_bonus,
                    usage_as_collateral_enabled=(
                        user_reserve.usage_as_collateral_enabled
                        and reserve_config.usage_as_collateral_enabled
                    ),
                    is_active=reserve_config.is_active,
                ))
        except OracleUnavailable:
            raise
        except Exception as e:
            log.error("POSITION_READ_FAILED", user=user, error=str(e))
            raise OracleUnavailable(user, str(e)) from e

        total_collateral, total_debt, avg_threshold, computed = calculate_account_totals(reserves)
        health_factor = computed
        if (total_collateral, total_debt) != (account.total_collateral_eth, account.total_debt_eth):
            # Balances outside the supported assets; only the pool's figure covers them.
            log.warning(
                "UNSUPPORTED_RESERVES_HELD",
                user=user,
                reported_collateral_eth=str(account.total_collateral_eth),
                supported_collateral_eth=str(total_collateral),
                reported_debt_eth=str(account.total_debt_eth),
                supported_debt_eth=str(total_debt),
            )
            health_factor = account.health_factor
        elif computed != account.health_factor:
            log.warning(
                "HEALTH_FACTOR_DRIFT",
                user=user,
                reported=str(account.health_factor),
                computed=str(computed),
            )
            # Liquidatable only when both readings are below 1.
            health_factor = max(computed, account.health_factor)

        position = Position(
            user=user,
            reserves=tuple(reserves),
            total_collateral_eth=total_collateral,
            total_debt_eth=total_debt,
            current_liquidation_threshold=avg_threshold,
            health_factor=health_factor,
        )
        log.info(
            "POSITION_READ",
            user=user,
            health_factor=str(health_factor),
            collateral_eth=str(total_collateral),
            debt_eth=str(total_debt),
            reserves=len(reserves),
        )
        return position
