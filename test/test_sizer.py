# /test/test_sizer.py

import pytest
from pydantic import ValidationError

from conftest import BORROWER, COLL, DEBT, E18, HUB, USDC, make_config
from liquidator.core.fixed_point import WAD
from liquidator.core.models import AssetPosition, LiquidationPlan, Position
from liquidator.engine.position_oracle import calculate_account_totals
from liquidator.engine.sizer import LiquidationSizer, collateral_for_debt


def reserve(asset, *, collateral=0, debt=0, price=E18, decimals=18, bonus=10500, threshold=8000, active=True):
    return AssetPosition(
        asset=asset,
        decimals=decimals,
        collateral_amount=collateral,
        debt_amount=debt,
        price=price,
        liquidation_threshold=threshold,
        liquidation_bonus=bonus,
        usage_as_collateral_enabled=collateral > 0,
        is_active=active,
    )


def position_of(*reserves, health_factor=None):
    collateral, debt, threshold, hf = calculate_account_totals(reserves)
    return Position(
        user=BORROWER,
        reserves=reserves,
        total_collateral_eth=collateral,
        total_debt_eth=debt,
        current_liquidation_threshold=threshold,
        health_factor=hf if health_factor is None else health_factor,
    )


def test_collateral_for_debt_applies_bonus():
    debt = reserve(DEBT, debt=100 * E18)
    collateral = reserve(COLL, collateral=120 * E18)
    assert collateral_for_debt(debt, collateral, 50 * E18, 10500) == (52_500_000_000_000_000_000, 50 * E18)


def test_collateral_for_debt_across_decimals_and_prices():
    # USDC debt (6 decimals) at 1/2000 ETH, ETH-priced collateral
    debt = reserve(USDC, debt=2_000 * 10**6, price=E18 // 2000, decimals=6)
    collateral = reserve(COLL, collateral=10 * E18)
    amount, repaid = collateral_for_debt(debt, collateral, 1_000 * 10**6, 10500)
    assert repaid == 1_000 * 10**6
    assert amount == 525_000_000_000_000_000  # 0.525 COLL


def test_collateral_for_debt_caps_at_user_balance():
    debt = reserve(DEBT, debt=100 * E18)
    collateral = reserve(COLL, collateral=21 * E18)
    amount, repaid = collateral_for_debt(debt, collateral, 50 * E18, 10500)
    assert amount == 21 * E18
    assert repaid == 20 * E18


def test_plan_respects_close_factor():
    position = position_of(reserve(COLL, collateral=120 * E18), reserve(DEBT, debt=100 * E18))
    plan = LiquidationSizer(make_config()).plan(position)

    assert plan.debt_asset == DEBT
    assert plan.collateral_asset == COLL
    assert plan.debt_amount_to_cover == 50 * E18
    assert plan.expected_collateral_out == 52_500_000_000_000_000_000
    assert plan.debt_amount_to_cover * 10_000 <= plan.total_debt * plan.close_factor_bps


def test_plan_floors_odd_close_factor_amounts():
    position = position_of(reserve(COLL, collateral=120 * E18), reserve(DEBT, debt=101), health_factor=WAD - 1)
    plan = LiquidationSizer(make_config()).plan(position)
    # 101 * 50% = 50.5 -> 50, never 51
    assert plan.debt_amount_to_cover == 50


def test_healthy_position_gets_no_plan():
    position = position_of(reserve(COLL, collateral=130 * E18), reserve(DEBT, debt=100 * E18))
    assert position.health_factor > WAD
    assert LiquidationSizer(make_config()).plan(position) is None


def test_no_bonus_collateral_gets_no_plan():
    position = position_of(
        reserve(COLL, collateral=120 * E18, bonus=10000),
        reserve(DEBT, debt=100 * E18),
    )
    assert position.is_liquidatable
    assert LiquidationSizer(make_config()).plan(position) is None


def test_largest_debt_by_value_not_raw_amount():
    position = position_of(
        reserve(COLL, collateral=500 * E18),
        # 1000 HUB outnumbers 100 DEBT but is worth a tenth of it
        reserve(HUB, debt=1_000 * E18, price=E18 // 100),
        reserve(DEBT, debt=100 * E18),
        health_factor=WAD - 1,
    )
    assert LiquidationSizer(make_config()).select_debt(position).asset == DEBT


def test_inactive_reserves_are_never_picked():
    position = position_of(
        reserve(COLL, collateral=500 * E18, active=False),
        reserve(HUB, collateral=100 * E18),
        reserve(DEBT, debt=200 * E18, active=False),
        reserve(USDC, debt=50 * 10**6, decimals=6, price=E18),
        health_factor=WAD - 1,
    )
    sizer = LiquidationSizer(make_config())
    assert sizer.select_debt(position).asset == USDC
    assert sizer.select_collateral(position).asset == HUB


def test_only_inactive_debt_gets_no_plan():
    position = position_of(
        reserve(COLL, collateral=120 * E18),
        reserve(DEBT, debt=100 * E18, active=False),
    )
    assert position.is_liquidatable
    assert LiquidationSizer(make_config()).plan(position) is None


def test_debt_ties_break_on_lowest_address():
    position = position_of(
        reserve(COLL, collateral=500 * E18),
        reserve(HUB, debt=100 * E18),
        reserve(DEBT, debt=100 * E18),
        health_factor=WAD - 1,
    )
    assert LiquidationSizer(make_config()).select_debt(position).asset == DEBT


def test_collateral_maximises_bonus_times_value():
    position = position_of(
        reserve(COLL, collateral=100 * E18, bonus=10500),
        reserve(HUB, collateral=90 * E18, bonus=11000),
        reserve(DEBT, debt=150 * E18),
    )
    # 100 * 1.05 beats 90 * 1.10
    assert LiquidationSizer(make_config()).select_collateral(position).asset == COLL

    position = position_of(
        reserve(COLL, collateral=100 * E18, bonus=10500),
        reserve(HUB, collateral=100 * E18, bonus=11000),
        reserve(DEBT, debt=150 * E18),
    )
    assert LiquidationSizer(make_config()).select_collateral(position).asset == HUB


def test_collateral_ties_break_on_lowest_address():
    position = position_of(
        reserve(HUB, collateral=100 * E18),
        reserve(COLL, collateral=100 * E18),
        reserve(DEBT, debt=170 * E18),
    )
    assert LiquidationSizer(make_config()).select_collateral(position).asset == COLL


def test_plan_rejects_cover_above_close_factor():
    with pytest.raises(ValidationError):
        LiquidationPlan(
            user=BORROWER,
            debt_asset=DEBT,
            debt_amount_to_cover=51,
            total_debt=100,
            collateral_asset=COLL,
            expected_collateral_out=53,
            liquidation_bonus=10500,
            close_factor_bps=5000,
        )


def test_plan_survives_the_params_blob():
    position = position_of(reserve(COLL, collateral=120 * E18), reserve(DEBT, debt=100 * E18))
    plan = LiquidationSizer(make_config()).plan(position)
    assert LiquidationPlan.decode(plan.encode()) == plan
