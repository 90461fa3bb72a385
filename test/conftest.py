# /test/conftest.py
# Shared simulated-market fixtures. Every engine test runs against the
# in-memory chain from liquidator.adapters.mock; nothing here touches a network.

import pytest

from liquidator.adapters.mock import SimulatedMarket
from liquidator.core.config import AssetConfig, EngineConfig

COLL = "0x1000000000000000000000000000000000000001"
DEBT = "0x2000000000000000000000000000000000000002"
HUB = "0x3000000000000000000000000000000000000003"
USDC = "0x4000000000000000000000000000000000000004"

BORROWER = "0x00000000000000000000000000000000000000B0"
BOT = "0x0000000000000000000000000000000000000B07"
RIVAL_BOT = "0x0000000000000000000000000000000000000B08"
OPERATOR = "0x00000000000000000000000000000000000000AA"

E18 = 10**18

ASSETS = (
    AssetConfig(symbol="COLL", address=COLL, decimals=18),
    AssetConfig(symbol="DEBT", address=DEBT, decimals=18),
    AssetConfig(symbol="HUB", address=HUB, decimals=18),
    AssetConfig(symbol="USDC", address=USDC, decimals=6),
)


def make_config(**overrides) -> EngineConfig:
    params = dict(assets=ASSETS, close_factor_bps=5000, flashloan_premium_bps=9, max_price_impact_bps=100)
    params.update(overrides)
    return EngineConfig(**params)


def open_position(market: SimulatedMarket, collateral: int, debt: int, user: str = BORROWER):
    """COLL-backed DEBT loan; health factor = collateral * 0.8 / debt at 1:1 prices."""
    market.lending.deposit(user, COLL, collateral)
    market.lending.borrow(user, DEBT, debt)


@pytest.fixture
def config() -> EngineConfig:
    return make_config()


@pytest.fixture
def market() -> SimulatedMarket:
    """
    Two 18-decimal reserves at 1:1 ETH prices. COLL carries an 80% liquidation
    threshold and a 5% bonus. The flash pool and the venue hold enough DEBT
    liquidity for any test position.
    """
    m = SimulatedMarket.create()
    m.oracle.set_price(COLL, E18)
    m.oracle.set_price(DEBT, E18)
    m.oracle.set_price(HUB, E18)
    m.lending.list_reserve(COLL, decimals=18, liquidation_threshold=8000, liquidation_bonus=10500)
    m.lending.list_reserve(DEBT, decimals=18, liquidation_threshold=8000, liquidation_bonus=10500)
    m.flash_pool.fund(DEBT, 1_000 * E18)
    m.venue.fund(DEBT, 1_000 * E18)
    return m


@pytest.fixture
def underwater(market):
    """Scenario A position: 120 COLL against 100 DEBT, health factor 0.96."""
    open_position(market, 120 * E18, 100 * E18)
    market.venue.set_quote([COLL, DEBT], 53 * E18)
    return market


@pytest.fixture
def bot(market, config):
    strategy, orchestrator = market.build_strategy(config, BOT, OPERATOR)
    return strategy, orchestrator
