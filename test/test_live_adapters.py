# /test/test_live_adapters.py
# - The web3 adapters against in-process fakes of the deployed contracts.
# - No node required: every contract call is answered by a canned response.

from types import SimpleNamespace

import pytest
from eth_abi import decode
from web3 import Web3
from web3.exceptions import ContractLogicError

from liquidator.adapters.aave import AaveV2Adapter
from liquidator.adapters.dex import UniswapV2Adapter
from liquidator.adapters.erc20 import Erc20Reader
from liquidator.adapters.flashloan import LIQUIDATION_PARAMS_TYPES, FlashloanAdapter
from liquidator.adapters.mock import MockTransactionManager, SimulatedMarket
from liquidator.core.config import MAINNET_ASSETS, EngineConfig, settings
from liquidator.core.models import LiquidationPlan, Outcome
from liquidator.engine.position_oracle import PositionOracle
from liquidator.engine.sizer import LiquidationSizer
from liquidator.engine.swap_planner import SwapPlanner

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
USER = "0x59CE4a2AC5bC3f5F225439B2993b86B42f6d3e9F"
OPERATOR = "0x00000000000000000000000000000000000000AA"
RECEIVER = "0x000000000000000000000000000000000000c0DE"
E18 = 10**18

EMPTY_RESERVE = (0, 0, 0, 0, 0, 0, 0, 0, False)


class FakeCall:
    def __init__(self, result):
        self.result = result

    def call(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeFunctions:
    def __init__(self, contract):
        self._contract = contract

    def __getattr__(self, name):
        def build(*args):
            self._contract.calls.append((name, args))
            response = self._contract.responses[name]
            return FakeCall(response(*args) if callable(response) else response)
        return build


class FakeContract:
    def __init__(self, address, responses):
        self.address = address
        self.responses = responses
        self.calls = []
        self.functions = FakeFunctions(self)


class FakeW3:
    """Answers ``w3.eth.contract(address=...)`` with canned responses per address."""

    def __init__(self, responses_by_address):
        self.contracts = {}
        self._responses = responses_by_address
        self.eth = SimpleNamespace(contract=self._contract)

    def _contract(self, address, abi):
        if address not in self.contracts:
            self.contracts[address] = FakeContract(address, self._responses.get(address, {}))
        return self.contracts[address]


def reserve_config(decimals, threshold, bonus):
    return (decimals, 7500, threshold, bonus, 1000, True, True, True, True, False)


@pytest.fixture
def aave_w3():
    """WETH-backed USDC loan: 10 WETH at 82.5% against 9000 USDC, health factor ~0.917."""
    user_reserves = {
        WETH: (10 * E18, 0, 0, 10 * E18, 0, 0, 0, 0, True),
        USDC: (0, 0, 9_000 * 10**6, 0, 9_000 * 10**6, 0, 0, 0, False),
    }
    configs = {WETH: reserve_config(18, 8250, 10500), USDC: reserve_config(6, 8500, 10500)}
    prices = {WETH: E18, USDC: E18 // 1000}
    return FakeW3({
        Web3.to_checksum_address(settings.AAVE_LENDING_POOL): {
            "getUserAccountData": (10 * E18, 9 * E18, 0, 8250, 7500, 916_666_666_666_666_667),
        },
        Web3.to_checksum_address(settings.AAVE_DATA_PROVIDER): {
            "getUserReserveData": lambda asset, user: user_reserves.get(asset, EMPTY_RESERVE),
            "getReserveConfigurationData": lambda asset: configs[asset],
        },
        Web3.to_checksum_address(settings.AAVE_PRICE_ORACLE): {
            "getAssetPrice": lambda asset: prices.get(asset, E18),
        },
    })


@pytest.fixture
def aave(aave_w3):
    return AaveV2Adapter(aave_w3, settings.AAVE_LENDING_POOL, settings.AAVE_DATA_PROVIDER, settings.AAVE_PRICE_ORACLE)


def test_account_data_is_mapped(aave):
    data = aave.get_user_account_data(USER)
    assert data.total_collateral_eth == 10 * E18
    assert data.total_debt_eth == 9 * E18
    assert data.current_liquidation_threshold == 8250
    assert data.health_factor == 916_666_666_666_666_667


def test_user_reserve_data_is_mapped(aave):
    weth = aave.get_user_reserve_data(WETH, USER)
    usdc = aave.get_user_reserve_data(USDC, USER)
    assert weth.collateral_balance == 10 * E18
    assert weth.usage_as_collateral_enabled
    assert usdc.total_debt == 9_000 * 10**6


def test_reserve_configuration_is_mapped(aave):
    config = aave.get_reserve_configuration(USDC)
    assert config.decimals == 6
    assert config.liquidation_threshold == 8500
    assert config.liquidation_bonus == 10500
    assert config.is_active
    assert not config.is_frozen


def test_addresses_are_checksummed_before_calling(aave, aave_w3):
    aave.get_asset_price(WETH.lower())
    oracle = aave_w3.contracts[Web3.to_checksum_address(settings.AAVE_PRICE_ORACLE)]
    assert oracle.calls == [("getAssetPrice", (WETH,))]


def test_transient_read_failure_is_retried(aave, aave_w3):
    oracle = aave_w3.contracts[Web3.to_checksum_address(settings.AAVE_PRICE_ORACLE)]
    replies = iter([ConnectionError("node hiccup"), 2 * E18])
    oracle.responses["getAssetPrice"] = lambda asset: next(replies)

    assert aave.get_asset_price(WETH) == 2 * E18
    assert len(oracle.calls) == 2


def test_live_position_sizes_across_decimals(aave):
    config = EngineConfig(assets=tuple(MAINNET_ASSETS))
    position = PositionOracle(aave, aave, config).read(USER)
    assert position.is_liquidatable
    assert position.health_factor == 916_666_666_666_666_667

    plan = LiquidationSizer(config).plan(position)
    assert plan.debt_asset == USDC
    assert plan.collateral_asset == WETH
    assert plan.debt_amount_to_cover == 4_500 * 10**6
    assert plan.expected_collateral_out == 4_725_000_000_000_000_000


def test_uniswap_quotes_use_checksummed_path():
    router = Web3.to_checksum_address(settings.UNISWAP_V2_ROUTER)
    w3 = FakeW3({router: {"getAmountsOut": lambda amount, path: [amount, amount * 2]}})
    dex = UniswapV2Adapter(w3, settings.UNISWAP_V2_ROUTER)

    assert dex.get_amounts_out(5, [WETH.lower(), DAI.lower()]) == [5, 10]
    assert w3.contracts[router].calls == [("getAmountsOut", (5, [WETH, DAI]))]


def test_erc20_balance():
    w3 = FakeW3({DAI: {"balanceOf": lambda holder: 42}})
    assert Erc20Reader(w3).balance_of(DAI, OPERATOR) == 42


# --- FlashloanAdapter ---


@pytest.fixture
def live_setup():
    market = SimulatedMarket.create()
    market.oracle.set_price(WETH, E18)
    market.oracle.set_price(DAI, E18)
    market.venue.set_quote([WETH, DAI], 53 * E18)
    config = EngineConfig(assets=tuple(MAINNET_ASSETS))
    planner = SwapPlanner(market.venue, market.oracle, config)

    tx_manager = MockTransactionManager(w3=Web3())
    adapter = FlashloanAdapter(tx_manager, RECEIVER, planner, market.chain)
    plan = LiquidationPlan(
        user=USER,
        debt_asset=DAI,
        debt_amount_to_cover=50 * E18,
        total_debt=100 * E18,
        collateral_asset=WETH,
        expected_collateral_out=52_500_000_000_000_000_000,
        liquidation_bonus=10500,
        close_factor_bps=5000,
    )
    return market, tx_manager, adapter, plan


def test_flashloan_submits_encoded_plan(live_setup):
    market, tx_manager, adapter, plan = live_setup
    # The receiver contract pays the operator on a successful run.
    tx_manager.on_send = lambda tx: market.chain.mint(DAI, OPERATOR, 3 * E18)

    result = adapter.request(plan, OPERATOR)

    assert result.success
    assert result.outcome == Outcome.PROFITABLE
    assert result.profit == 3 * E18
    assert result.profit_asset == DAI

    sent = tx_manager.sent_transactions[0]
    assert sent["to"].lower() == RECEIVER.lower()
    _, args = adapter.receiver_contract.decode_function_input(sent["data"])
    assert [a.lower() for a in args["assets"]] == [DAI.lower()]
    assert args["amounts"] == [50 * E18]

    collateral, debt, user, cover, path, min_out, recipient = decode(LIQUIDATION_PARAMS_TYPES, args["params"])
    assert (collateral.lower(), debt.lower(), user.lower()) == (WETH.lower(), DAI.lower(), USER.lower())
    assert cover == 50 * E18
    assert [p.lower() for p in path] == [WETH.lower(), DAI.lower()]
    assert min_out == 51_975_000_000_000_000_000
    assert recipient.lower() == OPERATOR.lower()


def test_reverted_receipt_is_an_aborted_attempt(live_setup):
    _, tx_manager, adapter, plan = live_setup
    tx_manager.receipt_status = 0

    result = adapter.request(plan, OPERATOR)

    assert not result.success
    assert result.outcome == Outcome.ABORTED
    assert result.reason == "ProtocolRevert"


def test_revert_during_estimation_sends_nothing(live_setup):
    _, tx_manager, adapter, plan = live_setup
    tx_manager.set_next_call_to_fail(ContractLogicError("execution reverted: 42"))

    result = adapter.request(plan, OPERATOR)

    assert not result.success
    assert result.outcome == Outcome.ABORTED
    assert tx_manager.sent_transactions == []


def test_no_route_is_reported_without_a_transaction(live_setup):
    market, tx_manager, adapter, plan = live_setup
    market.venue.quotes.clear()

    result = adapter.request(plan, OPERATOR)

    assert result.reason == "NoRoute"
    assert tx_manager.sent_transactions == []
