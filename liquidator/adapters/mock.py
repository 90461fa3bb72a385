# /liquidator/adapters/mock.py
# - In-memory market implementing every collaborator interface the engine consumes.
# - Enables "Simulation-first" development and deterministic tests of the
#   atomic flow without a node.

import threading
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from liquidator.core.config import EngineConfig
from liquidator.core.errors import InsufficientOutputAmount, ProtocolRevert
from liquidator.core.fixed_point import WAD, percent_mul
from liquidator.core.logger import get_logger
from liquidator.core.models import (
    AccountData,
    AssetPosition,
    ReserveConfiguration,
    SwapQuote,
    UserReserveData,
)
from liquidator.core.tx import TransactionManager
from liquidator.engine.orchestrator import FlashLoanOrchestrator
from liquidator.engine.position_oracle import PositionOracle, calculate_account_totals
from liquidator.engine.profit_guard import ProfitGuard
from liquidator.engine.sizer import LiquidationSizer, collateral_for_debt
from liquidator.engine.swap_planner import SwapPlanner
from liquidator.strategies.liquidation import LiquidationStrategy

log = get_logger(__name__)


class SimulatedChain:
    """
    Token balances, allowances and contract storage with nested atomic units.

    ``atomic()`` snapshots the whole ledger and restores it if the block
    raises, like a reverting call frame. One re-entrant lock serialises
    units and guards every read, so another thread never observes a
    half-finished unit.
    """

    def __init__(self):
        self.balances: Dict[Tuple[str, str], int] = {}
        self.allowances: Dict[Tuple[str, str, str], int] = {}
        self.storage: Dict[str, Dict[str, Any]] = {}
        self.committed_units = 0
        self.reverted_units = 0
        self.lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def atomic(self):
        with self.lock:
            snapshot = deepcopy((self.balances, self.allowances, self.storage))
            self._depth += 1
            try:
                yield self
            except BaseException:
                balances, allowances, storage = snapshot
                self.balances.clear()
                self.balances.update(balances)
                self.allowances.clear()
                self.allowances.update(allowances)
                self.storage.clear()
                self.storage.update(storage)
                self.reverted_units += 1
                log.debug("ATOMIC_UNIT_REVERTED", depth=self._depth)
                raise
            else:
                if self._depth == 1:
                    self.committed_units += 1
            finally:
                self._depth -= 1

    def contract_storage(self, address: str) -> Dict[str, Any]:
        with self.lock:
            return self.storage.setdefault(address, {})

    def balance_of(self, asset: str, holder: str) -> int:
        with self.lock:
            return self.balances.get((asset, holder), 0)

    def snapshot_balances(self) -> Dict[Tuple[str, str], int]:
        with self.lock:
            return {k: v for k, v in self.balances.items() if v}

    def mint(self, asset: str, holder: str, amount: int):
        with self.lock:
            self.balances[(asset, holder)] = self.balance_of(asset, holder) + amount

    def transfer(self, asset: str, sender: str, recipient: str, amount: int):
        if amount < 0:
            raise ProtocolRevert("NEGATIVE_TRANSFER")
        with self.lock:
            available = self.balance_of(asset, sender)
            if available < amount:
                raise ProtocolRevert(f"TRANSFER_AMOUNT_EXCEEDS_BALANCE: {asset} {sender} has {available}, needs {amount}")
            self.balances[(asset, sender)] = available - amount
            self.balances[(asset, recipient)] = self.balance_of(asset, recipient) + amount

    def approve(self, asset: str, owner: str, spender: str, amount: int):
        with self.lock:
            self.allowances[(asset, owner, spender)] = amount

    def allowance(self, asset: str, owner: str, spender: str) -> int:
        with self.lock:
            return self.allowances.get((asset, owner, spender), 0)

    def transfer_from(self, asset: str, spender: str, owner: str, recipient: str, amount: int):
        with self.lock:
            allowed = self.allowance(asset, owner, spender)
            if allowed < amount:
                raise ProtocolRevert(f"TRANSFER_AMOUNT_EXCEEDS_ALLOWANCE: {asset} {owner} -> {spender}")
            self.transfer(asset, owner, recipient, amount)
            self.allowances[(asset, owner, spender)] = allowed - amount


class MockPriceOracle:
    """Asset prices in ETH wei per whole token."""

    def __init__(self, chain: SimulatedChain, address: str = "0xMockPriceOracle"):
        self.chain = chain
        self.address = address
        self.calls: List[str] = []
        self._unavailable = False

    @property
    def _prices(self) -> Dict[str, int]:
        return self.chain.contract_storage(self.address).setdefault("prices", {})

    def set_price(self, asset: str, price: int):
        self._prices[asset] = price
        log.info("MOCK_PRICE_SET", asset=asset, price=str(price))

    def set_unavailable(self, unavailable: bool = True):
        self._unavailable = unavailable

    def get_asset_price(self, asset: str) -> int:
        self.calls.append(asset)
        if self._unavailable:
            raise ProtocolRevert("PRICE_FEED_UNAVAILABLE")
        return self._prices.get(asset, 0)


class MockLendingPool:
    """
    Aave V2 style pool: account data, reserve reads and ``liquidation_call``
    with the protocol's close factor, bonus and health-factor accounting.
    """

    def __init__(
        self,
        chain: SimulatedChain,
        oracle: MockPriceOracle,
        address: str = "0xMockLendingPool",
        close_factor_bps: int = 5000,
    ):
        self.chain = chain
        self.oracle = oracle
        self.address = address
        self.close_factor_bps = close_factor_bps
        self.liquidation_calls: List[Dict[str, Any]] = []
        self._fail_next: Optional[str] = None

    @property
    def _store(self) -> Dict[str, Any]:
        store = self.chain.contract_storage(self.address)
        store.setdefault("reserves", {})
        store.setdefault("users", {})
        return store

    def list_reserve(
        self,
        asset: str,
        decimals: int,
        liquidation_threshold: int,
        liquidation_bonus: int,
        ltv: Optional[int] = None,
        is_active: bool = True,
    ):
        self._store["reserves"][asset] = ReserveConfiguration(
            decimals=decimals,
            ltv=liquidation_threshold if ltv is None else ltv,
            liquidation_threshold=liquidation_threshold,
            liquidation_bonus=liquidation_bonus,
            is_active=is_active,
        ).model_dump()

    def set_reserve_active(self, asset: str, active: bool):
        self._store["reserves"][asset]["is_active"] = active

    def _user_reserve(self, user: str, asset: str) -> Dict[str, Any]:
        users = self._store["users"].setdefault(user, {})
        return users.setdefault(asset, {"collateral": 0, "stable": 0, "variable": 0, "use_as_collateral": False})

    def deposit(self, user: str, asset: str, amount: int):
        self.chain.mint(asset, self.address, amount)
        entry = self._user_reserve(user, asset)
        entry["collateral"] += amount
        entry["use_as_collateral"] = True

    def borrow(self, user: str, asset: str, amount: int):
        entry = self._user_reserve(user, asset)
        entry["variable"] += amount
        self.chain.mint(asset, user, amount)

    def fail_next_liquidation(self, reason: str = "FORCED_FAILURE"):
        """Configure the pool to revert the next liquidation call."""
        self._fail_next = reason

    # --- PositionService ---

    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration:
        raw = self._store["reserves"].get(asset)
        if raw is None:
            raise ProtocolRevert(f"RESERVE_NOT_LISTED: {asset}")
        return ReserveConfiguration(**raw)

    def get_user_reserve_data(self, asset: str, user: str) -> UserReserveData:
        entry = self._store["users"].get(user, {}).get(asset)
        if entry is None:
            return UserReserveData()
        return UserReserveData(
            collateral_balance=entry["collateral"],
            stable_debt=entry["stable"],
            variable_debt=entry["variable"],
            usage_as_collateral_enabled=entry["use_as_collateral"],
        )

    def _asset_positions(self, user: str) -> List[AssetPosition]:
        positions = []
        for asset, entry in sorted(self._store["users"].get(user, {}).items()):
            config = self.get_reserve_configuration(asset)
            positions.append(AssetPosition(
                asset=asset,
                decimals=config.decimals,
                collateral_amount=entry["collateral"],
                debt_amount=entry["stable"] + entry["variable"],
                price=self.oracle.get_asset_price(asset),
                liquidation_threshold=config.liquidation_threshold,
                liquidation_bonus=config.liquidation_bonus,
                usage_as_collateral_enabled=entry["use_as_collateral"],
            ))
        return positions

    def get_user_account_data(self, user: str) -> AccountData:
        with self.chain.lock:
            collateral, debt, threshold, health_factor = calculate_account_totals(self._asset_positions(user))
        return AccountData(
            total_collateral_eth=collateral,
            total_debt_eth=debt,
            current_liquidation_threshold=threshold,
            health_factor=health_factor,
        )

    # --- LendingService ---

    def liquidation_call(
        self,
        collateral_asset: str,
        debt_asset: str,
        user: str,
        debt_to_cover: int,
        receive_atoken: bool,
        caller: str,
    ):
        self.liquidation_calls.append({
            "collateral_asset": collateral_asset,
            "debt_asset": debt_asset,
            "user": user,
            "debt_to_cover": debt_to_cover,
            "caller": caller,
        })
        if self._fail_next:
            reason, self._fail_next = self._fail_next, None
            log.error("MOCK_LIQUIDATION_FORCED_FAILURE", user=user, reason=reason)
            raise ProtocolRevert(reason)
        if receive_atoken:
            raise ProtocolRevert("ATOKEN_RECEIPT_NOT_SUPPORTED")

        if not (self.get_reserve_configuration(collateral_asset).is_active
                and self.get_reserve_configuration(debt_asset).is_active):
            raise ProtocolRevert("NO_ACTIVE_RESERVE")

        positions = {p.asset: p for p in self._asset_positions(user)}
        _, _, _, health_factor = calculate_account_totals(positions.values())
        if health_factor >= WAD:
            raise ProtocolRevert("HEALTH_FACTOR_NOT_BELOW_THRESHOLD")

        collateral = positions.get(collateral_asset)
        if collateral is None or collateral.collateral_amount == 0 or not collateral.usage_as_collateral_enabled:
            raise ProtocolRevert("COLLATERAL_CANNOT_BE_LIQUIDATED")
        debt = positions.get(debt_asset)
        if debt is None or debt.debt_amount == 0:
            raise ProtocolRevert("SPECIFIED_CURRENCY_NOT_BORROWED_BY_USER")

        max_liquidatable = percent_mul(debt.debt_amount, self.close_factor_bps)
        actual_debt = min(debt_to_cover, max_liquidatable)
        collateral_amount, debt_repaid = collateral_for_debt(
            debt, collateral, actual_debt, collateral.liquidation_bonus
        )

        self.chain.transfer_from(debt_asset, self.address, caller, self.address, debt_repaid)
        debt_entry = self._user_reserve(user, debt_asset)
        from_variable = min(debt_entry["variable"], debt_repaid)
        debt_entry["variable"] -= from_variable
        debt_entry["stable"] -= debt_repaid - from_variable

        collateral_entry = self._user_reserve(user, collateral_asset)
        collateral_entry["collateral"] -= collateral_amount
        if collateral_entry["collateral"] == 0:
            collateral_entry["use_as_collateral"] = False
        self.chain.transfer(collateral_asset, self.address, caller, collateral_amount)

        log.info(
            "MOCK_LIQUIDATION_EXECUTED",
            user=user,
            debt_repaid=str(debt_repaid),
            collateral_seized=str(collateral_amount),
            liquidator=caller,
        )


class MockFlashLoanPool:
    """Lends, calls the receiver back synchronously, then pulls ``amount + premium``."""

    def __init__(self, chain: SimulatedChain, address: str = "0xMockFlashLoanPool", premium_bps: int = 9):
        self.chain = chain
        self.address = address
        self.premium_bps = premium_bps
        self.calls: List[Dict[str, Any]] = []

    def fund(self, asset: str, amount: int):
        self.chain.mint(asset, self.address, amount)

    def premiums_for(self, amounts: Sequence[int]) -> List[int]:
        return [amount * self.premium_bps // 10_000 for amount in amounts]

    def flash_loan(self, receiver, assets: Sequence[str], amounts: Sequence[int], params: bytes, initiator: str):
        self.calls.append({"receiver": receiver.address, "assets": list(assets), "amounts": list(amounts)})
        if len(assets) != len(amounts):
            raise ProtocolRevert("INCONSISTENT_FLASHLOAN_PARAMS")

        premiums = self.premiums_for(amounts)
        with self.chain.atomic():
            for asset, amount in zip(assets, amounts):
                self.chain.transfer(asset, self.address, receiver.address, amount)

            if not receiver.execute(list(assets), list(amounts), premiums, initiator, params):
                raise ProtocolRevert("INVALID_FLASH_LOAN_EXECUTOR_RETURN")

            for asset, amount, premium in zip(assets, amounts, premiums):
                self.chain.transfer_from(asset, self.address, receiver.address, self.address, amount + premium)
        log.info("MOCK_FLASHLOAN_REPAID", receiver=receiver.address, premiums=[str(p) for p in premiums])


class MockSwapVenue:
    """
    Router with predictable quotes.
    Quotes are keyed by "TOKEN_IN-...-TOKEN_OUT"; either a fixed output or a
    wad-scaled rate applied to the input amount.
    """

    def __init__(self, chain: SimulatedChain, address: str = "0xMockRouter"):
        self.chain = chain
        self.address = address
        self.quotes: Dict[str, int] = {}
        self.rates: Dict[str, int] = {}
        self.execution_outputs: Dict[str, int] = {}
        self.swaps: List[Dict[str, Any]] = []
        self._fail_next: Optional[str] = None

    def fund(self, asset: str, amount: int):
        self.chain.mint(asset, self.address, amount)

    def set_quote(self, path: Sequence[str], amount_out: int):
        """Set a predictable output amount for a given trade path."""
        self.quotes["-".join(path)] = amount_out
        log.info("MOCK_DEX_QUOTE_SET", path=list(path), amount_out=str(amount_out))

    def set_rate(self, path: Sequence[str], rate_wad: int):
        """Output = amount_in * rate_wad / 1e18, in output-token units."""
        self.rates["-".join(path)] = rate_wad

    def set_execution_output(self, path: Sequence[str], amount_out: int):
        """Fill differently from the quote, as slippage between quote and execution would."""
        self.execution_outputs["-".join(path)] = amount_out

    def fail_next_swap(self, reason: str = "FORCED_FAILURE"):
        self._fail_next = reason

    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]:
        key = "-".join(path)
        if key in self.quotes:
            return [amount_in, self.quotes[key]]
        if key in self.rates:
            return [amount_in, amount_in * self.rates[key] // WAD]
        raise ValueError(f"No mock quote set for path {list(path)}")

    def swap(self, quote: SwapQuote, sender: str, recipient: str) -> int:
        key = "-".join(quote.route)
        self.swaps.append({"route": list(quote.route), "amount_in": quote.input_amount, "sender": sender})
        if self._fail_next:
            reason, self._fail_next = self._fail_next, None
            log.error("MOCK_SWAP_FORCED_FAILURE", route=list(quote.route), reason=reason)
            raise ProtocolRevert(reason)

        if key in self.execution_outputs:
            amount_out = self.execution_outputs[key]
        else:
            amount_out = self.get_amounts_out(quote.input_amount, quote.route)[-1]
        if amount_out < quote.min_output_amount:
            log.error("MOCK_SWAP_WOULD_FAIL_SLIPPAGE", route=list(quote.route), min_out=str(quote.min_output_amount))
            raise InsufficientOutputAmount(amount_out, quote.min_output_amount)

        self.chain.transfer_from(quote.input_asset, self.address, sender, self.address, quote.input_amount)
        self.chain.transfer(quote.output_asset, self.address, recipient, amount_out)
        return amount_out


@dataclass
class SimulatedMarket:
    chain: SimulatedChain
    oracle: MockPriceOracle
    lending: MockLendingPool
    flash_pool: MockFlashLoanPool
    venue: MockSwapVenue

    @classmethod
    def create(cls, close_factor_bps: int = 5000, premium_bps: int = 9) -> "SimulatedMarket":
        chain = SimulatedChain()
        oracle = MockPriceOracle(chain)
        return cls(
            chain=chain,
            oracle=oracle,
            lending=MockLendingPool(chain, oracle, close_factor_bps=close_factor_bps),
            flash_pool=MockFlashLoanPool(chain, premium_bps=premium_bps),
            venue=MockSwapVenue(chain),
        )

    def build_strategy(self, config: EngineConfig, bot_address: str, initiator: str):
        """Wire the full engine against this market. Returns (strategy, orchestrator)."""
        planner = SwapPlanner(self.venue, self.oracle, config)
        orchestrator = FlashLoanOrchestrator(
            address=bot_address,
            ledger=self.chain,
            chain=self.chain,
            lending=self.lending,
            flash_lender=self.flash_pool,
            venue=self.venue,
            planner=planner,
            guard=ProfitGuard(config.min_profit),
        )
        strategy = LiquidationStrategy(
            oracle=PositionOracle(self.lending, self.oracle, config),
            sizer=LiquidationSizer(config),
            planner=planner,
            executor=orchestrator,
            config=config,
            initiator=initiator,
        )
        return strategy, orchestrator


class MockTransactionManager(TransactionManager):
    """
    A mock implementation of TransactionManager for testing purposes.
    It does not send real transactions but simulates the process.
    """
    def __init__(self, w3=None, from_address: str = "0x000000000000000000000000000000000000bEEF"):
        self.w3 = w3
        self.address = from_address
        self.sent_transactions: List[Dict[str, Any]] = []
        self.receipt_status = 1
        self.on_send = None
        self._nonce = 0
        self._must_fail: Optional[Exception] = None
        log.info("MOCK_TRANSACTION_MANAGER_INITIALIZED", address=self.address)

    @property
    def nonce(self) -> int:
        return self._nonce

    def set_next_call_to_fail(self, error: Exception):
        """Configure the mock to raise ``error`` on the next send."""
        self._must_fail = error

    def build_and_send_transaction(self, tx_params: Dict[str, Any]) -> str:
        if self._must_fail:
            error, self._must_fail = self._must_fail, None
            log.error("MOCK_TX_FORCED_FAILURE", params=tx_params)
            raise error

        tx_hash = f"0x{self._nonce:064x}"
        full_tx = {"hash": tx_hash, **tx_params}
        log.info("MOCK_TRANSACTION_SENT", tx_hash=tx_hash, to=tx_params.get("to"))
        self.sent_transactions.append(full_tx)
        self._nonce += 1
        if self.on_send:
            self.on_send(full_tx)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout: int = 120) -> Dict[str, Any]:
        return {"transactionHash": tx_hash, "status": self.receipt_status, "blockNumber": self._nonce}
