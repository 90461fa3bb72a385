# /liquidator/engine/interfaces.py
# The only surface the engine sees of the outside world. The simulated market in
# adapters/mock.py and the web3 adapters both satisfy these.
from contextlib import AbstractContextManager
from typing import List, Protocol, Sequence

from liquidator.core.models import (
    AccountData,
    ExecutionResult,
    LiquidationPlan,
    ReserveConfiguration,
    SwapQuote,
    UserReserveData,
)


class PositionService(Protocol):
    def get_user_account_data(self, user: str) -> AccountData: ...

    def get_user_reserve_data(self, asset: str, user: str) -> UserReserveData: ...

    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration: ...


class PriceService(Protocol):
    def get_asset_price(self, asset: str) -> int:
        """Price of one whole token in ETH wei."""
        ...


class LendingService(Protocol):
    address: str

    def liquidation_call(
        self,
        collateral_asset: str,
        debt_asset: str,
        user: str,
        debt_to_cover: int,
        receive_atoken: bool,
        caller: str,
    ) -> None: ...


class QuoteService(Protocol):
    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]: ...


class SwapService(QuoteService, Protocol):
    address: str

    def swap(self, quote: SwapQuote, sender: str, recipient: str) -> int: ...


class TokenLedger(Protocol):
    def balance_of(self, asset: str, holder: str) -> int: ...

    def transfer(self, asset: str, sender: str, recipient: str, amount: int) -> None: ...

    def approve(self, asset: str, owner: str, spender: str, amount: int) -> None: ...


class AtomicBoundary(Protocol):
    def atomic(self) -> AbstractContextManager: ...


class FlashLoanReceiver(Protocol):
    address: str

    def execute(
        self,
        assets: Sequence[str],
        amounts: Sequence[int],
        premiums: Sequence[int],
        initiator: str,
        params: bytes,
    ) -> bool: ...


class FlashLoanService(Protocol):
    address: str

    def flash_loan(
        self,
        receiver: FlashLoanReceiver,
        assets: Sequence[str],
        amounts: Sequence[int],
        params: bytes,
        initiator: str,
    ) -> None: ...


class Executor(Protocol):
    def request(self, plan: LiquidationPlan, initiator: str) -> ExecutionResult: ...
