# /liquidator/core/models.py
# Transaction-scoped value objects. None of them outlive a single attempt.
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from liquidator.core.fixed_point import WAD


class Phase(str, Enum):
    IDLE = "IDLE"
    REQUESTED = "REQUESTED"
    IN_CALLBACK = "IN_CALLBACK"
    REPAYING = "REPAYING"
    SETTLED = "SETTLED"


class Outcome(str, Enum):
    PROFITABLE = "PROFITABLE"
    ABORTED = "ABORTED"


class AccountData(BaseModel):
    """Aggregates as reported by the lending pool's ``getUserAccountData``."""
    model_config = ConfigDict(frozen=True)

    total_collateral_eth: int
    total_debt_eth: int
    available_borrows_eth: int = 0
    current_liquidation_threshold: int = 0
    ltv: int = 0
    health_factor: int


class UserReserveData(BaseModel):
    model_config = ConfigDict(frozen=True)

    collateral_balance: int = 0
    stable_debt: int = 0
    variable_debt: int = 0
    usage_as_collateral_enabled: bool = False

    @property
    def total_debt(self) -> int:
        return self.stable_debt + self.variable_debt


class ReserveConfiguration(BaseModel):
    model_config = ConfigDict(frozen=True)

    decimals: int
    ltv: int = 0
    liquidation_threshold: int
    liquidation_bonus: int
    usage_as_collateral_enabled: bool = True
    is_active: bool = True
    # Frozen reserves block new deposits and borrows, not liquidations.
    is_frozen: bool = False


class AssetPosition(BaseModel):
    """One reserve of a borrower, priced in ETH wei per whole token."""
    model_config = ConfigDict(frozen=True)

    asset: str
    symbol: str = ""
    decimals: int
    collateral_amount: int = 0
    debt_amount: int = 0
    price: int
    liquidation_threshold: int
    # Aave percentage form: 10500 means the liquidator receives 105%.
    liquidation_bonus: int
    usage_as_collateral_enabled: bool = False
    is_active: bool = True

    @property
    def unit(self) -> int:
        return 10**self.decimals

    @property
    def collateral_value(self) -> int:
        if not self.usage_as_collateral_enabled:
            return 0
        return self.price * self.collateral_amount // self.unit

    @property
    def debt_value(self) -> int:
        return self.price * self.debt_amount // self.unit


class Position(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str
    reserves: Tuple[AssetPosition, ...] = ()
    total_collateral_eth: int
    total_debt_eth: int
    current_liquidation_threshold: int
    health_factor: int

    @property
    def is_liquidatable(self) -> bool:
        return self.health_factor < WAD

    @property
    def debts(self) -> Tuple[AssetPosition, ...]:
        return tuple(r for r in self.reserves if r.debt_amount > 0)

    @property
    def collaterals(self) -> Tuple[AssetPosition, ...]:
        return tuple(r for r in self.reserves if r.collateral_amount > 0 and r.usage_as_collateral_enabled)

    def reserve(self, asset: str) -> Optional[AssetPosition]:
        for r in self.reserves:
            if r.asset.lower() == asset.lower():
                return r
        return None


class LiquidationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str
    debt_asset: str
    debt_amount_to_cover: int = Field(gt=0)
    total_debt: int
    collateral_asset: str
    expected_collateral_out: int = Field(ge=0)
    liquidation_bonus: int
    close_factor_bps: int

    @model_validator(mode="after")
    def _within_close_factor(self) -> "LiquidationPlan":
        if self.debt_amount_to_cover > self.total_debt:
            raise ValueError("debt_amount_to_cover exceeds total debt")
        if self.debt_amount_to_cover * 10_000 > self.total_debt * self.close_factor_bps:
            raise ValueError("debt_amount_to_cover exceeds the close factor")
        return self

    def encode(self) -> bytes:
        """Opaque params blob carried through the flash-loan callback."""
        return self.model_dump_json().encode()

    @classmethod
    def decode(cls, params: bytes) -> "LiquidationPlan":
        return cls.model_validate_json(params)


class FlashLoanRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    assets: Tuple[str, ...]
    amounts: Tuple[int, ...]
    premiums: Tuple[int, ...]
    initiator: str
    params: bytes = b""

    @model_validator(mode="after")
    def _aligned(self) -> "FlashLoanRequest":
        if not self.assets:
            raise ValueError("flash loan needs at least one asset")
        if not len(self.assets) == len(self.amounts) == len(self.premiums):
            raise ValueError(
                f"assets/amounts/premiums are not index-aligned "
                f"({len(self.assets)}/{len(self.amounts)}/{len(self.premiums)})"
            )
        return self

    def owed(self, index: int) -> int:
        return self.amounts[index] + self.premiums[index]


class SwapQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    input_asset: str
    input_amount: int
    output_asset: str
    expected_output_amount: int
    min_output_amount: int
    route: Tuple[str, ...]
    price_impact_bps: int = 0

    @model_validator(mode="after")
    def _conservative(self) -> "SwapQuote":
        if self.min_output_amount > self.expected_output_amount:
            raise ValueError("min_output_amount cannot exceed the quoted output")
        return self

    @property
    def is_identity(self) -> bool:
        return len(self.route) == 1


class ExecutionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: str
    success: bool
    profit: int = 0
    profit_asset: Optional[str] = None
    reason: Optional[str] = None
    outcome: Optional[Outcome] = None
    detail: Optional[str] = None

    @classmethod
    def failed(cls, user: str, error: Exception, outcome: Optional[Outcome] = None) -> "ExecutionResult":
        code = getattr(error, "code", type(error).__name__)
        return cls(user=user, success=False, reason=code, outcome=outcome, detail=str(error))
