# /liquidator/core/config.py
import sys
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AssetConfig(BaseModel):
    """A reserve the engine is allowed to reason about."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    address: str
    decimals: int = Field(ge=0, le=36)


# Aave V2 mainnet reserves the original deployment liquidated against.
MAINNET_ASSETS: List[AssetConfig] = [
    AssetConfig(symbol="WETH", address="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", decimals=18),
    AssetConfig(symbol="WBTC", address="0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", decimals=8),
    AssetConfig(symbol="USDT", address="0xdAC17F958D2ee523a2206206994597C13D831ec7", decimals=6),
    AssetConfig(symbol="USDC", address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", decimals=6),
    AssetConfig(symbol="DAI", address="0x6B175474E89094C44Da98b954EedeAC495271d0F", decimals=18),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Core Executor
    EXECUTOR_PRIVATE_KEY: SecretStr | None = None

    # RPC endpoints, tried in order
    ETH_RPC_URL_1: SecretStr | None = None
    ETH_RPC_URL_2: SecretStr | None = None
    ETH_RPC_URL_3: SecretStr | None = None
    chain_id: int = 1

    # Protocol addresses (Aave V2 / Uniswap V2 mainnet)
    AAVE_LENDING_POOL: str = "0x7d2768dE32b0b80b7a3454c06BdAc94A69DDc7A9"
    AAVE_DATA_PROVIDER: str = "0x057835Ad21a177dbdd3090bB1CAE03EaCF78Fc6d"
    AAVE_PRICE_ORACLE: str = "0xA50ba011c48153De246E5192C8f9258A2ba79Ca9"
    UNISWAP_V2_ROUTER: str = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"
    LIQUIDATION_RECEIVER_ADDRESS: str | None = None

    # Engine parameters
    SUPPORTED_ASSETS: List[AssetConfig] = Field(default_factory=lambda: list(MAINNET_ASSETS))
    HUB_ASSETS: List[str] = ["0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"]
    CLOSE_FACTOR_BPS: int = 5000
    FLASHLOAN_PREMIUM_BPS: int = 9
    MAX_PRICE_IMPACT_BPS: int = 100
    MIN_PROFIT_WEI: int = 0
    TARGET_USERS: List[str] = []
    EXECUTE_LIVE: bool = False

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    LOG_SIGNING_KEY: SecretStr | None = None
    SENTRY_DSN: str | None = None
    SESSION_DIR: str = "/tmp/liquidator_session"

    @property
    def rpc_urls(self) -> List[str]:
        urls = [self.ETH_RPC_URL_1, self.ETH_RPC_URL_2, self.ETH_RPC_URL_3]
        return [u.get_secret_value() for u in urls if u]


class EngineConfig(BaseModel):
    """
    Explicit configuration handed to every engine component.

    Nothing in the engine reads global settings directly, so tests can build
    a config for synthetic positions without touching the environment.
    """
    model_config = ConfigDict(frozen=True)

    assets: Tuple[AssetConfig, ...]
    close_factor_bps: int = 5000
    flashloan_premium_bps: int = 9
    max_price_impact_bps: int = 100
    min_profit: int = 0
    hub_assets: Tuple[str, ...] = ()

    @field_validator("close_factor_bps")
    @classmethod
    def _close_factor_in_range(cls, v: int) -> int:
        if not 0 < v <= 10_000:
            raise ValueError("close_factor_bps must be in (0, 10000]")
        return v

    @field_validator("max_price_impact_bps", "flashloan_premium_bps")
    @classmethod
    def _bps_in_range(cls, v: int) -> int:
        if not 0 <= v < 10_000:
            raise ValueError("basis points must be in [0, 10000)")
        return v

    @field_validator("min_profit")
    @classmethod
    def _min_profit_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_profit cannot be negative")
        return v

    def asset(self, address: str) -> AssetConfig:
        from liquidator.core.errors import UnsupportedAsset

        wanted = address.lower()
        for asset in self.assets:
            if asset.address.lower() == wanted:
                return asset
        raise UnsupportedAsset(address)

    def is_supported(self, address: str) -> bool:
        return any(a.address.lower() == address.lower() for a in self.assets)

    @classmethod
    def from_settings(cls, s: "Settings") -> "EngineConfig":
        return cls(
            assets=tuple(s.SUPPORTED_ASSETS),
            close_factor_bps=s.CLOSE_FACTOR_BPS,
            flashloan_premium_bps=s.FLASHLOAN_PREMIUM_BPS,
            max_price_impact_bps=s.MAX_PRICE_IMPACT_BPS,
            min_profit=s.MIN_PROFIT_WEI,
            hub_assets=tuple(s.HUB_ASSETS),
        )


try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from liquidator.core.logger import get_logger, configure_logging
        configure_logging()
        log = get_logger("Liquidator.Config")
        log.critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    sys.exit(1)
