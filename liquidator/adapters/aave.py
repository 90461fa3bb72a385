# /liquidator/adapters/aave.py
# Read-only Aave V2 adapter: account data, per-reserve balances, reserve
# configuration and oracle prices, straight from the deployed contracts.
from web3 import Web3

from liquidator.abis.aave_v2 import LENDING_POOL_ABI, PRICE_ORACLE_ABI, PROTOCOL_DATA_PROVIDER_ABI
from liquidator.core.decorators import retriable_network_call
from liquidator.core.logger import get_logger
from liquidator.core.models import AccountData, ReserveConfiguration, UserReserveData

log = get_logger(__name__)


class AaveV2Adapter:
    def __init__(self, w3: Web3, lending_pool: str, data_provider: str, price_oracle: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(lending_pool)
        self.lending_pool = w3.eth.contract(address=self.address, abi=LENDING_POOL_ABI)
        self.data_provider = w3.eth.contract(
            address=Web3.to_checksum_address(data_provider), abi=PROTOCOL_DATA_PROVIDER_ABI
        )
        self.price_oracle = w3.eth.contract(
            address=Web3.to_checksum_address(price_oracle), abi=PRICE_ORACLE_ABI
        )
        log.info("AAVE_V2_ADAPTER_INITIALIZED", lending_pool=self.address)

    @retriable_network_call
    def get_user_account_data(self, user: str) -> AccountData:
        collateral, debt, available, threshold, ltv, health_factor = (
            self.lending_pool.functions.getUserAccountData(Web3.to_checksum_address(user)).call()
        )
        return AccountData(
            total_collateral_eth=collateral,
            total_debt_eth=debt,
            available_borrows_eth=available,
            current_liquidation_threshold=threshold,
            ltv=ltv,
            health_factor=health_factor,
        )

    @retriable_network_call
    def get_user_reserve_data(self, asset: str, user: str) -> UserReserveData:
        data = self.data_provider.functions.getUserReserveData(
            Web3.to_checksum_address(asset), Web3.to_checksum_address(user)
        ).call()
        # (aToken, stableDebt, variableDebt, principalStable, scaledVariable, rate, liquidityRate, updatedAt, asCollateral)
        return UserReserveData(
            collateral_balance=data[0],
            stable_debt=data[1],
            variable_debt=data[2],
            usage_as_collateral_enabled=data[8],
        )

    @retriable_network_call
    def get_reserve_configuration(self, asset: str) -> ReserveConfiguration:
        data = self.data_provider.functions.getReserveConfigurationData(Web3.to_checksum_address(asset)).call()
        decimals, ltv, threshold, bonus, _reserve_factor, as_collateral, _borrowing, _stable, active, frozen = data
        return ReserveConfiguration(
            decimals=decimals,
            ltv=ltv,
            liquidation_threshold=threshold,
            liquidation_bonus=bonus,
            usage_as_collateral_enabled=as_collateral,
            is_active=active,
            is_frozen=frozen,
        )

    @retriable_network_call
    def get_asset_price(self, asset: str) -> int:
        return self.price_oracle.functions.getAssetPrice(Web3.to_checksum_address(asset)).call()
