# /liquidator/adapters/erc20.py
from web3 import Web3

from liquidator.abis.erc20 import ERC20_ABI
from liquidator.core.decorators import retriable_network_call


class Erc20Reader:
    """Token balances on a live chain."""

    def __init__(self, w3: Web3):
        self.w3 = w3

    @retriable_network_call
    def balance_of(self, asset: str, holder: str) -> int:
        token = self.w3.eth.contract(address=Web3.to_checksum_address(asset), abi=ERC20_ABI)
        return token.functions.balanceOf(Web3.to_checksum_address(holder)).call()
