# /liquidator/adapters/dex.py
from typing import List, Sequence

from web3 import Web3

from liquidator.abis.uniswap_v2 import UNISWAP_V2_ROUTER_ABI
from liquidator.core.decorators import retriable_network_call
from liquidator.core.logger import get_logger

log = get_logger(__name__)


class UniswapV2Adapter:
    """Quote source for the swap planner. Swaps themselves happen inside the receiver contract."""

    def __init__(self, w3: Web3, router_address: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(router_address)
        self.router = w3.eth.contract(address=self.address, abi=UNISWAP_V2_ROUTER_ABI)

    @retriable_network_call
    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]:
        try:
            return self.router.functions.getAmountsOut(
                amount_in, [Web3.to_checksum_address(p) for p in path]
            ).call()
        except Exception as e:
            log.error("DEX_QUOTE_FAILED", path=list(path), error=str(e))
            raise
