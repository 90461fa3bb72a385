# /liquidator/engine/profit_guard.py
from liquidator.core.errors import Unprofitable
from liquidator.core.logger import get_logger

log = get_logger(__name__)


class ProfitGuard:
    """Last check before repayment. A negative settlement never finalizes."""

    def __init__(self, min_profit: int = 0):
        if min_profit < 0:
            raise ValueError("min_profit cannot be negative")
        self.min_profit = min_profit

    def check(self, balance_after_swap: int, owed: int) -> int:
        if balance_after_swap < owed:
            log.warning("PROFIT_GUARD_REJECTED", balance=str(balance_after_swap), owed=str(owed))
            raise Unprofitable(balance_after_swap, owed)
        profit = balance_after_swap - owed
        if profit < self.min_profit:
            log.warning("PROFIT_BELOW_MINIMUM", profit=str(profit), min_profit=str(self.min_profit))
            raise Unprofitable(balance_after_swap, owed + self.min_profit, "below configured minimum profit")
        return profit
