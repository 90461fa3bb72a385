# /liquidator/core/errors.py
"""Failure taxonomy of a liquidation attempt.

``LiquidationError`` subclasses are *expected* outcomes: the entry point turns
them into an unsuccessful ``ExecutionResult``. Everything else here signals a
programming or configuration error and is allowed to propagate.
"""


class LiquidationError(Exception):
    """Base for expected, reportable failures of an attempt."""

    @property
    def code(self) -> str:
        return type(self).__name__


class OracleUnavailable(LiquidationError):
    def __init__(self, user: str, detail: str):
        super().__init__(f"Position read failed for {user}: {detail}")
        self.user = user
        self.detail = detail


class NotLiquidatable(LiquidationError):
    def __init__(self, user: str, health_factor: int):
        super().__init__(f"{user} is healthy (health factor {health_factor})")
        self.user = user
        self.health_factor = health_factor


class NoRoute(LiquidationError):
    def __init__(self, input_asset: str, output_asset: str, detail: str = ""):
        super().__init__(f"No acceptable route {input_asset} -> {output_asset}. {detail}".strip())
        self.input_asset = input_asset
        self.output_asset = output_asset


class Unprofitable(LiquidationError):
    def __init__(self, available: int, owed: int, detail: str = ""):
        super().__init__(f"Available {available} does not cover {owed}. {detail}".strip())
        self.available = available
        self.owed = owed


class RaceLost(LiquidationError):
    def __init__(self, user: str, detail: str = ""):
        super().__init__(f"Liquidation of {user} rejected by the protocol. {detail}".strip())
        self.user = user


class SwapReverted(LiquidationError):
    def __init__(self, route, detail: str = ""):
        super().__init__(f"Swap along {list(route)} reverted. {detail}".strip())
        self.route = tuple(route)


# --- Collaborator-side failures ---

class ProtocolRevert(Exception):
    """An external contract refused the call; the enclosing unit must unwind."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class InsufficientOutputAmount(ProtocolRevert):
    def __init__(self, amount_out: int, min_amount_out: int):
        super().__init__(f"INSUFFICIENT_OUTPUT_AMOUNT: {amount_out} < {min_amount_out}")
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out


# --- Programming / configuration errors ---

class IllegalPhaseTransition(RuntimeError):
    pass


class MalformedFlashLoan(ValueError):
    pass


class UnsupportedAsset(KeyError):
    pass


class FixedPointOverflow(ArithmeticError):
    pass
