# /liquidator/core/fixed_point.py
"""
Protocol-compatible fixed-point arithmetic.

Mirrors Aave V2 ``WadRayMath`` and ``PercentageMath`` bit for bit: half-up
rounding, and the same uint256 overflow guards the contracts enforce. Every
amount that crosses the protocol boundary goes through these helpers so the
engine never disagrees with the pool about eligibility or seizure sizes.
"""
from decimal import Decimal

from liquidator.core.errors import FixedPointOverflow

UINT256_MAX = 2**256 - 1

WAD = 10**18
HALF_WAD = WAD // 2
RAY = 10**27
HALF_RAY = RAY // 2
WAD_RAY_RATIO = 10**9

PERCENTAGE_FACTOR = 10**4
HALF_PERCENT = PERCENTAGE_FACTOR // 2


def _require(condition: bool, what: str):
    if not condition:
        raise FixedPointOverflow(what)


def wad_mul(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    _require(a <= (UINT256_MAX - HALF_WAD) // b, "wad_mul overflow")
    return (a * b + HALF_WAD) // WAD


def wad_div(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("wad_div by zero")
    half_b = b // 2
    _require(a <= (UINT256_MAX - half_b) // WAD, "wad_div overflow")
    return (a * WAD + half_b) // b


def ray_mul(a: int, b: int) -> int:
    if a == 0 or b == 0:
        return 0
    _require(a <= (UINT256_MAX - HALF_RAY) // b, "ray_mul overflow")
    return (a * b + HALF_RAY) // RAY


def ray_div(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("ray_div by zero")
    half_b = b // 2
    _require(a <= (UINT256_MAX - half_b) // RAY, "ray_div overflow")
    return (a * RAY + half_b) // b


def ray_to_wad(a: int) -> int:
    half_ratio = WAD_RAY_RATIO // 2
    result = half_ratio + a
    _require(result <= UINT256_MAX, "ray_to_wad overflow")
    return result // WAD_RAY_RATIO


def wad_to_ray(a: int) -> int:
    result = a * WAD_RAY_RATIO
    _require(result <= UINT256_MAX, "wad_to_ray overflow")
    return result


def percent_mul(value: int, percentage: int) -> int:
    """``value * percentage / 1e4`` rounded half up; 5000 is 50%."""
    if value == 0 or percentage == 0:
        return 0
    _require(value <= (UINT256_MAX - HALF_PERCENT) // percentage, "percent_mul overflow")
    return (value * percentage + HALF_PERCENT) // PERCENTAGE_FACTOR


def percent_div(value: int, percentage: int) -> int:
    if percentage == 0:
        raise ZeroDivisionError("percent_div by zero")
    half_percentage = percentage // 2
    _require(value <= (UINT256_MAX - half_percentage) // PERCENTAGE_FACTOR, "percent_div overflow")
    return (value * PERCENTAGE_FACTOR + half_percentage) // percentage


def to_decimal(amount: int, decimals: int = 18) -> Decimal:
    """Human-readable view of a fixed-point amount. For logs, never for math."""
    return Decimal(amount).scaleb(-decimals)
