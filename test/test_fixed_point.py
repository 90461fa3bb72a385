# /test/test_fixed_point.py
# Rounding and overflow behaviour must match Aave V2 WadRayMath / PercentageMath.

import pytest

from liquidator.core.errors import FixedPointOverflow
from liquidator.core.fixed_point import (
    RAY,
    UINT256_MAX,
    WAD,
    percent_div,
    percent_mul,
    ray_div,
    ray_mul,
    ray_to_wad,
    to_decimal,
    wad_div,
    wad_mul,
    wad_to_ray,
)


def test_wad_mul_rounds_half_up():
    assert wad_mul(WAD, WAD) == WAD
    # 1.5 wei * 1 -> 2 wei (exactly half rounds up)
    assert wad_mul(3, WAD // 2) == 2
    # 1.4 wei -> 1 wei
    assert wad_mul(7, WAD // 5) == 1
    assert wad_mul(0, UINT256_MAX) == 0


def test_wad_div_rounds_half_up():
    assert wad_div(WAD, 2 * WAD) == WAD // 2
    assert wad_div(2, 3 * WAD) == 1  # 0.666 wei
    assert wad_div(1, 3 * WAD) == 0  # 0.333 wei


def test_ray_helpers():
    assert ray_mul(RAY, 5 * RAY) == 5 * RAY
    assert ray_div(RAY, 4 * RAY) == RAY // 4
    assert wad_to_ray(WAD) == RAY
    assert ray_to_wad(RAY) == WAD
    # 0.5e9 ray-wei rounds up to one wad-wei
    assert ray_to_wad(5 * 10**8) == 1
    assert ray_to_wad(5 * 10**8 - 1) == 0


def test_percent_mul_matches_percentage_math():
    assert percent_mul(100 * WAD, 5000) == 50 * WAD
    assert percent_mul(1, 5000) == 1  # 0.5 rounds up
    assert percent_mul(1, 4999) == 0
    assert percent_mul(0, 10500) == 0
    assert percent_mul(50 * WAD, 10500) == 52_500_000_000_000_000_000


def test_percent_div_inverts_bonus():
    assert percent_div(52_500_000_000_000_000_000, 10500) == 50 * WAD
    assert percent_div(3, 2) == 15_000


@pytest.mark.parametrize("fn", [wad_div, ray_div, percent_div])
def test_division_by_zero_raises(fn):
    with pytest.raises(ZeroDivisionError):
        fn(1, 0)


@pytest.mark.parametrize("fn,a,b", [
    (wad_mul, UINT256_MAX, 2),
    (wad_div, UINT256_MAX, 1),
    (ray_mul, UINT256_MAX, RAY),
    (percent_mul, UINT256_MAX, 2),
    (percent_div, UINT256_MAX, 10_000),
])
def test_overflow_is_rejected_like_the_contracts(fn, a, b):
    with pytest.raises(FixedPointOverflow):
        fn(a, b)


def test_wad_to_ray_overflow():
    with pytest.raises(FixedPointOverflow):
        wad_to_ray(UINT256_MAX)


def test_to_decimal_is_display_only():
    assert str(to_decimal(1_500_000, 6)) == "1.500000"
    assert to_decimal(WAD) == 1
