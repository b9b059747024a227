"""
Concentrated-liquidity math unit tests

Tests tick/price conversion, liquidity amounts and the single-range swap step.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from lp_manager.protocols.simulated import math as clmath


class TestTickMath:
    """Tests for tick <-> sqrt price conversion"""

    def test_tick_zero_is_q96(self):
        assert clmath.get_sqrt_ratio_at_tick(0) == clmath.Q96

    def test_monotonic(self):
        assert clmath.get_sqrt_ratio_at_tick(-1) < clmath.get_sqrt_ratio_at_tick(0) < clmath.get_sqrt_ratio_at_tick(1)

    @pytest.mark.parametrize("tick", [-887272, -60000, -601, -1, 0, 1, 599, 60000, 887271])
    def test_round_trip(self, tick):
        assert clmath.get_tick_at_sqrt_ratio(clmath.get_sqrt_ratio_at_tick(tick)) == tick

    def test_between_ticks_floors(self):
        midway = (clmath.get_sqrt_ratio_at_tick(10) + clmath.get_sqrt_ratio_at_tick(11)) // 2
        assert clmath.get_tick_at_sqrt_ratio(midway) == 10

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            clmath.get_sqrt_ratio_at_tick(clmath.MAX_TICK + 1)
        with pytest.raises(ValueError):
            clmath.get_tick_at_sqrt_ratio(0)


class TestLiquidityAmounts:
    """Tests for amounts <-> liquidity"""

    def setup_method(self):
        self.price = clmath.get_sqrt_ratio_at_tick(0)
        self.lower = clmath.get_sqrt_ratio_at_tick(-600)
        self.upper = clmath.get_sqrt_ratio_at_tick(600)

    def test_in_range_uses_both_tokens(self):
        liquidity = clmath.get_liquidity_for_amounts(self.price, self.lower, self.upper, 100_000, 100_000)
        amount0, amount1 = clmath.amounts_for_liquidity(self.price, self.lower, self.upper, liquidity, True)
        assert liquidity > 0
        assert 0 < amount0 <= 100_000
        assert 0 < amount1 <= 100_000
        # The binding side is consumed almost entirely
        assert max(amount0, amount1) >= 100_000 - 1

    def test_below_range_is_token0_only(self):
        below = clmath.get_sqrt_ratio_at_tick(-1200)
        liquidity = clmath.get_liquidity_for_amounts(below, self.lower, self.upper, 100_000, 100_000)
        amount0, amount1 = clmath.amounts_for_liquidity(below, self.lower, self.upper, liquidity, True)
        assert amount1 == 0
        assert 0 < amount0 <= 100_000

    def test_above_range_is_token1_only(self):
        above = clmath.get_sqrt_ratio_at_tick(1200)
        liquidity = clmath.get_liquidity_for_amounts(above, self.lower, self.upper, 100_000, 100_000)
        amount0, amount1 = clmath.amounts_for_liquidity(above, self.lower, self.upper, liquidity, True)
        assert amount0 == 0
        assert 0 < amount1 <= 100_000

    def test_rounding_direction(self):
        up = clmath.amounts_for_liquidity(self.price, self.lower, self.upper, 3_333_333, True)
        down = clmath.amounts_for_liquidity(self.price, self.lower, self.upper, 3_333_333, False)
        assert up[0] >= down[0]
        assert up[1] >= down[1]
        assert up[0] - down[0] <= 1
        assert up[1] - down[1] <= 1

    def test_mul_div(self):
        assert clmath.mul_div(7, 3, 2) == 10
        assert clmath.mul_div_rounding_up(7, 3, 2) == 11
        assert clmath.mul_div_rounding_up(6, 2, 3) == 4
        with pytest.raises(ZeroDivisionError):
            clmath.mul_div(1, 1, 0)


class TestSwapStep:
    """Tests for swap_exact_in"""

    def test_zero_for_one_lowers_price(self):
        price = clmath.Q96
        out, new_price, fee = clmath.swap_exact_in(price, 10**18, 10**6, 3000, True)
        assert new_price < price
        assert fee == 3000
        assert 0 < out < 10**6

    def test_one_for_zero_raises_price(self):
        price = clmath.Q96
        out, new_price, fee = clmath.swap_exact_in(price, 10**18, 10**6, 2500, False)
        assert new_price > price
        assert fee == 2500
        assert 0 < out < 10**6

    def test_no_liquidity(self):
        with pytest.raises(ValueError):
            clmath.swap_exact_in(clmath.Q96, 0, 100, 3000, True)
