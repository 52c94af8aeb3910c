"""
Tests for the fair-value model and its sizing helpers.
"""

import math

import pytest

from polymarket_vulture.engine.fair_value import (
    entry_target,
    fair_value,
    position_size,
    realized_pnl,
    select_direction,
    should_reprice,
    spread_acceptable,
    stop_loss_target,
    take_profit_target,
)
from polymarket_vulture.models import TradeSide


class TestFairValue:
    """Probability that spot settles above strike."""

    @pytest.mark.parametrize("minutes", [0.5, 1, 5, 14.9])
    def test_at_the_money_is_half(self, minutes):
        assert abs(fair_value(98500, 98500, minutes) - 0.50) <= 0.01

    def test_monotone_in_distance(self):
        values = [fair_value(98500 + d, 98500, 7.5) for d in range(-400, 401, 10)]
        assert all(b >= a for a, b in zip(values, values[1:]))

    @pytest.mark.parametrize("distance", [-1e9, -5000, 5000, 1e9])
    @pytest.mark.parametrize("minutes", [-10, 0, 0.01, 15, 1e6])
    def test_clamped_for_extremes(self, distance, minutes):
        v = fair_value(98500 + distance, 98500, minutes)
        assert 0.01 <= v <= 0.99

    def test_known_value(self):
        # 10 minutes -> sensitivity 200, distance 50 -> 0.75
        assert fair_value(98550, 98500, 10) == pytest.approx(0.75)

    def test_sensitivity_floor_near_expiry(self):
        # under one minute the divisor stays at 20
        assert fair_value(98505, 98500, 0.2) == pytest.approx(0.75)

    @pytest.mark.parametrize("minutes", [math.nan, math.inf, -math.inf])
    def test_non_finite_minutes_use_floor(self, minutes):
        assert fair_value(98505, 98500, minutes) == pytest.approx(0.75)


class TestSelectDirection:
    def test_above_strike_is_up(self):
        side, fair = select_direction(99000, 98500, 10)
        assert side == TradeSide.UP
        assert fair > 0.50

    def test_below_strike_is_down_with_complement(self):
        side, fair = select_direction(98450, 98500, 10)
        assert side == TradeSide.DOWN
        assert fair == pytest.approx(1 - fair_value(98450, 98500, 10))
        assert fair > 0.50

    def test_at_strike_is_up(self):
        side, fair = select_direction(98500, 98500, 10)
        assert side == TradeSide.UP
        assert fair == pytest.approx(0.50)


class TestTargets:
    def test_entry_target_discounted(self):
        assert entry_target(0.75, 0.08) == pytest.approx(0.67)

    def test_entry_target_clamped(self):
        assert entry_target(0.05, 0.08) == 0.01

    def test_take_profit_exact(self):
        assert take_profit_target(0.40, 0.01) == 0.41

    def test_take_profit_clamped(self):
        assert take_profit_target(0.995, 0.01) == 0.99

    def test_stop_loss(self):
        assert stop_loss_target(0.40, 0.10) == pytest.approx(0.30)
        assert stop_loss_target(0.05, 0.10) == 0.01


class TestSizing:
    def test_position_size_floors(self):
        assert position_size(100, 0.45) == 222

    def test_position_size_exact_division(self):
        assert position_size(20, 0.05) == 400

    @pytest.mark.parametrize("price", [0, -0.1])
    def test_position_size_zero_price(self, price):
        assert position_size(50, price) == 0

    def test_realized_pnl(self):
        assert realized_pnl(0.40, 0.45, 10) == pytest.approx(0.5)


class TestReprice:
    def test_small_move_no_reprice(self):
        assert should_reprice(0.45, 0.46) is False

    def test_threshold_is_exclusive(self):
        assert should_reprice(0.45, 0.47) is False

    def test_large_move_reprices(self):
        assert should_reprice(0.45, 0.48) is True
        assert should_reprice(0.48, 0.45) is True


class TestSpread:
    def test_spread_boundary_inclusive(self):
        assert spread_acceptable(0.50, 0.50)
        assert not spread_acceptable(0.51, 0.50)
