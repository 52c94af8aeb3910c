import math
from typing import Tuple

from polymarket_vulture.models import TradeSide

PROB_FLOOR = 0.01
PROB_CEIL = 0.99
SENSITIVITY_FLOOR = 20.0
SENSITIVITY_PER_MINUTE = 20.0
REPRICE_THRESHOLD = 0.02


def _clamp(x: float, lo: float = PROB_FLOOR, hi: float = PROB_CEIL) -> float:
    # 0.40 + 0.01 must compare equal to a 0.41 bid
    return round(max(lo, min(hi, float(x))), 9)


def _sensitivity(minutes_remaining: float) -> float:
    try:
        m = float(minutes_remaining)
    except (TypeError, ValueError):
        return SENSITIVITY_FLOOR
    if not math.isfinite(m):
        return SENSITIVITY_FLOOR
    return max(SENSITIVITY_FLOOR, m * SENSITIVITY_PER_MINUTE)


def fair_value(spot: float, strike: float, minutes_remaining: float) -> float:
    """Probability that spot settles at or above strike.

    Sensitivity shrinks toward expiry (floor 20), so the same dollar distance
    moves the estimate further as time runs out.
    """
    distance = float(spot) - float(strike)
    return _clamp(0.50 + distance / _sensitivity(minutes_remaining))


def select_direction(spot: float, strike: float, minutes_remaining: float) -> Tuple[TradeSide, float]:
    prob_up = fair_value(spot, strike, minutes_remaining)
    if float(spot) - float(strike) >= 0:
        return TradeSide.UP, prob_up
    return TradeSide.DOWN, 1.0 - prob_up


def entry_target(fair: float, panic_discount: float) -> float:
    return _clamp(fair - panic_discount)


def take_profit_target(entry_price: float, scalp_profit: float) -> float:
    return _clamp(entry_price + scalp_profit)


def stop_loss_target(entry_price: float, stop_loss_threshold: float) -> float:
    return _clamp(entry_price - stop_loss_threshold)


def position_size(max_capital: float, entry_price: float) -> int:
    if entry_price <= 0:
        return 0
    # round first so 20 / 0.05 does not floor to 399
    return max(0, int(math.floor(round(float(max_capital) / float(entry_price), 9))))


def should_reprice(current_price: float, new_target: float) -> bool:
    return round(abs(float(current_price) - float(new_target)), 9) > REPRICE_THRESHOLD


def spread_acceptable(spread: float, max_spread: float) -> bool:
    return float(spread) <= float(max_spread)


def realized_pnl(entry_price: float, exit_price: float, shares: float) -> float:
    return (float(exit_price) - float(entry_price)) * float(shares)
