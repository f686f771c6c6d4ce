"""
Risk Manager - Progressive risk controls for a single long position

This module provides:
- Volatility-adjusted position sizing
- Progressive stop loss tightening as unrealized profit grows
- Trailing or entry-anchored stop prices
- Volatility and trend scaled take profit targets
"""

from dataclasses import dataclass
from typing import Tuple

from .risk_profiles import RiskProfile

# Volatility sizing: 1 / (atr/price * 50), kept inside [0.5, 1.5]
VOLATILITY_SIZING_SCALE = 50.0
MIN_VOLATILITY_ADJUSTMENT = 0.5
MAX_VOLATILITY_ADJUSTMENT = 1.5

# (fraction of take profit reached, stop multiplier), largest tightening last
STOP_TIGHTENING_STEPS: Tuple[Tuple[float, float], ...] = (
    (0.3, 0.7),
    (0.5, 0.5),
    (0.75, 0.35),
)

TAKE_PROFIT_VOLATILITY_SCALE = 10.0
STRONG_TREND_TARGET_MULTIPLIER = 1.2


@dataclass(frozen=True)
class ExitLevels:
    """Stop and target prices for the current bar"""
    stop_fraction: float
    stop_price: float
    take_profit_fraction: float
    take_profit_price: float


class RiskManager:
    """
    Stateless risk calculator bound to one risk profile

    Every method is a pure function of its inputs, so a single instance can be
    shared by concurrent runs using the same profile.
    """

    def __init__(self, profile: RiskProfile, trailing_stop_enabled: bool = False):
        self.profile = profile
        self.trailing_stop_enabled = trailing_stop_enabled

    def volatility_adjustment(self, volatility_factor: float) -> float:
        """Higher volatility shrinks size; zero volatility takes the upper cap"""
        if volatility_factor <= 0:
            return MAX_VOLATILITY_ADJUSTMENT
        raw = 1.0 / (volatility_factor * VOLATILITY_SIZING_SCALE)
        return max(MIN_VOLATILITY_ADJUSTMENT, min(MAX_VOLATILITY_ADJUSTMENT, raw))

    def allocation_fraction(self, volatility_factor: float) -> float:
        """Fraction of cash to commit to a new entry"""
        return self.profile.position_size_fraction * self.volatility_adjustment(volatility_factor)

    def dynamic_stop_fraction(self, profit_pct: float) -> float:
        """
        Stop distance after progressive tightening

        Args:
            profit_pct: Unrealized profit as a fraction of entry price

        Returns:
            Stop distance as a fraction of the anchor price
        """
        stop_fraction = self.profile.stop_loss_fraction
        for reached, multiplier in STOP_TIGHTENING_STEPS:
            if profit_pct > self.profile.take_profit_fraction * reached:
                stop_fraction = self.profile.stop_loss_fraction * multiplier
        return stop_fraction

    def dynamic_take_profit_fraction(self, volatility_factor: float, strong_trend: bool) -> float:
        """Target distance scaled up by volatility and trend strength"""
        trend_multiplier = STRONG_TREND_TARGET_MULTIPLIER if strong_trend else 1.0
        return (self.profile.take_profit_fraction
                * (1 + volatility_factor * TAKE_PROFIT_VOLATILITY_SCALE)
                * trend_multiplier)

    def exit_levels(self, entry_price: float, highest_price: float, current_price: float,
                    volatility_factor: float, strong_trend: bool) -> ExitLevels:
        """
        Calculate stop and target prices for an open long position

        Args:
            entry_price: Filled entry price
            highest_price: Highest execution price seen since entry
            current_price: Execution price for this bar
            volatility_factor: ATR divided by close
            strong_trend: Whether the EMA spread counts as a strong trend

        Returns:
            ExitLevels for the bar
        """
        profit_pct = (current_price - entry_price) / entry_price
        stop_fraction = self.dynamic_stop_fraction(profit_pct)
        anchor = highest_price if self.trailing_stop_enabled else entry_price
        target_fraction = self.dynamic_take_profit_fraction(volatility_factor, strong_trend)

        return ExitLevels(
            stop_fraction=stop_fraction,
            stop_price=anchor * (1 - stop_fraction),
            take_profit_fraction=target_fraction,
            take_profit_price=entry_price * (1 + target_fraction),
        )
