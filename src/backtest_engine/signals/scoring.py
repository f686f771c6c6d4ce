"""
Entry/Exit Scoring Model

Turns a per-bar indicator snapshot into a 0-10 entry score while flat, and
into an exit decision while holding. The point values and thresholds below
are tuned constants and are kept exactly as they are.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import numpy as np

from ..risk.risk_manager import ExitLevels, RiskManager
from .indicators import atr, detect_bullish_divergence, ema, rsi

ATR_PERIOD = 14
VOLUME_LOOKBACK = 20           # Average spans bars i-20..i inclusive
VOLUME_CONFIRMATION_RATIO = 0.8
STRONG_TREND_THRESHOLD = 0.5   # Percent spread between fast and slow EMA
MAJOR_TREND_PERIOD = 200
MAJOR_TREND_BUFFER = 0.98
MOMENTUM_PERIOD = 5
BEARISH_MOMENTUM_PERIOD = 3

ENTRY_POINTS: Dict[str, int] = {
    'trend_bullish': 2,
    'rsi_oversold': 2,
    'volume_confirmed': 1,
    'strong_trend': 1,
    'bullish_divergence': 1,
    'momentum': 1,
    'above_major_trend': 1,
}
LOSING_STREAK_LENGTH = 2
LOSING_STREAK_PENALTY = 1
MIN_SCORE = 0
MAX_SCORE = 10
ENTRY_SCORE_THRESHOLD = 5
ENTRY_RSI_CEILING = 65.0
EXIT_RSI_OVERBOUGHT = 78.0


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values as of one bar"""
    close: float
    rsi: float
    ema_fast: float
    ema_slow: float
    ema_major: float
    atr: float
    volatility_factor: float
    volume_confirmed: bool
    trend_strength: float
    strong_trend: bool
    bullish_divergence: bool
    momentum: bool
    bearish_momentum: bool


@dataclass(frozen=True)
class EntryDecision:
    score: int
    raw_score: int
    should_enter: bool
    signals: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class ExitDecision:
    should_exit: bool
    reason: Optional[str]
    levels: ExitLevels


def compute_snapshot(closes: np.ndarray, highs: np.ndarray, lows: np.ndarray,
                     volumes: np.ndarray, index: int,
                     rsi_period: int, ema_fast_period: int, ema_slow_period: int,
                     rsi_history: Sequence[float] = (),
                     price_history: Sequence[float] = ()) -> IndicatorSnapshot:
    """
    Compute every indicator the scoring model needs for bar `index`

    Args:
        closes, highs, lows, volumes: Full series arrays
        index: Current bar position
        rsi_period, ema_fast_period, ema_slow_period: Strategy periods
        rsi_history, price_history: Values from previous bars; the current
            bar is appended here before divergence detection

    Returns:
        IndicatorSnapshot for the bar
    """
    end = index + 1
    window = closes[:end]
    close = float(closes[index])

    rsi_value = rsi(window, rsi_period)
    ema_fast = ema(window, ema_fast_period)
    ema_slow = ema(window, ema_slow_period)
    if end >= MAJOR_TREND_PERIOD:
        ema_major = ema(window[-MAJOR_TREND_PERIOD:], MAJOR_TREND_PERIOD)
    else:
        ema_major = ema_slow

    atr_value = atr(highs[:end], lows[:end], window, ATR_PERIOD)
    volatility_factor = atr_value / close

    volume_window = volumes[max(0, index - VOLUME_LOOKBACK):end]
    avg_volume = float(volume_window.mean())
    volume_confirmed = float(volumes[index]) > avg_volume * VOLUME_CONFIRMATION_RATIO

    trend_strength = abs(ema_fast - ema_slow) / ema_slow * 100

    divergence = detect_bullish_divergence(
        list(price_history) + [close],
        list(rsi_history) + [rsi_value]
    )

    momentum = close > ema(window[-MOMENTUM_PERIOD:], MOMENTUM_PERIOD)
    bearish_momentum = close < ema(window[-BEARISH_MOMENTUM_PERIOD:], BEARISH_MOMENTUM_PERIOD)

    return IndicatorSnapshot(
        close=close,
        rsi=rsi_value,
        ema_fast=ema_fast,
        ema_slow=ema_slow,
        ema_major=ema_major,
        atr=atr_value,
        volatility_factor=volatility_factor,
        volume_confirmed=volume_confirmed,
        trend_strength=trend_strength,
        strong_trend=trend_strength > STRONG_TREND_THRESHOLD,
        bullish_divergence=divergence,
        momentum=momentum,
        bearish_momentum=bearish_momentum,
    )


def score_entry(snapshot: IndicatorSnapshot, rsi_threshold: float,
                consecutive_losses: int = 0) -> EntryDecision:
    """
    Score a potential long entry

    The score is clamped to [0, 10]. Entry needs a score of at least 5 and,
    independently, RSI below 65.
    """
    signals = {
        'trend_bullish': snapshot.ema_fast > snapshot.ema_slow,
        'rsi_oversold': snapshot.rsi < rsi_threshold,
        'volume_confirmed': snapshot.volume_confirmed,
        'strong_trend': snapshot.strong_trend,
        'bullish_divergence': snapshot.bullish_divergence,
        'momentum': snapshot.momentum,
        'above_major_trend': snapshot.close > snapshot.ema_major * MAJOR_TREND_BUFFER,
    }

    raw_score = sum(ENTRY_POINTS[name] for name, fired in signals.items() if fired)
    if consecutive_losses >= LOSING_STREAK_LENGTH:
        raw_score -= LOSING_STREAK_PENALTY

    score = min(MAX_SCORE, max(MIN_SCORE, raw_score))
    not_overbought = snapshot.rsi < ENTRY_RSI_CEILING

    return EntryDecision(
        score=score,
        raw_score=raw_score,
        should_enter=score >= ENTRY_SCORE_THRESHOLD and not_overbought,
        signals=signals,
    )


def evaluate_exit(snapshot: IndicatorSnapshot, risk_manager: RiskManager,
                  entry_price: float, highest_price: float,
                  execution_price: float) -> ExitDecision:
    """
    Decide whether to close the open position on this bar

    Args:
        snapshot: Indicator snapshot for the bar
        risk_manager: Risk manager for the run's profile
        entry_price: Filled entry price
        highest_price: Highest execution price since entry, already
            including this bar
        execution_price: Slippage-adjusted sell price for this bar

    Returns:
        ExitDecision naming the first matching exit condition
    """
    levels = risk_manager.exit_levels(
        entry_price=entry_price,
        highest_price=highest_price,
        current_price=execution_price,
        volatility_factor=snapshot.volatility_factor,
        strong_trend=snapshot.strong_trend,
    )

    trend_reversal = (snapshot.ema_fast < snapshot.ema_slow
                      and not snapshot.momentum
                      and snapshot.bearish_momentum)

    if execution_price < levels.stop_price:
        reason = 'stop_loss'
    elif execution_price > levels.take_profit_price:
        reason = 'take_profit'
    elif trend_reversal:
        reason = 'trend_reversal'
    elif snapshot.rsi > EXIT_RSI_OVERBOUGHT:
        reason = 'rsi_overbought'
    else:
        reason = None

    return ExitDecision(should_exit=reason is not None, reason=reason, levels=levels)
