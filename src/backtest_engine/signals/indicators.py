"""
Indicator Library - Point-in-time technical indicators

Each function takes an ordered window and returns the indicator value as of
the last element. Nothing here raises on short input: RSI falls back to the
neutral 50, ATR to 0 and divergence to False, so the simulation loop can run
uniformly from its first bar.
"""

from typing import Sequence, Union

import numpy as np
from numba import njit

ArrayLike = Union[Sequence[float], np.ndarray]

NEUTRAL_RSI = 50.0
DIVERGENCE_WINDOW = 10
DIVERGENCE_PRICE_TOLERANCE = 1.01  # Second low may sit up to 1% above the first
DIVERGENCE_RSI_LIFT = 1.05         # Second RSI low must be at least 5% higher
DIVERGENCE_RSI_CEILING = 40.0      # ...and still oversold


def _as_array(values: ArrayLike) -> np.ndarray:
    return np.asarray(values, dtype=np.float64)


def rsi(prices: ArrayLike, period: int = 14) -> float:
    """
    Relative Strength Index over the last `period` deltas

    Args:
        prices: Closing prices, oldest first
        period: Number of deltas to average

    Returns:
        RSI in [0, 100], or 50.0 when fewer than period + 1 prices exist
    """
    if period < 1:
        return NEUTRAL_RSI
    return float(_rsi_kernel(_as_array(prices), period))


def ema(prices: ArrayLike, period: int) -> float:
    """
    Exponential moving average seeded with the first element of `prices`

    Callers choose the seed by choosing where the slice starts.
    """
    return float(_ema_kernel(_as_array(prices), period))


def atr(highs: ArrayLike, lows: ArrayLike, closes: ArrayLike, period: int = 14) -> float:
    """Average true range over the trailing `period` bars, 0.0 without enough history"""
    if period < 1:
        return 0.0
    return float(_atr_kernel(_as_array(highs), _as_array(lows), _as_array(closes), period))


def detect_bullish_divergence(prices: ArrayLike, rsi_values: ArrayLike) -> bool:
    """
    Detect price making an equal-or-lower low while RSI makes a higher low

    Compares the minima of the first and second half of the trailing 10-point
    window. The higher RSI low must stay below 40, which filters out signals in
    strongly bullish regimes.
    """
    price_arr = _as_array(prices)
    rsi_arr = _as_array(rsi_values)

    if len(price_arr) < DIVERGENCE_WINDOW or len(rsi_arr) < DIVERGENCE_WINDOW:
        return False

    recent_prices = price_arr[-DIVERGENCE_WINDOW:]
    recent_rsi = rsi_arr[-DIVERGENCE_WINDOW:]
    half = DIVERGENCE_WINDOW // 2

    price_min_1 = recent_prices[:half].min()
    price_min_2 = recent_prices[half:].min()
    rsi_min_1 = recent_rsi[:half].min()
    rsi_min_2 = recent_rsi[half:].min()

    return bool(
        price_min_2 < price_min_1 * DIVERGENCE_PRICE_TOLERANCE
        and rsi_min_2 > rsi_min_1 * DIVERGENCE_RSI_LIFT
        and rsi_min_2 < DIVERGENCE_RSI_CEILING
    )


@njit
def _rsi_kernel(prices: np.ndarray, period: int) -> float:
    n = len(prices)
    if n < period + 1:
        return 50.0

    gains = 0.0
    losses = 0.0
    for i in range(n - period, n):
        diff = prices[i] - prices[i - 1]
        if diff >= 0:
            gains += diff
        else:
            losses -= diff

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        avg_loss = 1.0

    return 100.0 - (100.0 / (1.0 + avg_gain / avg_loss))


@njit
def _ema_kernel(prices: np.ndarray, period: int) -> float:
    n = len(prices)
    if n == 0:
        return 0.0

    alpha = 2.0 / (period + 1)
    value = prices[0]
    for i in range(1, n):
        value += alpha * (prices[i] - value)

    return value


@njit
def _atr_kernel(highs: np.ndarray, lows: np.ndarray, closes: np.ndarray, period: int) -> float:
    n = len(highs)
    if n < period + 1:
        return 0.0

    total = 0.0
    for i in range(n - period, n):
        true_range = max(
            highs[i] - lows[i],
            abs(highs[i] - closes[i - 1]),
            abs(lows[i] - closes[i - 1])
        )
        total += true_range

    return total / period
