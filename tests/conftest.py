"""
Shared synthetic OHLCV builders for the test suites
"""

import numpy as np
import pytest

from backtest_engine.core.models import Candle

START_MS = 1_700_000_000_000
HOUR_MS = 3_600_000


def build_candles(closes, spread=0.5, volumes=1000.0, start_ms=START_MS, step_ms=HOUR_MS):
    """Candles with open == close and a symmetric high/low spread"""
    if np.isscalar(volumes):
        volumes = [volumes] * len(closes)
    return [
        Candle(start_ms + i * step_ms, float(c), float(c) + spread, float(c) - spread, float(c), float(v))
        for i, (c, v) in enumerate(zip(closes, volumes))
    ]


def build_random_walk(periods=300, seed=42):
    """Reproducible random-walk candles with realistic intrabar ranges"""
    rng = np.random.default_rng(seed)
    closes = 100 * np.exp(np.cumsum(rng.normal(0, 0.01, periods)))
    highs = closes * (1 + np.abs(rng.normal(0, 0.005, periods)))
    lows = closes * (1 - np.abs(rng.normal(0, 0.005, periods)))
    volumes = rng.uniform(100, 1000, periods)
    return [
        Candle(START_MS + i * HOUR_MS, float(closes[i]), float(highs[i]), float(lows[i]),
               float(closes[i]), float(volumes[i]))
        for i in range(periods)
    ]


@pytest.fixture
def make_candles():
    return build_candles


@pytest.fixture
def flat_candles():
    """200 identical closes with no range"""
    return build_candles([100.0] * 200, spread=0.0)


@pytest.fixture
def uptrend_candles():
    """close[i] = 100 + i"""
    return build_candles([100.0 + i for i in range(200)])


@pytest.fixture
def random_walk_candles():
    return build_random_walk()
