"""
Signal Generation Components

- Indicator library: numba-optimized RSI, EMA, ATR and bullish divergence
- Scoring model: multi-factor entry score and exit decision
"""

from .indicators import (
    rsi,
    ema,
    atr,
    detect_bullish_divergence
)

from .scoring import (
    IndicatorSnapshot,
    EntryDecision,
    ExitDecision,
    compute_snapshot,
    score_entry,
    evaluate_exit
)

__all__ = [
    'rsi',
    'ema',
    'atr',
    'detect_bullish_divergence',
    'IndicatorSnapshot',
    'EntryDecision',
    'ExitDecision',
    'compute_snapshot',
    'score_entry',
    'evaluate_exit'
]
