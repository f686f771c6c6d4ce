"""
Scored Strategy Backtesting Engine

Replays historical OHLCV candles bar by bar through a multi-factor entry/exit
scoring model and reports the resulting performance:
- Incremental RSI, EMA, ATR and bullish divergence indicators
- Named risk profiles with volatility sizing and progressive stops
- Simulated fills with slippage and fees
- Equity curve, trade log, drawdown, Sharpe ratio and profit factor
"""

__version__ = "1.0.0"

from .core import (
    BacktestExecutor,
    BacktestResult,
    Candle,
    StrategyParameters,
    candles_from_dataframe
)
from .exceptions import BacktestError, DataInsufficientError, InvalidInputError
from .risk import RiskProfileName, lookup_risk_profile

__all__ = [
    'BacktestExecutor',
    'BacktestResult',
    'Candle',
    'StrategyParameters',
    'candles_from_dataframe',
    'BacktestError',
    'DataInsufficientError',
    'InvalidInputError',
    'RiskProfileName',
    'lookup_risk_profile'
]
