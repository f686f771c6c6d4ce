"""
Core Engine Components

This module contains the core components of the backtesting engine:
- Data model: candles, strategy parameters, trade/equity events, results
- TradeEngine: Simulated fills and per-run account state
- BacktestExecutor: Bar-by-bar simulation loop
"""

from .models import (
    Candle,
    StrategyParameters,
    TradeEvent,
    EquityPoint,
    BacktestResult,
    OrderSide,
    candles_from_dataframe
)

from .trade_engine import TradeEngine, Position, SimulationState

from .backtest_executor import BacktestExecutor

__all__ = [
    'Candle',
    'StrategyParameters',
    'TradeEvent',
    'EquityPoint',
    'BacktestResult',
    'OrderSide',
    'candles_from_dataframe',
    'TradeEngine',
    'Position',
    'SimulationState',
    'BacktestExecutor'
]
