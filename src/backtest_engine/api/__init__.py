"""
API endpoints for the backtesting engine

- Running backtests over caller-supplied candles
- Risk profile listing
- Health checks
"""

from .backtest_api import router as backtest_router
from .health_api import router as health_router

__all__ = ['backtest_router', 'health_router']
