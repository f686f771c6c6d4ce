"""
Performance statistics for completed backtests
"""

from .statistics_engine import (
    StatisticsEngine,
    PerformanceMetrics,
    periods_per_year,
    max_drawdown_fraction,
    downsample_equity_curve
)

__all__ = [
    'StatisticsEngine',
    'PerformanceMetrics',
    'periods_per_year',
    'max_drawdown_fraction',
    'downsample_equity_curve'
]
