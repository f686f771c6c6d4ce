"""
Statistics Engine

Post-processes a completed run's equity curve and trade log into the
performance figures reported to the host:
- Win rate, net profit and total return
- Maximum drawdown from the full-resolution equity curve
- Annualized Sharpe ratio matched to the candle timeframe
- Profit factor with a finite sentinel when there are no losses
- Equity curve downsampling for output
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence
import logging
import math

import numpy as np
import pandas as pd

from ..config import EngineSettings
from ..core.models import BacktestResult, EquityPoint, OrderSide, TradeEvent
from ..exceptions import InvalidInputError

logger = logging.getLogger(__name__)

MINUTES_PER_YEAR = 365 * 24 * 60  # Crypto trades every day
STD_EPSILON = 1e-9
PROFIT_FACTOR_CAP = 10.0  # Reported when there are winners and no losers


@dataclass(frozen=True)
class PerformanceMetrics:
    """Aggregate performance figures for one run"""
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float  # Percent
    net_profit: float
    total_return_percent: float
    max_drawdown_percent: float
    sharpe_ratio: float
    profit_factor: float
    gross_profit: float
    gross_loss: float
    max_consecutive_losses: int


def periods_per_year(timeframe: str) -> float:
    """Number of bars per 365-day year for a timeframe such as '1h'"""
    minutes = EngineSettings.TIMEFRAME_MINUTES.get(timeframe)
    if minutes is None:
        raise InvalidInputError(
            f"Unsupported timeframe {timeframe!r}; expected one of "
            f"{sorted(EngineSettings.TIMEFRAME_MINUTES)}",
            field='timeframe'
        )
    return MINUTES_PER_YEAR / minutes


def infer_periods_per_year(timestamps: Sequence[int], fallback_timeframe: str = '1h') -> float:
    """
    Infer bars per year from the median spacing of epoch-millisecond timestamps

    Falls back to `fallback_timeframe` when the spacing cannot be measured.
    """
    if len(timestamps) < 2:
        return periods_per_year(fallback_timeframe)

    index = pd.to_datetime(pd.Series(timestamps, dtype='int64'), unit='ms')
    spacing = index.diff().dropna().median()
    if spacing <= pd.Timedelta(0):
        return periods_per_year(fallback_timeframe)

    return pd.Timedelta(days=365) / spacing


def timeframe_from_timestamps(timestamps: Sequence[int]) -> Optional[str]:
    """Name the timeframe matching the median candle spacing, if any"""
    if len(timestamps) < 2:
        return None
    spacing_minutes = float(np.median(np.diff(np.asarray(timestamps, dtype=np.int64)))) / 60_000
    for name, minutes in EngineSettings.TIMEFRAME_MINUTES.items():
        if spacing_minutes == minutes:
            return name
    return None


def max_drawdown_fraction(values: Sequence[float]) -> float:
    """Worst peak-to-trough decline of an equity series, as a fraction"""
    equity = np.asarray(values, dtype=np.float64)
    if len(equity) == 0:
        return 0.0
    running_max = np.maximum.accumulate(equity)
    drawdowns = (running_max - equity) / running_max
    return float(drawdowns.max())


def downsample_equity_curve(points: Sequence[EquityPoint], max_points: int = 100) -> List[EquityPoint]:
    """Keep every k-th point with a uniform stride so at most max_points remain"""
    if len(points) <= max_points:
        return list(points)
    stride = math.ceil(len(points) / max_points)
    return list(points[::stride])


class StatisticsEngine:
    """
    Performance aggregation for completed backtests

    Stateless apart from the annualization factor, so one instance can be
    reused across runs on the same timeframe.
    """

    def __init__(self, timeframe: Optional[str] = None, fallback_timeframe: str = '1h'):
        """
        Args:
            timeframe: Candle timeframe used for Sharpe annualization; when
                None the factor is inferred from the equity curve timestamps
            fallback_timeframe: Used when the timestamps cannot be measured
        """
        self.timeframe = timeframe
        self.fallback_timeframe = fallback_timeframe
        self._periods_per_year = periods_per_year(timeframe) if timeframe else None

    def annualization_factor(self, equity_curve: Sequence[EquityPoint]) -> float:
        if self._periods_per_year is not None:
            return self._periods_per_year
        return infer_periods_per_year([p.timestamp for p in equity_curve], self.fallback_timeframe)

    def calculate_sharpe_ratio(self, equity_curve: Sequence[EquityPoint]) -> float:
        """
        Annualized Sharpe ratio of per-bar returns

        Uses the population standard deviation floored at a small epsilon;
        fewer than two equity points give 0.
        """
        values = np.asarray([p.equity for p in equity_curve], dtype=np.float64)
        if len(values) < 2:
            return 0.0

        returns = np.diff(values) / values[:-1]
        mean_return = float(returns.mean())
        std_return = max(float(returns.std()), STD_EPSILON)

        return mean_return / std_return * math.sqrt(self.annualization_factor(equity_curve))

    def calculate_profit_factor(self, gross_profit: float, gross_loss: float) -> float:
        if gross_loss > 0:
            return gross_profit / gross_loss
        return PROFIT_FACTOR_CAP if gross_profit > 0 else 0.0

    def calculate_trade_statistics(self, trade_log: Sequence[TradeEvent]) -> dict:
        """Win/loss counts, gross figures and longest losing streak from closed trades"""
        pnls = [t.realized_pnl for t in trade_log if t.side == OrderSide.SELL]

        wins = [pnl for pnl in pnls if pnl > 0]
        losses = [pnl for pnl in pnls if pnl <= 0]

        max_streak = 0
        streak = 0
        for pnl in pnls:
            if pnl > 0:
                streak = 0
            else:
                streak += 1
                max_streak = max(max_streak, streak)

        return {
            'total_trades': len(pnls),
            'winning_trades': len(wins),
            'losing_trades': len(losses),
            'gross_profit': float(sum(wins)),
            'gross_loss': float(sum(abs(pnl) for pnl in losses)),
            'max_consecutive_losses': max_streak,
        }

    def calculate_performance_metrics(self,
                                      equity_curve: Sequence[EquityPoint],
                                      trade_log: Sequence[TradeEvent],
                                      initial_balance: float,
                                      final_equity: float,
                                      max_drawdown: Optional[float] = None) -> PerformanceMetrics:
        """
        Calculate the performance figures for a completed run

        Args:
            equity_curve: Full-resolution equity curve
            trade_log: Ordered BUY/SELL events
            initial_balance: Starting cash
            final_equity: Cash after the end-of-run liquidation
            max_drawdown: Running drawdown fraction tracked by the simulation;
                recomputed from the curve when omitted

        Returns:
            PerformanceMetrics
        """
        trade_stats = self.calculate_trade_statistics(trade_log)
        total_trades = trade_stats['total_trades']

        if max_drawdown is None:
            max_drawdown = max_drawdown_fraction([p.equity for p in equity_curve])

        net_profit = final_equity - initial_balance

        return PerformanceMetrics(
            total_trades=total_trades,
            winning_trades=trade_stats['winning_trades'],
            losing_trades=trade_stats['losing_trades'],
            win_rate=trade_stats['winning_trades'] / total_trades * 100 if total_trades > 0 else 0.0,
            net_profit=net_profit,
            total_return_percent=net_profit / initial_balance * 100,
            max_drawdown_percent=max_drawdown * 100,
            sharpe_ratio=self.calculate_sharpe_ratio(equity_curve),
            profit_factor=self.calculate_profit_factor(trade_stats['gross_profit'], trade_stats['gross_loss']),
            gross_profit=trade_stats['gross_profit'],
            gross_loss=trade_stats['gross_loss'],
            max_consecutive_losses=trade_stats['max_consecutive_losses'],
        )

    def generate_report(self, result: BacktestResult) -> str:
        """
        Render a plain-text performance report

        Args:
            result: Completed backtest result

        Returns:
            Formatted report string
        """
        params = result.parameters
        report = []
        report.append("=" * 60)
        report.append(f"BACKTEST REPORT - {result.symbol}")
        report.append("=" * 60)

        report.append("\nRETURNS")
        report.append("-" * 40)
        report.append(f"Initial Balance:        {result.initial_balance:>15.2f}")
        report.append(f"Final Equity:           {result.final_equity:>15.2f}")
        report.append(f"Net Profit:             {result.net_profit:>15.2f}")
        report.append(f"Total Return:           {result.total_return_percent:>14.2f}%")

        report.append("\nRISK")
        report.append("-" * 40)
        report.append(f"Max Drawdown:           {result.max_drawdown_percent:>14.2f}%")
        report.append(f"Sharpe Ratio:           {result.sharpe_ratio:>15.3f}")

        report.append("\nTRADES")
        report.append("-" * 40)
        report.append(f"Total Trades:           {result.total_trades:>15d}")
        report.append(f"Win Rate:               {result.win_rate:>14.2f}%")
        report.append(f"Profit Factor:          {result.profit_factor:>15.3f}")
        report.append(f"Gross Profit:           {result.gross_profit:>15.2f}")
        report.append(f"Gross Loss:             {result.gross_loss:>15.2f}")
        report.append(f"Max Losing Streak:      {result.max_consecutive_losses:>15d}")

        report.append("\nPARAMETERS")
        report.append("-" * 40)
        report.append(f"Risk Profile:           {params.risk_profile.value:>15}")
        report.append(f"RSI Period/Threshold:   {f'{params.rsi_period}/{params.rsi_threshold:g}':>15}")
        report.append(f"EMA Fast/Slow:          {f'{params.ema_fast_period}/{params.ema_slow_period}':>15}")
        report.append(f"Trailing Stop:          {str(params.trailing_stop_enabled):>15}")
        report.append(f"Bars Simulated:         {result.bars_simulated:>15d}")

        report.append("\n" + "=" * 60)

        return "\n".join(report)
