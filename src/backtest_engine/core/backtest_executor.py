"""
Backtest Executor - Main backtesting coordination and execution

This module drives one run bar by bar:
- Candle validation and lookback checks
- Indicator snapshot and scoring per bar
- Simulated fills through the trade engine
- Final liquidation and performance aggregation
"""

from datetime import datetime
from typing import Optional, Sequence, Union
import logging
import math

import numpy as np
import pandas as pd

from ..config import EngineSettings, get_settings
from ..exceptions import DataInsufficientError, InvalidInputError
from ..risk.risk_manager import RiskManager
from ..risk.risk_profiles import lookup_risk_profile
from ..signals.scoring import compute_snapshot, evaluate_exit, score_entry
from ..statistics.statistics_engine import (
    StatisticsEngine,
    downsample_equity_curve,
    timeframe_from_timestamps
)
from .models import BacktestResult, Candle, StrategyParameters, candles_from_dataframe
from .trade_engine import TradeEngine

logger = logging.getLogger(__name__)


class BacktestExecutor:
    """
    Main backtesting execution engine

    Holds configuration only. Every call to run_backtest builds its own
    TradeEngine state, so one executor can serve concurrent runs.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or get_settings()

    @property
    def warmup_offset(self) -> int:
        return self.settings.warmup_offset

    def validate_data(self, candles: Sequence[Candle], symbol: str = "",
                      lookback_bars: Optional[int] = None):
        """
        Validate candle quality and length

        Raises:
            DataInsufficientError: Fewer candles than the warm-up needs or
                than the requested lookback
            InvalidInputError: Non-finite or non-positive prices, non-positive
                volume, or timestamps that are not strictly increasing
        """
        required = self.warmup_offset + 1
        if lookback_bars is not None:
            required = max(required, lookback_bars)
        if len(candles) < required:
            raise DataInsufficientError(required, len(candles), symbol)

        previous_ts = None
        for i, candle in enumerate(candles):
            for name in ('open', 'high', 'low', 'close'):
                value = getattr(candle, name)
                if not math.isfinite(value) or value <= 0:
                    raise InvalidInputError(f"candle {i} has invalid {name} price {value!r}", field='candles')
            if not math.isfinite(candle.volume) or candle.volume <= 0:
                raise InvalidInputError(f"candle {i} has non-positive volume {candle.volume!r}", field='candles')
            if previous_ts is not None and candle.timestamp <= previous_ts:
                raise InvalidInputError(f"candle {i} timestamp {candle.timestamp} is not after {previous_ts}",
                                        field='candles')
            previous_ts = candle.timestamp

    def run_backtest(self,
                     symbol: str,
                     candles: Union[Sequence[Candle], pd.DataFrame],
                     parameters: Optional[StrategyParameters] = None,
                     timeframe: Optional[str] = None,
                     lookback_bars: Optional[int] = None) -> BacktestResult:
        """
        Run a complete backtest

        Args:
            symbol: Instrument identifier, echoed in the result
            candles: OHLCV candles in ascending timestamp order, or a DataFrame
            parameters: Strategy parameters (defaults when None)
            timeframe: Candle timeframe for Sharpe annualization; inferred
                from the candle spacing when None, and the configured
                default_timeframe when the spacing matches no named one
            lookback_bars: Number of bars the caller asked for; fewer
                candles raise DataInsufficientError

        Returns:
            BacktestResult
        """
        if isinstance(candles, pd.DataFrame):
            candles = candles_from_dataframe(candles)
        candles = [Candle(*c) for c in candles]
        parameters = parameters or StrategyParameters()

        self.validate_data(candles, symbol, lookback_bars)

        timestamps = [c.timestamp for c in candles]
        if timeframe is None:
            timeframe = timeframe_from_timestamps(timestamps)
        if timeframe is None:
            logger.info(f"Candle spacing for {symbol} matches no named timeframe, "
                        f"annualizing as {self.settings.default_timeframe}")
            timeframe = self.settings.default_timeframe
        stats_engine = StatisticsEngine(timeframe, self.settings.default_timeframe)

        logger.info(f"Starting backtest for {symbol}: {len(candles)} bars, "
                    f"profile={parameters.risk_profile.value}, timeframe={timeframe}")
        start_time = datetime.now()

        trade_engine = self.simulate(candles, parameters)

        state = trade_engine.state
        final_equity = state.cash_balance
        metrics = stats_engine.calculate_performance_metrics(
            equity_curve=state.equity_curve,
            trade_log=state.trade_log,
            initial_balance=self.settings.initial_balance,
            final_equity=final_equity,
            max_drawdown=state.max_drawdown,
        )

        result = BacktestResult(
            symbol=symbol,
            total_trades=metrics.total_trades,
            win_rate=metrics.win_rate,
            net_profit=metrics.net_profit,
            max_drawdown_percent=metrics.max_drawdown_percent,
            sharpe_ratio=metrics.sharpe_ratio,
            profit_factor=metrics.profit_factor,
            equity_curve=tuple(downsample_equity_curve(state.equity_curve,
                                                       self.settings.equity_curve_max_points)),
            trade_log=tuple(state.trade_log),
            parameters=parameters,
            initial_balance=self.settings.initial_balance,
            final_equity=final_equity,
            total_return_percent=metrics.total_return_percent,
            gross_profit=metrics.gross_profit,
            gross_loss=metrics.gross_loss,
            max_consecutive_losses=metrics.max_consecutive_losses,
            bars_simulated=len(state.equity_curve),
            timeframe=timeframe,
            lookback_bars=lookback_bars,
        )

        logger.info(f"Backtest for {symbol} completed in {datetime.now() - start_time}")
        logger.info(f"Net profit: {result.net_profit:.2f} ({result.total_return_percent:.2f}%), "
                    f"trades: {result.total_trades}, win rate: {result.win_rate:.1f}%")

        return result

    def simulate(self, candles: Sequence[Candle], parameters: StrategyParameters) -> TradeEngine:
        """
        Flat/holding state machine over every bar after the warm-up offset

        Candles must already be validated. The open position, if any, is
        liquidated at the last close before returning, so the returned engine
        is always flat.

        Returns:
            The TradeEngine holding the full-resolution run state
        """
        profile = lookup_risk_profile(parameters.risk_profile)
        risk_manager = RiskManager(profile, parameters.trailing_stop_enabled)
        trade_engine = TradeEngine(
            initial_balance=self.settings.initial_balance,
            slippage=parameters.slippage_rate,
            fee_rate=parameters.fee_rate,
            history_size=self.settings.divergence_history_size,
        )

        closes = np.array([c.close for c in candles], dtype=np.float64)
        highs = np.array([c.high for c in candles], dtype=np.float64)
        lows = np.array([c.low for c in candles], dtype=np.float64)
        volumes = np.array([c.volume for c in candles], dtype=np.float64)
        state = trade_engine.state

        for i in range(self.warmup_offset, len(candles)):
            timestamp = candles[i].timestamp
            close = float(closes[i])

            snapshot = compute_snapshot(
                closes, highs, lows, volumes, i,
                rsi_period=parameters.rsi_period,
                ema_fast_period=parameters.ema_fast_period,
                ema_slow_period=parameters.ema_slow_period,
                rsi_history=state.rsi_history,
                price_history=state.price_history,
            )
            trade_engine.record_history(snapshot.rsi, snapshot.close)
            trade_engine.record_equity(timestamp, close)

            if not state.position.is_open:
                decision = score_entry(snapshot, parameters.rsi_threshold, state.consecutive_losses)
                if decision.should_enter:
                    trade_engine.open_position(
                        timestamp, close, risk_manager.allocation_fraction(snapshot.volatility_factor)
                    )
            else:
                execution_price = trade_engine.sell_price(close)
                trade_engine.update_highest_price(execution_price)
                exit_decision = evaluate_exit(
                    snapshot,
                    risk_manager,
                    entry_price=state.position.entry_price,
                    highest_price=state.position.highest_price_since_entry,
                    execution_price=execution_price,
                )
                if exit_decision.should_exit:
                    trade_engine.close_position(timestamp, close, exit_decision.reason)

        # Every run ends flat; this fill settles cash but is not a logged trade
        last = candles[-1]
        trade_engine.close_position(last.timestamp, last.close, 'end_of_data', record=False)
        return trade_engine
