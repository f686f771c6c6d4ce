"""
Tests for the performance aggregator
"""

import json
import math

import pytest

from backtest_engine.core import EquityPoint, OrderSide, TradeEvent
from backtest_engine.exceptions import InvalidInputError
from backtest_engine.statistics import (
    StatisticsEngine,
    downsample_equity_curve,
    max_drawdown_fraction,
    periods_per_year,
)
from backtest_engine.statistics.statistics_engine import (
    infer_periods_per_year,
    timeframe_from_timestamps,
)

HOUR_MS = 3_600_000


def curve(values):
    return [EquityPoint(i * HOUR_MS, v) for i, v in enumerate(values)]


def sell(pnl, ts=0):
    return TradeEvent(ts, OrderSide.SELL, 100.0, pnl, 1.0, 'take_profit' if pnl > 0 else 'stop_loss')


def buy(ts=0):
    return TradeEvent(ts, OrderSide.BUY, 100.0, 0.0, 1.0, 'entry')


class TestAnnualization:

    @pytest.mark.parametrize("timeframe,expected", [
        ('1m', 525_600), ('5m', 105_120), ('15m', 35_040), ('30m', 17_520),
        ('1h', 8_760), ('4h', 2_190), ('1d', 365),
    ])
    def test_periods_per_year(self, timeframe, expected):
        assert periods_per_year(timeframe) == pytest.approx(expected)

    def test_unknown_timeframe(self):
        with pytest.raises(InvalidInputError):
            periods_per_year('3w')

    def test_infer_from_spacing(self):
        timestamps = [i * 4 * HOUR_MS for i in range(10)]
        assert infer_periods_per_year(timestamps) == pytest.approx(2190)
        assert timeframe_from_timestamps(timestamps) == '4h'

    def test_fallback_timeframe_when_spacing_unmeasurable(self):
        assert infer_periods_per_year([0]) == pytest.approx(8760)
        assert infer_periods_per_year([0], '1d') == pytest.approx(365)
        assert StatisticsEngine(fallback_timeframe='4h').annualization_factor(curve([1000.0])) == pytest.approx(2190)

    def test_irregular_spacing_has_no_name(self):
        assert timeframe_from_timestamps([0, 7 * 60_000, 14 * 60_000]) is None
        assert timeframe_from_timestamps([0]) is None


class TestSharpeRatio:

    def test_known_value(self):
        engine = StatisticsEngine('1h')
        # Returns 0.01 and 0.02: mean 0.015, population std 0.005
        sharpe = engine.calculate_sharpe_ratio(curve([100.0, 101.0, 103.02]))
        assert sharpe == pytest.approx(3 * math.sqrt(8760))

    def test_flat_curve(self):
        engine = StatisticsEngine('1h')
        assert engine.calculate_sharpe_ratio(curve([1000.0] * 50)) == 0.0

    def test_single_point(self):
        assert StatisticsEngine('1h').calculate_sharpe_ratio(curve([1000.0])) == 0.0

    def test_timeframe_changes_annualization(self):
        values = curve([100.0, 101.0, 103.02])
        hourly = StatisticsEngine('1h').calculate_sharpe_ratio(values)
        daily = StatisticsEngine('1d').calculate_sharpe_ratio(values)
        assert hourly / daily == pytest.approx(math.sqrt(24))

    def test_inferred_when_no_timeframe(self):
        values = curve([100.0, 101.0, 103.02])
        assert StatisticsEngine().calculate_sharpe_ratio(values) == pytest.approx(
            StatisticsEngine('1h').calculate_sharpe_ratio(values))


class TestProfitFactor:

    def test_ratio(self):
        assert StatisticsEngine().calculate_profit_factor(30.0, 10.0) == pytest.approx(3.0)

    def test_sentinel_without_losses(self):
        value = StatisticsEngine().calculate_profit_factor(5.0, 0.0)
        assert math.isfinite(value)
        assert value >= 10

    def test_no_trades(self):
        assert StatisticsEngine().calculate_profit_factor(0.0, 0.0) == 0.0


class TestDrawdown:

    def test_known_value(self):
        assert max_drawdown_fraction([100, 110, 120, 115, 100, 90, 95]) == pytest.approx(0.25)

    def test_monotonic_over_prefixes(self):
        values = [100, 105, 98, 110, 90, 120, 60, 130]
        drawdowns = [max_drawdown_fraction(values[:n]) for n in range(1, len(values) + 1)]
        assert drawdowns == sorted(drawdowns)

    def test_empty(self):
        assert max_drawdown_fraction([]) == 0.0


class TestDownsampling:

    @pytest.mark.parametrize("length,expected", [(50, 50), (100, 100), (101, 51), (150, 75), (1000, 100)])
    def test_lengths(self, length, expected):
        points = curve([1000.0] * length)
        sampled = downsample_equity_curve(points, 100)
        assert len(sampled) == expected
        assert len(sampled) <= 100

    def test_keeps_first_point_and_order(self):
        points = curve([float(i) for i in range(350)])
        sampled = downsample_equity_curve(points, 100)
        assert sampled[0] == points[0]
        assert [p.timestamp for p in sampled] == sorted(p.timestamp for p in sampled)


class TestPerformanceMetrics:

    def test_trade_statistics_ignore_buys(self):
        log = [buy(), sell(10.0), buy(), sell(-4.0), buy(), sell(0.0), buy(), sell(6.0), buy()]
        stats = StatisticsEngine().calculate_trade_statistics(log)

        assert stats['total_trades'] == 4
        assert stats['winning_trades'] == 2
        assert stats['losing_trades'] == 2
        assert stats['gross_profit'] == pytest.approx(16.0)
        assert stats['gross_loss'] == pytest.approx(4.0)
        assert stats['max_consecutive_losses'] == 2

    def test_metrics(self):
        engine = StatisticsEngine('1h')
        equity = curve([1000.0, 1010.0, 990.0, 1020.0])
        metrics = engine.calculate_performance_metrics(
            equity, [buy(), sell(30.0), buy(), sell(-10.0)], initial_balance=1000.0, final_equity=1020.0
        )

        assert metrics.total_trades == 2
        assert metrics.win_rate == pytest.approx(50.0)
        assert metrics.net_profit == pytest.approx(20.0)
        assert metrics.total_return_percent == pytest.approx(2.0)
        assert metrics.max_drawdown_percent == pytest.approx(20 / 1010 * 100)
        assert metrics.profit_factor == pytest.approx(3.0)

    def test_no_trades(self):
        metrics = StatisticsEngine('1h').calculate_performance_metrics(
            curve([1000.0] * 10), [], initial_balance=1000.0, final_equity=1000.0
        )
        assert metrics.total_trades == 0
        assert metrics.win_rate == 0.0
        assert metrics.net_profit == 0.0
        assert metrics.profit_factor == 0.0
        assert metrics.sharpe_ratio == 0.0

    def test_only_wins_serialize(self):
        metrics = StatisticsEngine('1h').calculate_performance_metrics(
            curve([1000.0, 1005.0]), [buy(), sell(5.0)], initial_balance=1000.0, final_equity=1005.0
        )
        assert metrics.profit_factor == 10.0
        json.dumps({'profit_factor': metrics.profit_factor}, allow_nan=False)
