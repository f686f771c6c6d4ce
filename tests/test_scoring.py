"""
Tests for the entry/exit scoring model
"""

from dataclasses import FrozenInstanceError, replace
from itertools import product

import numpy as np
import pytest

from backtest_engine.risk import RiskManager, lookup_risk_profile
from backtest_engine.signals import IndicatorSnapshot, compute_snapshot, evaluate_exit, score_entry


def neutral_snapshot(**overrides):
    """Snapshot on which no entry signal fires"""
    values = dict(
        close=100.0,
        rsi=50.0,
        ema_fast=100.0,
        ema_slow=100.0,
        ema_major=200.0,
        atr=1.0,
        volatility_factor=0.01,
        volume_confirmed=False,
        trend_strength=0.0,
        strong_trend=False,
        bullish_divergence=False,
        momentum=False,
        bearish_momentum=False,
    )
    values.update(overrides)
    return IndicatorSnapshot(**values)


class TestEntryScore:
    """Additive entry score"""

    def test_neutral_snapshot_scores_zero(self):
        decision = score_entry(neutral_snapshot(), rsi_threshold=45)
        assert decision.score == 0
        assert not decision.should_enter

    def test_score_of_exactly_five_enters(self):
        snapshot = neutral_snapshot(ema_fast=101.0, rsi=40.0, volume_confirmed=True)
        decision = score_entry(snapshot, rsi_threshold=45)
        assert decision.score == 5
        assert decision.should_enter

    def test_losing_streak_penalty_blocks_entry(self):
        snapshot = neutral_snapshot(ema_fast=101.0, rsi=40.0, volume_confirmed=True)
        assert score_entry(snapshot, 45, consecutive_losses=1).should_enter
        decision = score_entry(snapshot, 45, consecutive_losses=2)
        assert decision.score == 4
        assert not decision.should_enter

    def test_overbought_rsi_vetoes_high_score(self):
        snapshot = neutral_snapshot(
            rsi=70.0, ema_fast=101.0, volume_confirmed=True, strong_trend=True,
            bullish_divergence=True, momentum=True, ema_major=50.0,
        )
        decision = score_entry(snapshot, rsi_threshold=45)
        assert decision.score == 7
        assert not decision.should_enter

    def test_above_major_trend_uses_buffer(self):
        snapshot = neutral_snapshot(close=99.0, ema_major=100.0)
        assert score_entry(snapshot, 45).signals['above_major_trend'] is True

    def test_score_always_clamped(self):
        """Every signal combination, with and without penalty, lands in [0, 10]"""
        for flags in product([False, True], repeat=7):
            trend, oversold, volume, strong, divergence, momentum, major = flags
            snapshot = neutral_snapshot(
                ema_fast=101.0 if trend else 100.0,
                rsi=30.0 if oversold else 50.0,
                volume_confirmed=volume,
                strong_trend=strong,
                bullish_divergence=divergence,
                momentum=momentum,
                ema_major=50.0 if major else 200.0,
            )
            for losses in (0, 3):
                decision = score_entry(snapshot, 45, consecutive_losses=losses)
                assert 0 <= decision.score <= 10

    def test_penalty_on_zero_score_clamps_to_zero(self):
        decision = score_entry(neutral_snapshot(), 45, consecutive_losses=5)
        assert decision.raw_score == -1
        assert decision.score == 0


class TestExitDecision:
    """Exit condition priority for a balanced position entered at 100"""

    @pytest.fixture
    def manager(self):
        return RiskManager(lookup_risk_profile("balanced"))

    def exit_for(self, manager, price, snapshot=None, highest=None):
        return evaluate_exit(snapshot or neutral_snapshot(), manager,
                             entry_price=100.0, highest_price=highest or max(100.0, price),
                             execution_price=price)

    def test_hold(self, manager):
        decision = self.exit_for(manager, 101.0)
        assert not decision.should_exit
        assert decision.reason is None

    def test_stop_loss(self, manager):
        assert self.exit_for(manager, 98.0).reason == 'stop_loss'

    def test_take_profit(self, manager):
        # Target is 100 * (1 + 0.06 * 1.1) = 106.6
        assert self.exit_for(manager, 107.0).reason == 'take_profit'
        assert not self.exit_for(manager, 106.5).should_exit

    def test_trend_reversal(self, manager):
        snapshot = neutral_snapshot(ema_fast=99.0, bearish_momentum=True)
        assert self.exit_for(manager, 100.0, snapshot).reason == 'trend_reversal'

    def test_trend_reversal_needs_lost_momentum(self, manager):
        snapshot = neutral_snapshot(ema_fast=99.0, bearish_momentum=True, momentum=True)
        assert not self.exit_for(manager, 100.0, snapshot).should_exit

    def test_rsi_overbought(self, manager):
        snapshot = neutral_snapshot(rsi=79.0)
        assert self.exit_for(manager, 101.0, snapshot).reason == 'rsi_overbought'

    def test_stop_loss_takes_priority(self, manager):
        snapshot = neutral_snapshot(rsi=90.0, ema_fast=99.0, bearish_momentum=True)
        assert self.exit_for(manager, 98.0, snapshot).reason == 'stop_loss'

    def test_trailing_stop_exits_above_entry(self):
        snapshot = neutral_snapshot(volatility_factor=0.05, strong_trend=True)
        fixed = RiskManager(lookup_risk_profile("balanced"))
        trailing = RiskManager(lookup_risk_profile("balanced"), trailing_stop_enabled=True)

        assert not self.exit_for(fixed, 108.0, snapshot, highest=110.0).should_exit
        assert self.exit_for(trailing, 108.0, snapshot, highest=110.0).reason == 'stop_loss'


class TestComputeSnapshot:
    """Indicator snapshot over raw arrays"""

    def arrays(self, closes, volume=1000.0):
        closes = np.asarray(closes, dtype=np.float64)
        return closes, closes + 0.5, closes - 0.5, np.full(len(closes), volume)

    def test_uptrend_snapshot(self):
        closes, highs, lows, volumes = self.arrays([100.0 + i for i in range(60)])
        snapshot = compute_snapshot(closes, highs, lows, volumes, 50, 14, 9, 21)

        assert snapshot.close == 150.0
        assert snapshot.rsi == pytest.approx(50.0)
        assert snapshot.ema_fast > snapshot.ema_slow
        assert snapshot.ema_major == snapshot.ema_slow
        assert snapshot.atr == pytest.approx(1.5)
        assert snapshot.volatility_factor == pytest.approx(0.01)
        assert snapshot.volume_confirmed
        assert snapshot.strong_trend
        assert snapshot.momentum
        assert not snapshot.bearish_momentum
        assert not snapshot.bullish_divergence

    def test_only_past_bars_are_used(self):
        closes, highs, lows, volumes = self.arrays([100.0 + i for i in range(60)])
        changed = closes.copy()
        changed[51:] = 1.0
        a = compute_snapshot(closes, highs, lows, volumes, 50, 14, 9, 21)
        b = compute_snapshot(changed, highs, lows, volumes, 50, 14, 9, 21)
        assert a.close == b.close
        assert a.ema_fast == b.ema_fast
        assert a.rsi == b.rsi

    def test_major_trend_uses_last_200_closes(self):
        closes, highs, lows, volumes = self.arrays([100.0 + i for i in range(260)])
        snapshot = compute_snapshot(closes, highs, lows, volumes, 250, 14, 9, 21)
        assert snapshot.ema_major != snapshot.ema_slow
        assert snapshot.ema_major < snapshot.close

    def test_volume_dip_unconfirmed(self):
        closes, highs, lows, volumes = self.arrays([100.0] * 60)
        volumes[50] = 100.0
        snapshot = compute_snapshot(closes, highs, lows, volumes, 50, 14, 9, 21)
        assert not snapshot.volume_confirmed

    def test_snapshot_is_frozen(self):
        snapshot = neutral_snapshot()
        assert replace(snapshot, rsi=10.0).rsi == 10.0
        with pytest.raises(FrozenInstanceError):
            snapshot.rsi = 10.0
