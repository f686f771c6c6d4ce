"""
Trade Engine - Simulated fills and per-run account state

This module handles:
- Long-only position opening and closing with slippage and fees
- Cash, equity and drawdown bookkeeping
- Win/loss streak tracking and the trade log
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional
import logging

from .models import EquityPoint, OrderSide, TradeEvent

logger = logging.getLogger(__name__)


@dataclass
class Position:
    """Active long position; quantity 0 means flat"""
    quantity: float = 0.0
    entry_price: float = 0.0
    highest_price_since_entry: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.quantity > 0


@dataclass
class SimulationState:
    """Mutable state owned by exactly one backtest run"""
    cash_balance: float
    position: Position = field(default_factory=Position)
    consecutive_losses: int = 0
    max_consecutive_losses: int = 0
    total_trades: int = 0
    wins: int = 0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    peak_equity: float = 0.0
    max_drawdown: float = 0.0
    rsi_history: Deque[float] = field(default_factory=deque)
    price_history: Deque[float] = field(default_factory=deque)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    trade_log: List[TradeEvent] = field(default_factory=list)


class TradeEngine:
    """Core fill simulation for a single long-only instrument"""

    def __init__(self, initial_balance: float, slippage: float, fee_rate: float,
                 history_size: int = 20):
        self.initial_balance = initial_balance
        self.slippage = slippage
        self.fee_rate = fee_rate
        self.state = SimulationState(
            cash_balance=initial_balance,
            peak_equity=initial_balance,
            rsi_history=deque(maxlen=history_size),
            price_history=deque(maxlen=history_size),
        )

    @property
    def position(self) -> Position:
        return self.state.position

    def buy_price(self, close: float) -> float:
        """Buy fills are pushed up by slippage"""
        return close * (1 + self.slippage)

    def sell_price(self, close: float) -> float:
        """Sell fills are pushed down by slippage"""
        return close * (1 - self.slippage)

    def mark_to_market(self, close: float) -> float:
        """Cash plus position value at the given close"""
        return self.state.cash_balance + self.state.position.quantity * close

    def record_history(self, rsi_value: float, close: float):
        """Push the bar's RSI and close into the bounded divergence windows"""
        self.state.rsi_history.append(rsi_value)
        self.state.price_history.append(close)

    def record_equity(self, timestamp: int, close: float) -> float:
        """
        Append the bar's equity point and update the drawdown high-water mark

        Returns:
            The recorded equity
        """
        state = self.state
        equity = self.mark_to_market(close)
        state.equity_curve.append(EquityPoint(timestamp, equity))

        if equity > state.peak_equity:
            state.peak_equity = equity
        drawdown = (state.peak_equity - equity) / state.peak_equity
        if drawdown > state.max_drawdown:
            state.max_drawdown = drawdown

        return equity

    def open_position(self, timestamp: int, close: float, allocation_fraction: float) -> TradeEvent:
        """
        Open a long position with a fraction of the cash balance

        Args:
            timestamp: Bar timestamp
            close: Bar close before slippage
            allocation_fraction: Fraction of cash to commit

        Returns:
            The BUY trade event
        """
        state = self.state
        if state.position.is_open:
            raise RuntimeError("Position already open; only one long position is allowed")

        execution_price = self.buy_price(close)
        allocated = state.cash_balance * allocation_fraction
        quantity = allocated * (1 - self.fee_rate) / execution_price

        state.cash_balance = state.cash_balance * (1 - allocation_fraction)
        state.position = Position(
            quantity=quantity,
            entry_price=execution_price,
            highest_price_since_entry=execution_price,
        )

        event = TradeEvent(timestamp, OrderSide.BUY, execution_price, 0.0, quantity, 'entry')
        state.trade_log.append(event)
        logger.debug(f"BUY {quantity:.8f} @ {execution_price:.6f} (allocation {allocation_fraction:.4f})")
        return event

    def update_highest_price(self, execution_price: float):
        position = self.state.position
        if execution_price > position.highest_price_since_entry:
            position.highest_price_since_entry = execution_price

    def close_position(self, timestamp: int, close: float, reason: str,
                       record: bool = True) -> Optional[TradeEvent]:
        """
        Close the open position at the bar close

        Args:
            timestamp: Bar timestamp
            close: Bar close before slippage
            reason: Exit reason for the trade log
            record: When False (end-of-run liquidation) the fill only settles
                cash; it is neither logged nor counted as a trade

        Returns:
            The SELL trade event, or None when nothing was recorded
        """
        state = self.state
        position = state.position
        if not position.is_open:
            return None

        execution_price = self.sell_price(close)
        exit_value = position.quantity * execution_price * (1 - self.fee_rate)
        pnl = exit_value - position.quantity * position.entry_price
        quantity = position.quantity

        state.cash_balance += exit_value
        state.position = Position()

        if not record:
            logger.debug(f"Liquidated {quantity:.8f} @ {execution_price:.6f} at end of run")
            return None

        state.total_trades += 1
        if pnl > 0:
            state.wins += 1
            state.gross_profit += pnl
            state.consecutive_losses = 0
        else:
            state.gross_loss += abs(pnl)
            state.consecutive_losses += 1
            if state.consecutive_losses > state.max_consecutive_losses:
                state.max_consecutive_losses = state.consecutive_losses

        event = TradeEvent(timestamp, OrderSide.SELL, execution_price, pnl, quantity, reason)
        state.trade_log.append(event)
        logger.debug(f"SELL {quantity:.8f} @ {execution_price:.6f} ({reason}) pnl={pnl:.6f}")
        return event
