"""
Core data model - candles, strategy parameters, trade and equity events,
and the final backtest result record
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union
import math
import numbers

import pandas as pd

from ..exceptions import InvalidInputError
from ..risk.risk_profiles import RiskProfileName, resolve_profile_name


class OrderSide(Enum):
    """Order sides"""
    BUY = "buy"
    SELL = "sell"


class Candle(NamedTuple):
    """One OHLCV bar; timestamp is epoch milliseconds"""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


class TradeEvent(NamedTuple):
    """Individual fill record"""
    timestamp: int
    side: OrderSide
    execution_price: float
    realized_pnl: float  # 0.0 for buys
    quantity: float
    reason: str  # 'entry', 'stop_loss', 'take_profit', 'trend_reversal', 'rsi_overbought'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'time': self.timestamp,
            'side': self.side.value.upper(),
            'price': self.execution_price,
            'pnl': self.realized_pnl,
            'quantity': self.quantity,
            'reason': self.reason,
        }


class EquityPoint(NamedTuple):
    """Mark-to-market equity at the close of a bar"""
    timestamp: int
    equity: float


# Bot configuration keys accepted by StrategyParameters.from_bot_config
_BOT_CONFIG_KEYS = {
    'rsi_period': ('rsiPeriod', 'rsi_period'),
    'ema_fast_period': ('emaFast', 'emaFastPeriod', 'ema_fast', 'ema_fast_period'),
    'ema_slow_period': ('emaSlow', 'emaSlowPeriod', 'ema_slow', 'ema_slow_period'),
    'rsi_threshold': ('rsiThreshold', 'rsi_threshold'),
    'risk_profile': ('riskProfile', 'risk_profile', 'riskProfileName'),
    'trailing_stop_enabled': ('trailingStop', 'trailingStopEnabled', 'trailing_stop', 'trailing_stop_enabled'),
    'slippage_rate': ('slippage', 'slippageRate', 'slippage_rate'),
    'fee_rate': ('fee', 'feeRate', 'fee_rate'),
}

_PERIOD_FIELDS = ('rsi_period', 'ema_fast_period', 'ema_slow_period')
_RATE_FIELDS = ('slippage_rate', 'fee_rate')
_TRUE_STRINGS = ('true', '1', 'yes', 'on')
_FALSE_STRINGS = ('false', '0', 'no', 'off')


def _coerce_config_value(name: str, value: Any) -> Any:
    """Convert a stored string setting to the type the field expects"""
    if not isinstance(value, str):
        return value

    text = value.strip()
    try:
        if name in _PERIOD_FIELDS:
            return int(text)
        if name == 'rsi_threshold' or name in _RATE_FIELDS:
            return float(text)
    except ValueError:
        raise InvalidInputError(f"expected a number, got {value!r}", field=name) from None

    if name == 'trailing_stop_enabled':
        if text.lower() in _TRUE_STRINGS:
            return True
        if text.lower() in _FALSE_STRINGS:
            return False
        raise InvalidInputError(f"expected a boolean, got {value!r}", field=name)

    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


@dataclass(frozen=True)
class StrategyParameters:
    """
    Strategy configuration for one backtest run

    Created once from caller input and never mutated. A string risk profile is
    resolved to RiskProfileName on construction (unknown names become SAFE);
    the name as given is kept in requested_risk_profile.
    """
    rsi_period: int = 14
    ema_fast_period: int = 9
    ema_slow_period: int = 21
    rsi_threshold: float = 45.0
    risk_profile: Union[RiskProfileName, str] = RiskProfileName.SAFE
    trailing_stop_enabled: bool = False
    slippage_rate: float = 0.001
    fee_rate: float = 0.001
    requested_risk_profile: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        if self.requested_risk_profile is None and self.risk_profile is not None:
            raw = self.risk_profile
            requested = raw.value if isinstance(raw, RiskProfileName) else str(raw)
            object.__setattr__(self, 'requested_risk_profile', requested)
        object.__setattr__(self, 'risk_profile', resolve_profile_name(self.risk_profile))

        for name in _PERIOD_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 1:
                raise InvalidInputError(f"must be a positive integer, got {value!r}", field=name)

        if not _is_number(self.rsi_threshold) or not 0 <= self.rsi_threshold <= 100:
            raise InvalidInputError(f"must be a number within [0, 100], got {self.rsi_threshold!r}",
                                    field='rsi_threshold')

        for name in _RATE_FIELDS:
            value = getattr(self, name)
            if not (_is_number(value) and math.isfinite(value) and 0 <= value < 1):
                raise InvalidInputError(f"must be a number within [0, 1), got {value!r}", field=name)

        if not isinstance(self.trailing_stop_enabled, bool):
            raise InvalidInputError(f"must be a boolean, got {self.trailing_stop_enabled!r}",
                                    field='trailing_stop_enabled')

    @classmethod
    def from_bot_config(cls, config: Mapping[str, Any]) -> 'StrategyParameters':
        """
        Build parameters from stored bot configuration

        Missing or null values take the defaults; both camelCase and
        snake_case keys are accepted. Numeric and boolean settings stored as
        strings are converted.
        """
        kwargs: Dict[str, Any] = {}
        for name, aliases in _BOT_CONFIG_KEYS.items():
            for alias in aliases:
                if config.get(alias) is not None:
                    kwargs[name] = _coerce_config_value(name, config[alias])
                    break
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rsi_period': self.rsi_period,
            'ema_fast_period': self.ema_fast_period,
            'ema_slow_period': self.ema_slow_period,
            'rsi_threshold': self.rsi_threshold,
            'risk_profile': self.risk_profile.value,
            'requested_risk_profile': self.requested_risk_profile,
            'trailing_stop_enabled': self.trailing_stop_enabled,
            'slippage_rate': self.slippage_rate,
            'fee_rate': self.fee_rate,
        }


@dataclass(frozen=True)
class BacktestResult:
    """Terminal output of one backtest run"""
    symbol: str
    total_trades: int
    win_rate: float
    net_profit: float
    max_drawdown_percent: float
    sharpe_ratio: float
    profit_factor: float
    equity_curve: Tuple[EquityPoint, ...]
    trade_log: Tuple[TradeEvent, ...]
    parameters: StrategyParameters

    # Supplemental statistics
    initial_balance: float = 0.0
    final_equity: float = 0.0
    total_return_percent: float = 0.0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    max_consecutive_losses: int = 0
    bars_simulated: int = 0
    timeframe: Optional[str] = None
    lookback_bars: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe representation (no inf or NaN values)"""
        return {
            'symbol': self.symbol,
            'total_trades': self.total_trades,
            'win_rate': _finite(self.win_rate),
            'net_profit': _finite(self.net_profit),
            'max_drawdown_percent': _finite(self.max_drawdown_percent),
            'sharpe_ratio': _finite(self.sharpe_ratio),
            'profit_factor': _finite(self.profit_factor),
            'initial_balance': self.initial_balance,
            'final_equity': _finite(self.final_equity),
            'total_return_percent': _finite(self.total_return_percent),
            'gross_profit': _finite(self.gross_profit),
            'gross_loss': _finite(self.gross_loss),
            'max_consecutive_losses': self.max_consecutive_losses,
            'bars_simulated': self.bars_simulated,
            'timeframe': self.timeframe,
            'lookback_bars': self.lookback_bars,
            'equity_curve': [{'time': p.timestamp, 'value': p.equity} for p in self.equity_curve],
            'trade_log': [t.to_dict() for t in self.trade_log],
            'parameters': self.parameters.to_dict(),
        }


def _finite(value: float) -> float:
    return float(value) if math.isfinite(value) else 0.0


def candles_from_dataframe(data: pd.DataFrame) -> List[Candle]:
    """
    Convert an OHLCV DataFrame into candles

    Timestamps come from a DatetimeIndex, or from a 'timestamp' column holding
    datetimes or epoch milliseconds.
    """
    required_columns = ['open', 'high', 'low', 'close', 'volume']
    missing = [col for col in required_columns if col not in data.columns]
    if missing:
        raise InvalidInputError(f"Missing required columns: {missing}", field='candles')

    if 'timestamp' in data.columns:
        raw_times = data['timestamp']
    elif isinstance(data.index, pd.DatetimeIndex):
        raw_times = data.index.to_series()
    else:
        raise InvalidInputError("Need a DatetimeIndex or a 'timestamp' column", field='candles')

    if pd.api.types.is_datetime64_any_dtype(raw_times):
        times = pd.to_datetime(raw_times)
        if times.dt.tz is not None:
            times = times.dt.tz_convert('UTC').dt.tz_localize(None)
        timestamps = ((times - pd.Timestamp(0)) // pd.Timedelta(milliseconds=1)).astype('int64').tolist()
    else:
        timestamps = [int(t) for t in raw_times]

    return [
        Candle(ts, float(o), float(h), float(l), float(c), float(v))
        for ts, o, h, l, c, v in zip(
            timestamps,
            data['open'], data['high'], data['low'], data['close'], data['volume']
        )
    ]
