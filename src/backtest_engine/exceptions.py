"""
Engine error types

A backtest either completes or raises one of these and aborts entirely.
Indicator warm-up gaps are not errors; they degrade to neutral values inside
the indicator library.
"""


class BacktestError(Exception):
    """Base class for all backtest engine errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class DataInsufficientError(BacktestError):
    """Raised when the candle series is too short for the requested run"""

    def __init__(self, required: int, available: int, symbol: str = ""):
        self.required = required
        self.available = available
        self.symbol = symbol
        super().__init__(
            f"Insufficient candle data{f' for {symbol}' if symbol else ''}: "
            f"need at least {required} bars, got {available}"
        )


class InvalidInputError(BacktestError):
    """Raised for malformed candles or strategy parameters"""

    def __init__(self, message: str, field: str = ""):
        self.field = field
        super().__init__(message)

    def __str__(self) -> str:
        if self.field:
            return f"Invalid input ({self.field}): {self.message}"
        return f"Invalid input: {self.message}"
