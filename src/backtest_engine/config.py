"""
Configuration management for the backtest engine
"""

from functools import lru_cache
from typing import ClassVar, Dict

from pydantic import Field
from pydantic_settings import BaseSettings


class EngineSettings(BaseSettings):
    """Engine and service configuration settings"""

    # Simulation
    initial_balance: float = Field(default=1000.0, gt=0)
    warmup_offset: int = Field(default=50, ge=1)  # Bars skipped before the first decision
    divergence_history_size: int = Field(default=20, ge=10)
    equity_curve_max_points: int = Field(default=100, ge=2)
    default_timeframe: str = "1h"

    # Service
    log_level: str = "INFO"
    max_workers: int = Field(default=4, ge=1)
    run_timeout_seconds: float = Field(default=60.0, gt=0)

    # Candle timeframes in minutes (ClassVar since it's not configurable)
    TIMEFRAME_MINUTES: ClassVar[Dict[str, int]] = {
        '1m': 1,
        '5m': 5,
        '15m': 15,
        '30m': 30,
        '1h': 60,
        '4h': 240,
        '1d': 1440,
    }

    model_config = {"env_file": ".env", "env_prefix": "BACKTEST_", "case_sensitive": False}


@lru_cache()
def get_settings() -> EngineSettings:
    """Return the process-wide settings instance"""
    return EngineSettings()
