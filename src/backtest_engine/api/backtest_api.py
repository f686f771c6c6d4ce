"""
Backtesting API endpoints

Provides REST access to the engine. The candle series arrives in full with
the request; each run executes in the thread pool and the configured timeout
is applied here, at the invocation boundary, never inside the loop.
"""

from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Dict, List, Optional
import asyncio
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..config import get_settings
from ..core.backtest_executor import BacktestExecutor
from ..core.models import BacktestResult, Candle, StrategyParameters
from ..exceptions import DataInsufficientError, InvalidInputError
from ..risk.risk_profiles import RISK_PROFILES, RiskProfileName
from ..statistics.statistics_engine import StatisticsEngine

logger = logging.getLogger(__name__)

router = APIRouter()

# Thread pool for running backtests
executor = ThreadPoolExecutor(max_workers=get_settings().max_workers)

backtest_executor = BacktestExecutor()


class CandleData(BaseModel):
    """OHLCV bar; timestamp in epoch milliseconds"""
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float


class StrategyParametersModel(BaseModel):
    """Strategy parameters"""
    rsi_period: int = Field(default=14, ge=1)
    ema_fast_period: int = Field(default=9, ge=1)
    ema_slow_period: int = Field(default=21, ge=1)
    rsi_threshold: float = Field(default=45.0, ge=0, le=100)
    risk_profile: str = RiskProfileName.SAFE.value
    trailing_stop_enabled: bool = False
    slippage_rate: float = Field(default=0.001, ge=0.0, lt=1.0)
    fee_rate: float = Field(default=0.001, ge=0.0, lt=1.0)


class BacktestRequest(BaseModel):
    """Backtest request model"""
    symbol: str
    candles: List[CandleData]
    parameters: StrategyParametersModel = StrategyParametersModel()
    timeframe: Optional[str] = None
    lookback_bars: Optional[int] = Field(default=None, ge=1)


class BacktestResponse(BaseModel):
    """Backtest result model"""
    symbol: str
    total_trades: int
    win_rate: float
    net_profit: float
    max_drawdown_percent: float
    sharpe_ratio: float
    profit_factor: float
    initial_balance: float
    final_equity: float
    total_return_percent: float
    gross_profit: float
    gross_loss: float
    max_consecutive_losses: int
    bars_simulated: int
    timeframe: Optional[str]
    lookback_bars: Optional[int] = None
    equity_curve: List[Dict[str, Any]]
    trade_log: List[Dict[str, Any]]
    parameters: Dict[str, Any]
    statistics_report: str


def run_backtest_sync(request: BacktestRequest) -> Dict[str, Any]:
    """Run one backtest in a worker thread and build the response payload"""
    parameters = StrategyParameters(**request.parameters.model_dump())
    candles = [
        Candle(c.timestamp, c.open, c.high, c.low, c.close, c.volume)
        for c in request.candles
    ]

    result: BacktestResult = backtest_executor.run_backtest(
        symbol=request.symbol,
        candles=candles,
        parameters=parameters,
        timeframe=request.timeframe,
        lookback_bars=request.lookback_bars,
    )

    payload = result.to_dict()
    payload['statistics_report'] = StatisticsEngine(result.timeframe).generate_report(result)
    return payload


@router.post("/run", response_model=BacktestResponse)
async def run_backtest(request: BacktestRequest):
    """
    Run a backtest

    Replays the supplied candles with the given strategy parameters and
    returns the complete result.
    """
    timeout = get_settings().run_timeout_seconds
    loop = asyncio.get_running_loop()

    try:
        payload = await asyncio.wait_for(
            loop.run_in_executor(executor, partial(run_backtest_sync, request)),
            timeout=timeout
        )
    except DataInsufficientError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except asyncio.TimeoutError:
        logger.error(f"Backtest for {request.symbol} exceeded {timeout}s")
        raise HTTPException(status_code=504, detail=f"Backtest timed out after {timeout} seconds")

    return BacktestResponse(**payload)


@router.get("/risk-profiles")
async def list_risk_profiles():
    """List the available risk profiles"""
    return {
        'default': RiskProfileName.SAFE.value,
        'profiles': [
            {
                'name': name.value,
                'position_size_fraction': profile.position_size_fraction,
                'stop_loss_fraction': profile.stop_loss_fraction,
                'take_profit_fraction': profile.take_profit_fraction,
            }
            for name, profile in RISK_PROFILES.items()
        ]
    }
