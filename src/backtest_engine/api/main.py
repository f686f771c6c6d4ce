"""
Main FastAPI application for the backtesting engine

Exposes the engine to the host dashboard: it posts a fetched candle series
with bot parameters and receives the complete backtest result.
"""

from contextlib import asynccontextmanager
import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import get_settings
from .backtest_api import router as backtest_router
from .health_api import router as health_router

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Backtesting Engine API starting up...")
    yield
    logger.info("Backtesting Engine API shutting down...")


app = FastAPI(
    title="Backtesting Engine API",
    description="Scored strategy backtests over caller-supplied OHLCV series.",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, prefix="/health", tags=["Health"])
app.include_router(backtest_router, prefix="/backtest", tags=["Backtesting"])


@app.get("/", tags=["Root"])
async def root():
    """Welcome endpoint"""
    return {
        "message": "Backtesting Engine API",
        "version": __version__,
        "status": "active",
    }


def main():
    """Start the API server"""
    uvicorn.run(
        "backtest_engine.api.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
