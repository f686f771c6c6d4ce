"""
Health check API endpoints

Provides service status, version information and basic process health.
"""

from datetime import datetime
from typing import Any, Dict
import sys
import time

import psutil
from fastapi import APIRouter
from pydantic import BaseModel

from .. import __version__
from ..config import get_settings
from ..risk.risk_profiles import RiskProfileName

router = APIRouter()

# Track startup time
startup_time = time.time()


class HealthResponse(BaseModel):
    """Health check response model"""
    status: str
    timestamp: datetime
    uptime_seconds: float
    version: str
    system_info: Dict[str, Any]
    engine_status: Dict[str, Any]


@router.get("/", response_model=HealthResponse)
async def health_check():
    """Service health and engine configuration"""
    settings = get_settings()
    memory = psutil.virtual_memory()

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(),
        uptime_seconds=time.time() - startup_time,
        version=__version__,
        system_info={
            "memory_percent": memory.percent,
            "memory_available_gb": memory.available / (1024 ** 3),
            "python_version": sys.version.split()[0],
            "platform": sys.platform,
        },
        engine_status={
            "initial_balance": settings.initial_balance,
            "warmup_offset": settings.warmup_offset,
            "default_timeframe": settings.default_timeframe,
            "risk_profiles": [name.value for name in RiskProfileName],
        },
    )
