"""
Risk Management Components

- Risk profile table (safe / balanced / aggressive)
- RiskManager: volatility sizing, progressive stops and dynamic targets
"""

from .risk_profiles import (
    RiskProfile,
    RiskProfileName,
    RISK_PROFILES,
    lookup_risk_profile,
    resolve_profile_name
)

from .risk_manager import RiskManager, ExitLevels

__all__ = [
    'RiskProfile',
    'RiskProfileName',
    'RISK_PROFILES',
    'lookup_risk_profile',
    'resolve_profile_name',
    'RiskManager',
    'ExitLevels'
]
