"""
Risk profile table

Static mapping from a named risk profile to position size, stop loss and
take profit fractions. Profile names arrive as strings only at the caller
boundary; everything past that works with RiskProfileName.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Union
import logging

logger = logging.getLogger(__name__)


class RiskProfileName(Enum):
    """Named risk profiles"""
    SAFE = "safe"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


@dataclass(frozen=True)
class RiskProfile:
    """Sizing and exit fractions for one profile"""
    position_size_fraction: float  # Fraction of cash committed per entry
    stop_loss_fraction: float      # Base stop distance from the anchor price
    take_profit_fraction: float    # Base target distance from the entry price


RISK_PROFILES: Dict[RiskProfileName, RiskProfile] = {
    RiskProfileName.SAFE: RiskProfile(0.03, 0.008, 0.025),
    RiskProfileName.BALANCED: RiskProfile(0.07, 0.015, 0.06),
    RiskProfileName.AGGRESSIVE: RiskProfile(0.15, 0.02, 0.12),
}

DEFAULT_PROFILE = RiskProfileName.SAFE


def resolve_profile_name(name: Union[str, RiskProfileName, None]) -> RiskProfileName:
    """
    Resolve a caller-supplied profile name

    Unknown or missing names fall back to the most conservative profile.
    """
    if isinstance(name, RiskProfileName):
        return name

    if name is not None:
        try:
            return RiskProfileName(str(name).strip().lower())
        except ValueError:
            pass

    logger.warning(f"Unknown risk profile {name!r}, falling back to '{DEFAULT_PROFILE.value}'")
    return DEFAULT_PROFILE


def lookup_risk_profile(name: Union[str, RiskProfileName, None]) -> RiskProfile:
    """Return the risk profile for a name"""
    return RISK_PROFILES[resolve_profile_name(name)]
