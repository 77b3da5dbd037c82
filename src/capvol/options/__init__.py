"""
Options module - caplet/floorlet pricing.

Provides:
- Bachelier (normal) and Black-76 / shifted Black pricing and greeks
- Cap and floor construction from an Ibor index
- Caplet and cap pricers with volatility and SABR parameter sensitivities
"""

from .base_models import (
    bachelier_price,
    black76_price,
    shifted_black_price,
    bachelier_greeks,
    black76_greeks,
    shifted_black_greeks,
    implied_vol_bachelier,
    implied_vol_black,
)
from .caplet import CapletFloorletPeriod, CapFloor, create_cap_floor, CapletPricer, CapPricer

__all__ = [
    "bachelier_price",
    "black76_price",
    "shifted_black_price",
    "bachelier_greeks",
    "black76_greeks",
    "shifted_black_greeks",
    "implied_vol_bachelier",
    "implied_vol_black",
    "CapletFloorletPeriod",
    "CapFloor",
    "create_cap_floor",
    "CapletPricer",
    "CapPricer",
]
