"""
Volatility module - caplet volatility models and quotes.

Provides:
- Raw cap/floor quote grids
- Grid surface interpolation
- Hagan SABR formula with parameter derivatives
- Caplet volatility models: expiry-strike surface, expiry curve, SABR
"""

from .quotes import RawOptionData, load_option_data
from .sabr import (
    ValueDerivatives,
    hagan_black_vol,
    hagan_black_vol_adjoint,
    SabrVolatilityFormula,
    SabrParameters,
)
from .surface import GridSurfaceInterpolator, BoundGridSurfaceInterpolator, InterpolatedNodalSurface
from .volatilities import (
    CapletFloorletVolatilities,
    ExpiryStrikeVolatilities,
    ExpiryFlatVolatilities,
    SabrParametersVolatilities,
    volatilities_from_dict,
)

__all__ = [
    "RawOptionData",
    "load_option_data",
    "ValueDerivatives",
    "hagan_black_vol",
    "hagan_black_vol_adjoint",
    "SabrVolatilityFormula",
    "SabrParameters",
    "GridSurfaceInterpolator",
    "BoundGridSurfaceInterpolator",
    "InterpolatedNodalSurface",
    "CapletFloorletVolatilities",
    "ExpiryStrikeVolatilities",
    "ExpiryFlatVolatilities",
    "SabrParametersVolatilities",
    "volatilities_from_dict",
]
