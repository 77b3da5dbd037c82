"""
capvol: Caplet/Floorlet Volatility Calibration Library

A modular library for:
- Pricing caps and floors under Black, shifted Black and Normal caplet volatilities
- Calibrating caplet volatility surfaces, curves and SABR term structures to cap quotes
- Computing parameter sensitivities of cap prices to the calibrated models

Scope: Ibor caps and floors; rates curves are supplied, not built.
"""

__version__ = "0.1.0"

# Core modules
from .conventions import DayCount, BusinessDayConvention, year_fraction, relative_year_fraction
from .dates import DateUtils
from .index import IborIndex, USD_LIBOR_3M, USD_LIBOR_6M, EUR_EURIBOR_3M, EUR_EURIBOR_6M, GBP_LIBOR_3M

# Curves
from .curves import (
    ValueType,
    SabrParameterType,
    CurveMetadata,
    SurfaceMetadata,
    InterpolatedNodalCurve,
    ConstantCurve,
    Curve,
    create_flat_curve,
)

# Risk
from .risk import (
    PointSensitivities,
    ParameterSensitivity,
    ParameterSensitivities,
)

# Options
from .options import CapFloor, create_cap_floor, CapletPricer, CapPricer

# Volatility
from .vol import (
    RawOptionData,
    load_option_data,
    GridSurfaceInterpolator,
    InterpolatedNodalSurface,
    SabrParameters,
    CapletFloorletVolatilities,
    ExpiryStrikeVolatilities,
    ExpiryFlatVolatilities,
    SabrParametersVolatilities,
)

# Market state
from .market_state import RatesProvider

# Calibration
from .calibration import (
    CalibrationSettings,
    DirectIborCapletFloorletFlatVolatilityDefinition,
    DirectIborCapletFloorletVolatilityDefinition,
    SabrIborCapletFloorletVolatilityCalibrationDefinition,
    SabrIborCapletFloorletVolatilityBootstrapDefinition,
    SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
    IborCapletFloorletVolatilityCalibrator,
    CalibrationResult,
    CalibrationError,
)

# Finite differences
from .risk.bumping import FiniteDifferenceCalculator

__all__ = [
    "DayCount",
    "BusinessDayConvention",
    "year_fraction",
    "relative_year_fraction",
    "DateUtils",
    "IborIndex",
    "USD_LIBOR_3M",
    "USD_LIBOR_6M",
    "EUR_EURIBOR_3M",
    "EUR_EURIBOR_6M",
    "GBP_LIBOR_3M",
    "ValueType",
    "SabrParameterType",
    "CurveMetadata",
    "SurfaceMetadata",
    "InterpolatedNodalCurve",
    "ConstantCurve",
    "Curve",
    "create_flat_curve",
    "PointSensitivities",
    "ParameterSensitivity",
    "ParameterSensitivities",
    "CapFloor",
    "create_cap_floor",
    "CapletPricer",
    "CapPricer",
    "RawOptionData",
    "load_option_data",
    "GridSurfaceInterpolator",
    "InterpolatedNodalSurface",
    "SabrParameters",
    "CapletFloorletVolatilities",
    "ExpiryStrikeVolatilities",
    "ExpiryFlatVolatilities",
    "SabrParametersVolatilities",
    "RatesProvider",
    "CalibrationSettings",
    "DirectIborCapletFloorletFlatVolatilityDefinition",
    "DirectIborCapletFloorletVolatilityDefinition",
    "SabrIborCapletFloorletVolatilityCalibrationDefinition",
    "SabrIborCapletFloorletVolatilityBootstrapDefinition",
    "SurfaceIborCapletFloorletVolatilityBootstrapDefinition",
    "IborCapletFloorletVolatilityCalibrator",
    "CalibrationResult",
    "CalibrationError",
    "FiniteDifferenceCalculator",
]
