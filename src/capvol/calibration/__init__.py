"""
Calibration module - caplet volatilities from cap/floor quotes.

Provides:
- Calibration definitions (direct, SABR, bootstrap) and their serialization
- Objective construction from quote grids
- Penalty matrices and parameter limit transforms
- The calibrator and its result
"""

from .settings import CalibrationSettings
from .transforms import (
    LimitType,
    ParameterLimitsTransform,
    NullTransform,
    SingleRangeLimitTransform,
    DoubleRangeLimitTransform,
    default_sabr_transforms,
)
from .penalty import difference_matrix, penalty_matrix, penalty_matrix_2d, penalty_residual_matrix
from .definitions import (
    SABR_FAMILIES,
    sabr_constant_curve,
    IborCapletFloorletVolatilityDefinition,
    DirectIborCapletFloorletFlatVolatilityDefinition,
    DirectIborCapletFloorletVolatilityDefinition,
    SabrIborCapletFloorletVolatilityCalibrationDefinition,
    SabrIborCapletFloorletVolatilityBootstrapDefinition,
    SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
    definition_from_dict,
)
from .objective import CalibrationInstrument, ObjectiveBuilder, CalibrationObjective
from .result import CalibrationError, CalibrationResult
from .calibrator import IborCapletFloorletVolatilityCalibrator

__all__ = [
    "CalibrationSettings",
    "LimitType",
    "ParameterLimitsTransform",
    "NullTransform",
    "SingleRangeLimitTransform",
    "DoubleRangeLimitTransform",
    "default_sabr_transforms",
    "difference_matrix",
    "penalty_matrix",
    "penalty_matrix_2d",
    "penalty_residual_matrix",
    "SABR_FAMILIES",
    "sabr_constant_curve",
    "IborCapletFloorletVolatilityDefinition",
    "DirectIborCapletFloorletFlatVolatilityDefinition",
    "DirectIborCapletFloorletVolatilityDefinition",
    "SabrIborCapletFloorletVolatilityCalibrationDefinition",
    "SabrIborCapletFloorletVolatilityBootstrapDefinition",
    "SurfaceIborCapletFloorletVolatilityBootstrapDefinition",
    "definition_from_dict",
    "CalibrationInstrument",
    "ObjectiveBuilder",
    "CalibrationObjective",
    "CalibrationError",
    "CalibrationResult",
    "IborCapletFloorletVolatilityCalibrator",
]
