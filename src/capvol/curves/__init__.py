"""
Curve construction: discount curves, parameter curves and interpolation.
"""

from .metadata import (
    ValueType,
    SabrParameterType,
    ParameterMetadata,
    CurveMetadata,
    SurfaceMetadata,
)
from .interpolation import (
    LINEAR,
    TIME_SQUARE,
    NATURAL_CUBIC_SPLINE,
    STEP_UPPER,
    FLAT,
    INTERPOLATOR,
    LOCAL_INTERPOLATORS,
    Interpolator,
    LinearInterpolator,
    TimeSquareInterpolator,
    NaturalCubicSplineInterpolator,
    StepUpperInterpolator,
    BoundInterpolator,
    create_interpolator,
    interpolator_name,
    extrapolator_name,
)
from .nodal import InterpolatedNodalCurve, ConstantCurve, ParameterCurve, curve_from_dict
from .curve import Curve, CurveNode, create_flat_curve, create_curve_from_zero_rates

__all__ = [
    "ValueType",
    "SabrParameterType",
    "ParameterMetadata",
    "CurveMetadata",
    "SurfaceMetadata",
    "LINEAR",
    "TIME_SQUARE",
    "NATURAL_CUBIC_SPLINE",
    "STEP_UPPER",
    "FLAT",
    "INTERPOLATOR",
    "LOCAL_INTERPOLATORS",
    "Interpolator",
    "LinearInterpolator",
    "TimeSquareInterpolator",
    "NaturalCubicSplineInterpolator",
    "StepUpperInterpolator",
    "BoundInterpolator",
    "create_interpolator",
    "interpolator_name",
    "extrapolator_name",
    "InterpolatedNodalCurve",
    "ConstantCurve",
    "ParameterCurve",
    "curve_from_dict",
    "Curve",
    "CurveNode",
    "create_flat_curve",
    "create_curve_from_zero_rates",
]
