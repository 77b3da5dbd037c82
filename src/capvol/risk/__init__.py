"""
Risk: point and parameter sensitivities.

The finite-difference calculator lives in capvol.risk.bumping and is
imported from there directly.
"""

from .sensitivities import (
    CapletFloorletSensitivity,
    CapletFloorletSabrSensitivity,
    PointSensitivity,
    PointSensitivities,
    ParameterSensitivity,
    ParameterSensitivities,
)

__all__ = [
    "CapletFloorletSensitivity",
    "CapletFloorletSabrSensitivity",
    "PointSensitivity",
    "PointSensitivities",
    "ParameterSensitivity",
    "ParameterSensitivities",
]
