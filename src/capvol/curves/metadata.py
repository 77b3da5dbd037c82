"""
Metadata for parameter curves and volatility surfaces.

Metadata names a curve or surface, states what its coordinates and values
represent, and labels each node. The node labels travel with parameter
sensitivities so that risk can be reported against named points.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from ..conventions import DayCount


class ValueType(Enum):
    """What a coordinate or value of a curve, surface or quote grid represents."""
    YEAR_FRACTION = "YearFraction"
    STRIKE = "Strike"
    BLACK_VOLATILITY = "BlackVolatility"
    NORMAL_VOLATILITY = "NormalVolatility"
    PRICE = "Price"
    SABR_ALPHA = "SabrAlpha"
    SABR_BETA = "SabrBeta"
    SABR_RHO = "SabrRho"
    SABR_NU = "SabrNu"
    SABR_SHIFT = "SabrShift"
    UNKNOWN = "Unknown"


class SabrParameterType(Enum):
    """SABR parameter families, in the order used for parameter vectors."""
    ALPHA = "Alpha"
    BETA = "Beta"
    RHO = "Rho"
    NU = "Nu"
    SHIFT = "Shift"

    @property
    def value_type(self) -> ValueType:
        return {
            SabrParameterType.ALPHA: ValueType.SABR_ALPHA,
            SabrParameterType.BETA: ValueType.SABR_BETA,
            SabrParameterType.RHO: ValueType.SABR_RHO,
            SabrParameterType.NU: ValueType.SABR_NU,
            SabrParameterType.SHIFT: ValueType.SABR_SHIFT,
        }[self]


@dataclass(frozen=True)
class ParameterMetadata:
    """
    Label and coordinates of one curve or surface node.

    Attributes:
        label: Human readable node label, e.g. "1.0000" or "1.0000, 0.0200"
        x: First coordinate (expiry year fraction)
        y: Second coordinate for surface nodes (strike), None for curves
    """
    label: str
    x: float
    y: Optional[float] = None

    @classmethod
    def of_curve_node(cls, x: float) -> "ParameterMetadata":
        return cls(label=f"{x:.4f}", x=float(x))

    @classmethod
    def of_surface_node(cls, x: float, y: float) -> "ParameterMetadata":
        return cls(label=f"{x:.4f}, {y:.4f}", x=float(x), y=float(y))

    def to_dict(self) -> Dict:
        return {'label': self.label, 'x': self.x, 'y': self.y}

    @classmethod
    def from_dict(cls, data: Dict) -> "ParameterMetadata":
        y = data.get('y')
        return cls(label=data['label'], x=float(data['x']), y=None if y is None else float(y))


def _day_count_to_dict(day_count: Optional[DayCount]) -> Optional[str]:
    return None if day_count is None else day_count.value


def _day_count_from_dict(value: Optional[str]) -> Optional[DayCount]:
    return None if value is None else DayCount.from_string(value)


@dataclass(frozen=True)
class CurveMetadata:
    """
    Metadata of a one-dimensional parameter curve.

    Attributes:
        name: Curve name, unique within a volatility model
        x_value_type: Meaning of x (usually YEAR_FRACTION)
        y_value_type: Meaning of the curve values
        day_count: Day count used to measure x, if x is a time
        parameter_metadata: One entry per node; empty until nodes are known
    """
    name: str
    x_value_type: ValueType = ValueType.YEAR_FRACTION
    y_value_type: ValueType = ValueType.UNKNOWN
    day_count: Optional[DayCount] = None
    parameter_metadata: Tuple[ParameterMetadata, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'parameter_metadata', tuple(self.parameter_metadata))

    @classmethod
    def black_volatility_by_expiry(cls, name: str, day_count: DayCount) -> "CurveMetadata":
        return cls(name, ValueType.YEAR_FRACTION, ValueType.BLACK_VOLATILITY, day_count)

    @classmethod
    def normal_volatility_by_expiry(cls, name: str, day_count: DayCount) -> "CurveMetadata":
        return cls(name, ValueType.YEAR_FRACTION, ValueType.NORMAL_VOLATILITY, day_count)

    @classmethod
    def sabr_parameter_by_expiry(
        cls,
        name: str,
        day_count: DayCount,
        parameter_type: SabrParameterType
    ) -> "CurveMetadata":
        return cls(name, ValueType.YEAR_FRACTION, parameter_type.value_type, day_count)

    def with_parameter_metadata(self, parameter_metadata: Sequence[ParameterMetadata]) -> "CurveMetadata":
        return CurveMetadata(
            self.name, self.x_value_type, self.y_value_type, self.day_count, tuple(parameter_metadata)
        )

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'x_value_type': self.x_value_type.value,
            'y_value_type': self.y_value_type.value,
            'day_count': _day_count_to_dict(self.day_count),
            'parameter_metadata': [p.to_dict() for p in self.parameter_metadata],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "CurveMetadata":
        return cls(
            name=data['name'],
            x_value_type=ValueType(data['x_value_type']),
            y_value_type=ValueType(data['y_value_type']),
            day_count=_day_count_from_dict(data.get('day_count')),
            parameter_metadata=tuple(ParameterMetadata.from_dict(p) for p in data.get('parameter_metadata', [])),
        )


@dataclass(frozen=True)
class SurfaceMetadata:
    """
    Metadata of a two-dimensional volatility surface.

    Attributes:
        name: Surface name
        x_value_type: Meaning of x (YEAR_FRACTION)
        y_value_type: Meaning of y (STRIKE)
        z_value_type: BLACK_VOLATILITY or NORMAL_VOLATILITY
        day_count: Day count used to measure expiry
        parameter_metadata: One entry per node; empty until nodes are known
    """
    name: str
    x_value_type: ValueType = ValueType.YEAR_FRACTION
    y_value_type: ValueType = ValueType.STRIKE
    z_value_type: ValueType = ValueType.UNKNOWN
    day_count: Optional[DayCount] = None
    parameter_metadata: Tuple[ParameterMetadata, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'parameter_metadata', tuple(self.parameter_metadata))

    @classmethod
    def black_volatility_by_expiry_strike(cls, name: str, day_count: DayCount) -> "SurfaceMetadata":
        return cls(name, ValueType.YEAR_FRACTION, ValueType.STRIKE, ValueType.BLACK_VOLATILITY, day_count)

    @classmethod
    def normal_volatility_by_expiry_strike(cls, name: str, day_count: DayCount) -> "SurfaceMetadata":
        return cls(name, ValueType.YEAR_FRACTION, ValueType.STRIKE, ValueType.NORMAL_VOLATILITY, day_count)

    def with_parameter_metadata(self, parameter_metadata: Sequence[ParameterMetadata]) -> "SurfaceMetadata":
        return SurfaceMetadata(
            self.name, self.x_value_type, self.y_value_type, self.z_value_type,
            self.day_count, tuple(parameter_metadata)
        )

    def to_dict(self) -> Dict:
        return {
            'name': self.name,
            'x_value_type': self.x_value_type.value,
            'y_value_type': self.y_value_type.value,
            'z_value_type': self.z_value_type.value,
            'day_count': _day_count_to_dict(self.day_count),
            'parameter_metadata': [p.to_dict() for p in self.parameter_metadata],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "SurfaceMetadata":
        return cls(
            name=data['name'],
            x_value_type=ValueType(data['x_value_type']),
            y_value_type=ValueType(data['y_value_type']),
            z_value_type=ValueType(data['z_value_type']),
            day_count=_day_count_from_dict(data.get('day_count')),
            parameter_metadata=tuple(ParameterMetadata.from_dict(p) for p in data.get('parameter_metadata', [])),
        )


__all__ = [
    "ValueType",
    "SabrParameterType",
    "ParameterMetadata",
    "CurveMetadata",
    "SurfaceMetadata",
]
