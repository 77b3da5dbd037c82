"""
Parameter curves: interpolated nodal curves and constant curves.

These curves carry volatility term structures and SABR parameter term
structures. They are immutable; bumping a node returns a new curve. The
value at any x is linear in the node values for every supported
interpolator except time-square, and the gradient with respect to the
nodes is available analytically.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple, Union

import numpy as np

from ..risk.sensitivities import ParameterSensitivity
from .interpolation import (
    BoundInterpolator,
    FLAT,
    LINEAR,
    extrapolator_name,
    interpolator_name,
)
from .metadata import CurveMetadata, ParameterMetadata


@dataclass(frozen=True)
class InterpolatedNodalCurve:
    """
    Curve defined by nodes and an interpolator.

    Attributes:
        metadata: Curve metadata; node labels are generated if absent
        x_values: Strictly increasing node coordinates
        y_values: Node values (the curve parameters)
        interpolator: Interpolator name
        extrapolator_left: Extrapolator below the first node
        extrapolator_right: Extrapolator above the last node
    """
    metadata: CurveMetadata
    x_values: Tuple[float, ...]
    y_values: Tuple[float, ...]
    interpolator: str = LINEAR
    extrapolator_left: str = FLAT
    extrapolator_right: str = FLAT
    _bound: BoundInterpolator = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        x = tuple(float(v) for v in self.x_values)
        y = tuple(float(v) for v in self.y_values)
        if len(x) != len(y) or len(x) == 0:
            raise ValueError(
                f"Curve '{self.metadata.name}' needs matching non-empty node arrays, "
                f"got {len(x)} x-values and {len(y)} y-values"
            )
        if any(b <= a for a, b in zip(x[:-1], x[1:])):
            raise ValueError(f"Curve '{self.metadata.name}' x-values must be strictly increasing")
        object.__setattr__(self, 'x_values', x)
        object.__setattr__(self, 'y_values', y)
        object.__setattr__(self, 'interpolator', interpolator_name(self.interpolator))
        object.__setattr__(self, 'extrapolator_left', extrapolator_name(self.extrapolator_left))
        object.__setattr__(self, 'extrapolator_right', extrapolator_name(self.extrapolator_right))

        metadata = self.metadata
        if len(metadata.parameter_metadata) == 0:
            metadata = metadata.with_parameter_metadata([ParameterMetadata.of_curve_node(v) for v in x])
        elif len(metadata.parameter_metadata) != len(x):
            raise ValueError(f"Curve '{metadata.name}' parameter metadata does not match its nodes")
        object.__setattr__(self, 'metadata', metadata)

        object.__setattr__(self, '_bound', BoundInterpolator(
            np.array(x), np.array(y), self.interpolator, self.extrapolator_left, self.extrapolator_right
        ))

    @classmethod
    def of(
        cls,
        metadata: CurveMetadata,
        x_values: Sequence[float],
        y_values: Sequence[float],
        interpolator: str = LINEAR,
        extrapolator_left: str = FLAT,
        extrapolator_right: str = FLAT
    ) -> "InterpolatedNodalCurve":
        return cls(metadata, tuple(x_values), tuple(y_values), interpolator, extrapolator_left, extrapolator_right)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def parameter_count(self) -> int:
        return len(self.y_values)

    def parameter(self, index: int) -> float:
        return self.y_values[index]

    def y_value(self, x: float) -> float:
        return self._bound.value(x)

    def first_derivative(self, x: float) -> float:
        return self._bound.first_derivative(x)

    def y_value_parameter_sensitivity(self, x: float) -> ParameterSensitivity:
        """Gradient of y_value(x) with respect to each node value."""
        return ParameterSensitivity(self.name, self.metadata.parameter_metadata, self._bound.parameter_sensitivity(x))

    def with_y_values(self, y_values: Sequence[float]) -> "InterpolatedNodalCurve":
        return InterpolatedNodalCurve(
            self.metadata, self.x_values, tuple(y_values),
            self.interpolator, self.extrapolator_left, self.extrapolator_right
        )

    def with_parameter(self, index: int, value: float) -> "InterpolatedNodalCurve":
        y = list(self.y_values)
        y[index] = value
        return self.with_y_values(y)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            'type': 'InterpolatedNodalCurve',
            'metadata': self.metadata.to_dict(),
            'x_values': list(self.x_values),
            'y_values': list(self.y_values),
            'interpolator': self.interpolator,
            'extrapolator_left': self.extrapolator_left,
            'extrapolator_right': self.extrapolator_right,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InterpolatedNodalCurve":
        """Deserialize from dictionary."""
        return cls(
            metadata=CurveMetadata.from_dict(data['metadata']),
            x_values=tuple(data['x_values']),
            y_values=tuple(data['y_values']),
            interpolator=data['interpolator'],
            extrapolator_left=data['extrapolator_left'],
            extrapolator_right=data['extrapolator_right'],
        )


@dataclass(frozen=True)
class ConstantCurve:
    """Curve with one parameter and the same value everywhere."""
    metadata: CurveMetadata
    value: float

    def __post_init__(self):
        object.__setattr__(self, 'value', float(self.value))
        metadata = self.metadata
        if len(metadata.parameter_metadata) == 0:
            metadata = metadata.with_parameter_metadata([ParameterMetadata(label="Constant", x=0.0)])
        elif len(metadata.parameter_metadata) != 1:
            raise ValueError(f"Constant curve '{metadata.name}' has exactly one parameter")
        object.__setattr__(self, 'metadata', metadata)

    @classmethod
    def of(cls, metadata: Union[CurveMetadata, str], value: float) -> "ConstantCurve":
        if isinstance(metadata, str):
            metadata = CurveMetadata(metadata)
        return cls(metadata, value)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def parameter_count(self) -> int:
        return 1

    def parameter(self, index: int) -> float:
        if index != 0:
            raise IndexError(f"Constant curve has one parameter, index {index} requested")
        return self.value

    def y_value(self, x: float) -> float:
        return self.value

    def first_derivative(self, x: float) -> float:
        return 0.0

    def y_value_parameter_sensitivity(self, x: float) -> ParameterSensitivity:
        return ParameterSensitivity(self.name, self.metadata.parameter_metadata, np.ones(1))

    def with_parameter(self, index: int, value: float) -> "ConstantCurve":
        self.parameter(index)
        return ConstantCurve(self.metadata, value)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': 'ConstantCurve', 'metadata': self.metadata.to_dict(), 'value': self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConstantCurve":
        return cls(CurveMetadata.from_dict(data['metadata']), data['value'])


ParameterCurve = Union[InterpolatedNodalCurve, ConstantCurve]


def curve_from_dict(data: Dict[str, Any]) -> ParameterCurve:
    """Rebuild a curve serialized with to_dict."""
    curve_type = data.get('type')
    if curve_type == 'InterpolatedNodalCurve':
        return InterpolatedNodalCurve.from_dict(data)
    if curve_type == 'ConstantCurve':
        return ConstantCurve.from_dict(data)
    raise ValueError(f"Unknown curve type: {curve_type}")


__all__ = [
    "InterpolatedNodalCurve",
    "ConstantCurve",
    "ParameterCurve",
    "curve_from_dict",
]
