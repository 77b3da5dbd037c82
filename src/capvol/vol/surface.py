"""
Interpolated volatility surfaces on an (expiry, strike) node set.

Nodes are sorted by expiry, then by strike within an expiry. The grid
interpolator first interpolates in strike along each distinct expiry and
then interpolates those values in expiry. The node order is the parameter
order used for sensitivities.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from ..curves.interpolation import (
    BoundInterpolator,
    FLAT,
    LINEAR,
    extrapolator_name,
    interpolator_name,
)
from ..curves.metadata import ParameterMetadata, SurfaceMetadata
from ..risk.sensitivities import ParameterSensitivity


@dataclass(frozen=True)
class GridSurfaceInterpolator:
    """
    Interpolation scheme for nodes on an irregular grid.

    Attributes:
        x_interpolator: Interpolator across expiries
        y_interpolator: Interpolator across strikes
        x_extrapolator_left, x_extrapolator_right: Expiry extrapolators
        y_extrapolator_left, y_extrapolator_right: Strike extrapolators
    """
    x_interpolator: str = LINEAR
    y_interpolator: str = LINEAR
    x_extrapolator_left: str = FLAT
    x_extrapolator_right: str = FLAT
    y_extrapolator_left: str = FLAT
    y_extrapolator_right: str = FLAT

    def __post_init__(self):
        object.__setattr__(self, 'x_interpolator', interpolator_name(self.x_interpolator))
        object.__setattr__(self, 'y_interpolator', interpolator_name(self.y_interpolator))
        for attr in ('x_extrapolator_left', 'x_extrapolator_right', 'y_extrapolator_left', 'y_extrapolator_right'):
            object.__setattr__(self, attr, extrapolator_name(getattr(self, attr)))

    @classmethod
    def of(
        cls,
        x_interpolator: str,
        y_interpolator: str,
        x_extrapolator: str = FLAT,
        y_extrapolator: str = FLAT
    ) -> "GridSurfaceInterpolator":
        """Same extrapolator on both sides of each axis."""
        return cls(x_interpolator, y_interpolator, x_extrapolator, x_extrapolator, y_extrapolator, y_extrapolator)

    def bind(self, x: np.ndarray, y: np.ndarray, z: np.ndarray) -> "BoundGridSurfaceInterpolator":
        return BoundGridSurfaceInterpolator(self, x, y, z)

    def to_dict(self) -> Dict[str, str]:
        return {
            'x_interpolator': self.x_interpolator,
            'y_interpolator': self.y_interpolator,
            'x_extrapolator_left': self.x_extrapolator_left,
            'x_extrapolator_right': self.x_extrapolator_right,
            'y_extrapolator_left': self.y_extrapolator_left,
            'y_extrapolator_right': self.y_extrapolator_right,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "GridSurfaceInterpolator":
        return cls(**data)


class BoundGridSurfaceInterpolator:
    """Grid interpolator fitted to a node set."""

    def __init__(self, scheme: GridSurfaceInterpolator, x: np.ndarray, y: np.ndarray, z: np.ndarray):
        self.scheme = scheme
        self.size = len(z)
        self.x_unique = np.unique(x)
        self._groups: List[np.ndarray] = []
        self._y_curves: List[BoundInterpolator] = []
        for xv in self.x_unique:
            idx = np.nonzero(x == xv)[0]
            self._groups.append(idx)
            self._y_curves.append(BoundInterpolator(
                y[idx], z[idx], scheme.y_interpolator,
                scheme.y_extrapolator_left, scheme.y_extrapolator_right
            ))

    def _x_curve(self, y: float) -> BoundInterpolator:
        values = np.array([curve.value(y) for curve in self._y_curves])
        return BoundInterpolator(
            self.x_unique, values, self.scheme.x_interpolator,
            self.scheme.x_extrapolator_left, self.scheme.x_extrapolator_right
        )

    def interpolate(self, x: float, y: float) -> float:
        return self._x_curve(y).value(x)

    def parameter_sensitivity(self, x: float, y: float) -> np.ndarray:
        """Gradient of interpolate(x, y) with respect to every node value."""
        x_sens = self._x_curve(y).parameter_sensitivity(x)
        sens = np.zeros(self.size)
        for weight, idx, curve in zip(x_sens, self._groups, self._y_curves):
            if weight != 0.0:
                sens[idx] += weight * curve.parameter_sensitivity(y)
        return sens


@dataclass(frozen=True)
class InterpolatedNodalSurface:
    """
    Surface defined by (x, y, z) nodes and a grid interpolator.

    Attributes:
        metadata: Surface metadata; node labels are generated if absent
        x_values: Expiry coordinates of the nodes
        y_values: Strike coordinates of the nodes
        z_values: Volatilities at the nodes (the surface parameters)
        interpolator: Grid interpolation scheme
    """
    metadata: SurfaceMetadata
    x_values: Tuple[float, ...]
    y_values: Tuple[float, ...]
    z_values: Tuple[float, ...]
    interpolator: GridSurfaceInterpolator = GridSurfaceInterpolator()
    _bound: BoundGridSurfaceInterpolator = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        x = tuple(float(v) for v in self.x_values)
        y = tuple(float(v) for v in self.y_values)
        z = tuple(float(v) for v in self.z_values)
        if not (len(x) == len(y) == len(z)) or len(x) == 0:
            raise ValueError(f"Surface '{self.metadata.name}' needs matching non-empty node arrays")
        for i in range(len(x) - 1):
            if (x[i], y[i]) >= (x[i + 1], y[i + 1]):
                raise ValueError(
                    f"Surface '{self.metadata.name}' nodes must be sorted by x then y without duplicates"
                )
        object.__setattr__(self, 'x_values', x)
        object.__setattr__(self, 'y_values', y)
        object.__setattr__(self, 'z_values', z)

        metadata = self.metadata
        if len(metadata.parameter_metadata) == 0:
            metadata = metadata.with_parameter_metadata(
                [ParameterMetadata.of_surface_node(a, b) for a, b in zip(x, y)]
            )
        elif len(metadata.parameter_metadata) != len(x):
            raise ValueError(f"Surface '{metadata.name}' parameter metadata does not match its nodes")
        object.__setattr__(self, 'metadata', metadata)
        object.__setattr__(self, '_bound', self.interpolator.bind(np.array(x), np.array(y), np.array(z)))

    @classmethod
    def of(
        cls,
        metadata: SurfaceMetadata,
        x_values: Sequence[float],
        y_values: Sequence[float],
        z_values: Sequence[float],
        interpolator: GridSurfaceInterpolator = GridSurfaceInterpolator()
    ) -> "InterpolatedNodalSurface":
        return cls(metadata, tuple(x_values), tuple(y_values), tuple(z_values), interpolator)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def parameter_count(self) -> int:
        return len(self.z_values)

    def parameter(self, index: int) -> float:
        return self.z_values[index]

    def z_value(self, x: float, y: float) -> float:
        return self._bound.interpolate(x, y)

    def z_value_parameter_sensitivity(self, x: float, y: float) -> ParameterSensitivity:
        """Gradient of z_value(x, y) with respect to each node value."""
        return ParameterSensitivity(self.name, self.metadata.parameter_metadata, self._bound.parameter_sensitivity(x, y))

    def with_z_values(self, z_values: Sequence[float]) -> "InterpolatedNodalSurface":
        return InterpolatedNodalSurface(self.metadata, self.x_values, self.y_values, tuple(z_values), self.interpolator)

    def with_parameter(self, index: int, value: float) -> "InterpolatedNodalSurface":
        z = list(self.z_values)
        z[index] = value
        return self.with_z_values(z)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            'type': 'InterpolatedNodalSurface',
            'metadata': self.metadata.to_dict(),
            'x_values': list(self.x_values),
            'y_values': list(self.y_values),
            'z_values': list(self.z_values),
            'interpolator': self.interpolator.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InterpolatedNodalSurface":
        """Deserialize from dictionary."""
        return cls(
            metadata=SurfaceMetadata.from_dict(data['metadata']),
            x_values=tuple(data['x_values']),
            y_values=tuple(data['y_values']),
            z_values=tuple(data['z_values']),
            interpolator=GridSurfaceInterpolator.from_dict(data['interpolator']),
        )


__all__ = [
    "GridSurfaceInterpolator",
    "BoundGridSurfaceInterpolator",
    "InterpolatedNodalSurface",
]
