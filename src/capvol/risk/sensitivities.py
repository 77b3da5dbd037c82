"""
Sensitivity value types.

Two levels of sensitivity are used:
- Point sensitivities: derivative of a price with respect to one
  volatility (or SABR parameter) at one expiry, as produced by pricers.
- Parameter sensitivities: derivative with respect to the node values
  of a named curve or surface, as produced by a volatility model from
  point sensitivities (chain rule through the interpolation weights).

Both are linear: combining inputs and then converting gives the same result
as converting each input and then combining.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..curves.metadata import ParameterMetadata, SabrParameterType


@dataclass(frozen=True)
class CapletFloorletSensitivity:
    """
    Sensitivity of a price to the volatility at one (expiry, strike).

    Attributes:
        volatilities_name: Name of the volatility model the point refers to
        expiry: Expiry year fraction under the model day count
        strike: Strike of the caplet
        forward: Forward rate of the caplet
        sensitivity: Price change per unit of volatility
    """
    volatilities_name: str
    expiry: float
    strike: float
    forward: float
    sensitivity: float

    def with_sensitivity(self, sensitivity: float) -> "CapletFloorletSensitivity":
        return replace(self, sensitivity=sensitivity)

    def multiplied_by(self, factor: float) -> "CapletFloorletSensitivity":
        return replace(self, sensitivity=self.sensitivity * factor)


@dataclass(frozen=True)
class CapletFloorletSabrSensitivity:
    """
    Sensitivity of a price to one SABR parameter at one expiry.

    Attributes:
        volatilities_name: Name of the SABR volatility model
        expiry: Expiry year fraction under the model day count
        sensitivity_type: Which SABR parameter
        sensitivity: Price change per unit of the parameter
    """
    volatilities_name: str
    expiry: float
    sensitivity_type: SabrParameterType
    sensitivity: float

    def with_sensitivity(self, sensitivity: float) -> "CapletFloorletSabrSensitivity":
        return replace(self, sensitivity=sensitivity)

    def multiplied_by(self, factor: float) -> "CapletFloorletSabrSensitivity":
        return replace(self, sensitivity=self.sensitivity * factor)


PointSensitivity = Union[CapletFloorletSensitivity, CapletFloorletSabrSensitivity]


@dataclass(frozen=True)
class PointSensitivities:
    """Ordered collection of point sensitivities."""
    sensitivities: Tuple[PointSensitivity, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'sensitivities', tuple(self.sensitivities))

    @classmethod
    def of(cls, *points: PointSensitivity) -> "PointSensitivities":
        return cls(tuple(points))

    @classmethod
    def empty(cls) -> "PointSensitivities":
        return cls(())

    def combined_with(self, other: "PointSensitivities") -> "PointSensitivities":
        return PointSensitivities(self.sensitivities + other.sensitivities)

    def multiplied_by(self, factor: float) -> "PointSensitivities":
        return PointSensitivities(tuple(p.multiplied_by(factor) for p in self.sensitivities))

    @property
    def size(self) -> int:
        return len(self.sensitivities)

    def __len__(self) -> int:
        return len(self.sensitivities)

    def __iter__(self) -> Iterator[PointSensitivity]:
        return iter(self.sensitivities)


class ParameterSensitivity:
    """
    Sensitivity to each node of one named curve or surface.

    Attributes:
        market_data_name: Name of the curve or surface
        parameter_metadata: Node labels, one per entry of sensitivity
        sensitivity: Array of sensitivities, in node order
    """

    def __init__(
        self,
        market_data_name: str,
        parameter_metadata: Sequence[ParameterMetadata],
        sensitivity: np.ndarray
    ):
        self.market_data_name = market_data_name
        self.parameter_metadata = tuple(parameter_metadata)
        self.sensitivity = np.asarray(sensitivity, dtype=np.float64)
        if self.sensitivity.ndim != 1 or len(self.sensitivity) != len(self.parameter_metadata):
            raise ValueError(
                f"Sensitivity of '{market_data_name}' has {self.sensitivity.size} values "
                f"for {len(self.parameter_metadata)} parameters"
            )

    @property
    def parameter_count(self) -> int:
        return len(self.sensitivity)

    def multiplied_by(self, factor: float) -> "ParameterSensitivity":
        return ParameterSensitivity(self.market_data_name, self.parameter_metadata, self.sensitivity * factor)

    def plus(self, other: "ParameterSensitivity") -> "ParameterSensitivity":
        """Element-wise sum with a sensitivity to the same curve or surface."""
        if other.market_data_name != self.market_data_name or other.parameter_count != self.parameter_count:
            raise ValueError(
                f"Cannot add sensitivity to '{other.market_data_name}' to sensitivity to '{self.market_data_name}'"
            )
        return ParameterSensitivity(
            self.market_data_name, self.parameter_metadata, self.sensitivity + other.sensitivity
        )

    def total(self) -> float:
        return float(np.sum(self.sensitivity))

    def __repr__(self) -> str:
        return f"ParameterSensitivity(name={self.market_data_name}, sensitivity={self.sensitivity})"


class ParameterSensitivities:
    """
    Parameter sensitivities keyed by curve or surface name.

    Adding a sensitivity to a name that is already present sums the arrays.
    """

    def __init__(self, sensitivities: Iterable[ParameterSensitivity] = ()):
        self._sensitivities: Dict[str, ParameterSensitivity] = {}
        for sens in sensitivities:
            self._add(sens)

    def _add(self, sens: ParameterSensitivity) -> None:
        existing = self._sensitivities.get(sens.market_data_name)
        self._sensitivities[sens.market_data_name] = sens if existing is None else existing.plus(sens)

    @classmethod
    def of(cls, *sensitivities: ParameterSensitivity) -> "ParameterSensitivities":
        return cls(sensitivities)

    @classmethod
    def empty(cls) -> "ParameterSensitivities":
        return cls()

    def combined_with(
        self,
        other: Union["ParameterSensitivities", ParameterSensitivity]
    ) -> "ParameterSensitivities":
        """New collection holding the sum of this and other."""
        result = ParameterSensitivities(self._sensitivities.values())
        if isinstance(other, ParameterSensitivity):
            result._add(other)
        else:
            for sens in other:
                result._add(sens)
        return result

    def multiplied_by(self, factor: float) -> "ParameterSensitivities":
        return ParameterSensitivities(s.multiplied_by(factor) for s in self)

    def get(self, name: str) -> Optional[ParameterSensitivity]:
        """Sensitivity to the named curve or surface, None if absent."""
        return self._sensitivities.get(name)

    def names(self) -> List[str]:
        return list(self._sensitivities.keys())

    def total(self) -> float:
        return sum(s.total() for s in self)

    @property
    def size(self) -> int:
        return len(self._sensitivities)

    def __len__(self) -> int:
        return len(self._sensitivities)

    def __iter__(self) -> Iterator[ParameterSensitivity]:
        return iter(self._sensitivities.values())

    def equal_with_tolerance(self, other: "ParameterSensitivities", tolerance: float) -> bool:
        """Compare two collections; names missing on one side must be zero on the other."""
        for name in set(self.names()) | set(other.names()):
            mine = self.get(name)
            theirs = other.get(name)
            a = np.zeros(theirs.parameter_count) if mine is None else mine.sensitivity
            b = np.zeros(mine.parameter_count) if theirs is None else theirs.sensitivity
            if a.shape != b.shape or np.any(np.abs(a - b) > tolerance):
                return False
        return True

    def to_dataframe(self) -> pd.DataFrame:
        """Flatten to rows of (name, label, x, y, sensitivity)."""
        rows = []
        for sens in self:
            for meta, value in zip(sens.parameter_metadata, sens.sensitivity):
                rows.append({
                    'name': sens.market_data_name,
                    'label': meta.label,
                    'x': meta.x,
                    'y': meta.y,
                    'sensitivity': float(value),
                })
        return pd.DataFrame(rows, columns=['name', 'label', 'x', 'y', 'sensitivity'])

    def __repr__(self) -> str:
        return f"ParameterSensitivities({list(self._sensitivities.values())})"


__all__ = [
    "CapletFloorletSensitivity",
    "CapletFloorletSabrSensitivity",
    "PointSensitivity",
    "PointSensitivities",
    "ParameterSensitivity",
    "ParameterSensitivities",
]
