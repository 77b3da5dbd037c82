"""
Calibration definitions for caplet/floorlet volatilities.

A definition is the recipe of a calibration: the name of the resulting
volatilities, the index and day count, the shape of the model (knots,
interpolators, fixed SABR parameters, shift) and any smoothing penalty.
Definitions are immutable and validated on construction.

Five recipes are provided:
- DirectIborCapletFloorletFlatVolatilityDefinition: strike-independent
  caplet volatility curve, nodes at every caplet expiry, curvature penalty
- DirectIborCapletFloorletVolatilityDefinition: caplet volatility surface on
  caplet expiry x strike nodes, penalties along both directions
- SabrIborCapletFloorletVolatilityCalibrationDefinition: SABR parameter term
  structures on user knots, calibrated jointly
- SabrIborCapletFloorletVolatilityBootstrapDefinition: SABR parameter term
  structures bootstrapped cap expiry by cap expiry
- SurfaceIborCapletFloorletVolatilityBootstrapDefinition: caplet volatility
  surface bootstrapped quote by quote
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..conventions import DayCount
from ..curves.interpolation import (
    FLAT,
    LINEAR,
    LOCAL_INTERPOLATORS,
    extrapolator_name,
    interpolator_name,
)
from ..curves.metadata import CurveMetadata, SabrParameterType, SurfaceMetadata, ValueType
from ..curves.nodal import ConstantCurve, InterpolatedNodalCurve, ParameterCurve, curve_from_dict
from ..index import IborIndex
from ..vol.quotes import RawOptionData
from ..vol.sabr import SabrParameters, SabrVolatilityFormula
from ..vol.surface import GridSurfaceInterpolator
from ..vol.volatilities import SabrParametersVolatilities
from .penalty import penalty_matrix, penalty_matrix_2d
from .transforms import ParameterLimitsTransform


# Parameter families in vector order
SABR_FAMILIES = (
    SabrParameterType.ALPHA,
    SabrParameterType.BETA,
    SabrParameterType.RHO,
    SabrParameterType.NU,
)


def _surface_metadata(name: str, day_count: DayCount, raw_data: RawOptionData) -> SurfaceMetadata:
    if raw_data.data_type == ValueType.BLACK_VOLATILITY:
        return SurfaceMetadata.black_volatility_by_expiry_strike(name, day_count)
    if raw_data.data_type == ValueType.NORMAL_VOLATILITY:
        return SurfaceMetadata.normal_volatility_by_expiry_strike(name, day_count)
    raise ValueError(f"Data type not supported: {raw_data.data_type.value}")


def _curve_metadata(name: str, day_count: DayCount, raw_data: RawOptionData) -> CurveMetadata:
    if raw_data.data_type == ValueType.BLACK_VOLATILITY:
        return CurveMetadata.black_volatility_by_expiry(name, day_count)
    if raw_data.data_type == ValueType.NORMAL_VOLATILITY:
        return CurveMetadata.normal_volatility_by_expiry(name, day_count)
    raise ValueError(f"Data type not supported: {raw_data.data_type.value}")


def _check_not_negative(value: float, label: str) -> float:
    if value < 0:
        raise ValueError(f"{label} must not be negative, got {value}")
    return float(value)


def _optional_curve_dict(curve: Optional[ParameterCurve]) -> Optional[Dict[str, Any]]:
    return None if curve is None else curve.to_dict()


def _optional_curve(data: Optional[Dict[str, Any]]) -> Optional[ParameterCurve]:
    return None if data is None else curve_from_dict(data)


def sabr_constant_curve(
    name: str,
    day_count: DayCount,
    parameter_type: SabrParameterType,
    value: float
) -> ConstantCurve:
    """Constant SABR parameter curve named '<name>-<Parameter>'."""
    metadata = CurveMetadata.sabr_parameter_by_expiry(f"{name}-{parameter_type.value}", day_count, parameter_type)
    return ConstantCurve(metadata, value)


class IborCapletFloorletVolatilityDefinition(ABC):
    """
    Base class of calibration definitions.

    Subclasses are frozen dataclasses with the fields name, index and
    day_count.
    """

    name: str
    index: IborIndex
    day_count: DayCount

    def create_metadata(self, raw_data: RawOptionData) -> SurfaceMetadata:
        """
        Surface metadata matching the quote type.

        Raises:
            ValueError: if the quotes are neither Black nor Normal volatilities
        """
        return _surface_metadata(self.name, self.day_count, raw_data)

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""

    def _base_dict(self) -> Dict[str, Any]:
        return {
            'type': type(self).__name__,
            'name': self.name,
            'index': self.index.to_dict(),
            'day_count': self.day_count.value,
        }


@dataclass(frozen=True)
class DirectIborCapletFloorletFlatVolatilityDefinition(IborCapletFloorletVolatilityDefinition):
    """
    Strike-independent caplet volatility curve calibrated directly.

    The curve has a node at every caplet expiry of the market caps. With
    more nodes than quotes the curvature penalty lambda_ regularizes the fit.

    Attributes:
        name: Name of the resulting volatilities
        index: Ibor index
        day_count: Day count measuring expiry
        lambda_: Curvature penalty weight
        interpolator: Curve interpolator
        extrapolator_left: Left extrapolator
        extrapolator_right: Right extrapolator
    """
    name: str
    index: IborIndex
    day_count: DayCount
    lambda_: float
    interpolator: str
    extrapolator_left: str = FLAT
    extrapolator_right: str = FLAT

    def __post_init__(self):
        object.__setattr__(self, 'lambda_', _check_not_negative(self.lambda_, "lambda"))
        object.__setattr__(self, 'interpolator', interpolator_name(self.interpolator))
        object.__setattr__(self, 'extrapolator_left', extrapolator_name(self.extrapolator_left))
        object.__setattr__(self, 'extrapolator_right', extrapolator_name(self.extrapolator_right))

    @classmethod
    def of(
        cls,
        name: str,
        index: IborIndex,
        day_count: DayCount,
        lambda_: float,
        interpolator: str,
        extrapolator_left: str = FLAT,
        extrapolator_right: str = FLAT
    ) -> "DirectIborCapletFloorletFlatVolatilityDefinition":
        return cls(name, index, day_count, lambda_, interpolator, extrapolator_left, extrapolator_right)

    def create_metadata(self, raw_data: RawOptionData) -> SurfaceMetadata:
        raise ValueError("A flat volatility definition creates curve metadata, use create_curve_metadata")

    def create_curve_metadata(self, raw_data: RawOptionData) -> CurveMetadata:
        """
        Curve metadata matching the quote type.

        Raises:
            ValueError: if the quotes are neither Black nor Normal volatilities
        """
        return _curve_metadata(self.name, self.day_count, raw_data)

    def compute_penalty_matrix(self, expiries: Sequence[float]) -> np.ndarray:
        """
        Curvature penalty on the expiry nodes, scaled by lambda_.

        Raises:
            ValueError: for fewer than 3 nodes
        """
        if len(expiries) < 3:
            raise ValueError("Need at least 3 points for a curvature estimate")
        return self.lambda_ * penalty_matrix(expiries, 2)

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            'lambda': self.lambda_,
            'interpolator': self.interpolator,
            'extrapolator_left': self.extrapolator_left,
            'extrapolator_right': self.extrapolator_right,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DirectIborCapletFloorletFlatVolatilityDefinition":
        return cls(
            name=data['name'],
            index=IborIndex.from_dict(data['index']),
            day_count=DayCount.from_string(data['day_count']),
            lambda_=data['lambda'],
            interpolator=data['interpolator'],
            extrapolator_left=data['extrapolator_left'],
            extrapolator_right=data['extrapolator_right'],
        )


@dataclass(frozen=True)
class DirectIborCapletFloorletVolatilityDefinition(IborCapletFloorletVolatilityDefinition):
    """
    Caplet volatility surface calibrated directly.

    The surface has a node at every (caplet expiry, strike) pair. Roughness
    penalties along expiry and strike regularize the fit.

    Attributes:
        name: Name of the resulting volatilities
        index: Ibor index
        day_count: Day count measuring expiry
        lambda_expiry: Curvature penalty weight along expiry
        lambda_strike: Curvature penalty weight along strike
        interpolator: Grid surface interpolator
        shift_curve: Optional shift of shifted Black volatilities
    """
    name: str
    index: IborIndex
    day_count: DayCount
    lambda_expiry: float
    lambda_strike: float
    interpolator: GridSurfaceInterpolator
    shift_curve: Optional[ParameterCurve] = None

    def __post_init__(self):
        object.__setattr__(self, 'lambda_expiry', _check_not_negative(self.lambda_expiry, "lambda_expiry"))
        object.__setattr__(self, 'lambda_strike', _check_not_negative(self.lambda_strike, "lambda_strike"))

    @classmethod
    def of(
        cls,
        name: str,
        index: IborIndex,
        day_count: DayCount,
        lambda_expiry: float,
        lambda_strike: float,
        interpolator: GridSurfaceInterpolator,
        shift_curve: Optional[ParameterCurve] = None
    ) -> "DirectIborCapletFloorletVolatilityDefinition":
        return cls(name, index, day_count, lambda_expiry, lambda_strike, interpolator, shift_curve)

    @property
    def has_penalty(self) -> bool:
        return self.lambda_expiry > 0 or self.lambda_strike > 0

    def compute_penalty_matrix(self, strikes: Sequence[float], expiries: Sequence[float]) -> np.ndarray:
        """
        Roughness penalty on the expiry-major node grid.

        Raises:
            ValueError: for fewer than 3 strikes or fewer than 3 expiries
        """
        if len(strikes) < 3:
            raise ValueError("Need at least 3 points for a curvature estimate")
        if len(expiries) < 3:
            raise ValueError("Need at least 3 points for a curvature estimate")
        return penalty_matrix_2d(expiries, strikes, self.lambda_expiry, self.lambda_strike, 2)

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            'lambda_expiry': self.lambda_expiry,
            'lambda_strike': self.lambda_strike,
            'interpolator': self.interpolator.to_dict(),
            'shift_curve': _optional_curve_dict(self.shift_curve),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DirectIborCapletFloorletVolatilityDefinition":
        return cls(
            name=data['name'],
            index=IborIndex.from_dict(data['index']),
            day_count=DayCount.from_string(data['day_count']),
            lambda_expiry=data['lambda_expiry'],
            lambda_strike=data['lambda_strike'],
            interpolator=GridSurfaceInterpolator.from_dict(data['interpolator']),
            shift_curve=_optional_curve(data.get('shift_curve')),
        )


class _SabrDefinitionMixin:
    """Shared SABR metadata and curve helpers."""

    def create_sabr_parameter_metadata(self) -> List[CurveMetadata]:
        """Curve metadata for alpha, beta, rho and nu, named '<name>-Alpha' etc."""
        return [
            CurveMetadata.sabr_parameter_by_expiry(f"{self.name}-{family.value}", self.day_count, family)
            for family in SABR_FAMILIES
        ]

    def is_fixed(self, family: SabrParameterType) -> bool:
        """True for the family supplied as a fixed curve."""
        return (
            (family == SabrParameterType.BETA and self.beta_curve is not None)
            or (family == SabrParameterType.RHO and self.rho_curve is not None)
        )

    def free_families(self) -> List[SabrParameterType]:
        return [family for family in SABR_FAMILIES if not self.is_fixed(family)]

    def fixed_curve(self) -> ParameterCurve:
        return self.beta_curve if self.beta_curve is not None else self.rho_curve

    def _validate_fixed_curves(self):
        if self.beta_curve is not None and self.rho_curve is not None:
            raise ValueError("Only beta_curve or rho_curve must be set, not both")
        if self.beta_curve is None and self.rho_curve is None:
            raise ValueError("Either beta_curve or rho_curve must be set")


@dataclass(frozen=True)
class SabrIborCapletFloorletVolatilityCalibrationDefinition(_SabrDefinitionMixin, IborCapletFloorletVolatilityDefinition):
    """
    SABR parameter term structures calibrated jointly to all quotes.

    Alpha and nu are always free. Exactly one of beta and rho is fixed by a
    supplied curve; the other is free. Each free family has its own knots
    (expiry year fractions); the knots of the fixed family must be empty.

    Attributes:
        name: Name of the resulting volatilities
        index: Ibor index
        day_count: Day count measuring expiry
        parameter_curve_nodes: Knots for alpha, beta, rho and nu
        initial_parameters: Initial alpha, beta, rho and nu
        beta_curve: Fixed beta curve (fixed-beta calibration)
        rho_curve: Fixed rho curve (fixed-rho calibration)
        shift_curve: Shift curve (zero if None)
        interpolator: Interpolator of the free curves
        extrapolator_left: Left extrapolator of the free curves
        extrapolator_right: Right extrapolator of the free curves
        sabr_volatility_formula: Implied volatility approximation
    """
    name: str
    index: IborIndex
    day_count: DayCount
    parameter_curve_nodes: Tuple[Tuple[float, ...], ...]
    initial_parameters: Tuple[float, ...]
    beta_curve: Optional[ParameterCurve] = None
    rho_curve: Optional[ParameterCurve] = None
    shift_curve: Optional[ParameterCurve] = None
    interpolator: str = LINEAR
    extrapolator_left: str = FLAT
    extrapolator_right: str = FLAT
    sabr_volatility_formula: SabrVolatilityFormula = SabrVolatilityFormula.HAGAN

    def __post_init__(self):
        nodes = tuple(tuple(float(t) for t in knots) for knots in self.parameter_curve_nodes)
        initial = tuple(float(v) for v in self.initial_parameters)
        if len(initial) != 4:
            raise ValueError("The size of initial_parameters must be 4")
        if len(nodes) != 4:
            raise ValueError("The size of parameter_curve_nodes must be 4")
        self._validate_fixed_curves()
        for family, knots in zip(SABR_FAMILIES, nodes):
            if self.is_fixed(family) and len(knots) > 0:
                raise ValueError(f"The {family.value.lower()} curve is fixed, its nodes must be empty")
            if not self.is_fixed(family) and len(knots) == 0:
                raise ValueError(f"The {family.value.lower()} curve nodes must not be empty")
            if any(b <= a for a, b in zip(knots[:-1], knots[1:])):
                raise ValueError(f"The {family.value.lower()} curve nodes must be strictly increasing")
        object.__setattr__(self, 'parameter_curve_nodes', nodes)
        object.__setattr__(self, 'initial_parameters', initial)
        object.__setattr__(self, 'interpolator', interpolator_name(self.interpolator))
        object.__setattr__(self, 'extrapolator_left', extrapolator_name(self.extrapolator_left))
        object.__setattr__(self, 'extrapolator_right', extrapolator_name(self.extrapolator_right))

    @classmethod
    def of_fixed_beta(
        cls,
        name: str,
        index: IborIndex,
        day_count: DayCount,
        beta: float,
        alpha_curve_nodes: Sequence[float],
        rho_curve_nodes: Sequence[float],
        nu_curve_nodes: Sequence[float],
        interpolator: str = LINEAR,
        extrapolator_left: str = FLAT,
        extrapolator_right: str = FLAT,
        shift: float = 0.0,
        initial_parameters: Optional[Sequence[float]] = None,
        sabr_volatility_formula: SabrVolatilityFormula = SabrVolatilityFormula.HAGAN
    ) -> "SabrIborCapletFloorletVolatilityCalibrationDefinition":
        """
        Definition with constant beta and constant shift.

        Default initial values are alpha 0.1, rho -0.2 and nu 0.5.
        """
        initial = (0.1, beta, -0.2, 0.5) if initial_parameters is None else tuple(initial_parameters)
        return cls(
            name=name,
            index=index,
            day_count=day_count,
            parameter_curve_nodes=(tuple(alpha_curve_nodes), (), tuple(rho_curve_nodes), tuple(nu_curve_nodes)),
            initial_parameters=initial,
            beta_curve=sabr_constant_curve(name, day_count, SabrParameterType.BETA, beta),
            shift_curve=sabr_constant_curve(name, day_count, SabrParameterType.SHIFT, shift),
            interpolator=interpolator,
            extrapolator_left=extrapolator_left,
            extrapolator_right=extrapolator_right,
            sabr_volatility_formula=sabr_volatility_formula,
        )

    @classmethod
    def of_fixed_rho(
        cls,
        name: str,
        index: IborIndex,
        day_count: DayCount,
        rho: float,
        alpha_curve_nodes: Sequence[float],
        beta_curve_nodes: Sequence[float],
        nu_curve_nodes: Sequence[float],
        interpolator: str = LINEAR,
        extrapolator_left: str = FLAT,
        extrapolator_right: str = FLAT,
        shift: float = 0.0,
        initial_parameters: Optional[Sequence[float]] = None,
        sabr_volatility_formula: SabrVolatilityFormula = SabrVolatilityFormula.HAGAN
    ) -> "SabrIborCapletFloorletVolatilityCalibrationDefinition":
        """
        Definition with constant rho and constant shift.

        Default initial values are alpha 0.1, beta 0.7 and nu 0.5.
        """
        initial = (0.1, 0.7, rho, 0.5) if initial_parameters is None else tuple(initial_parameters)
        return cls(
            name=name,
            index=index,
            day_count=day_count,
            parameter_curve_nodes=(tuple(alpha_curve_nodes), tuple(beta_curve_nodes), (), tuple(nu_curve_nodes)),
            initial_parameters=initial,
            rho_curve=sabr_constant_curve(name, day_count, SabrParameterType.RHO, rho),
            shift_curve=sabr_constant_curve(name, day_count, SabrParameterType.SHIFT, shift),
            interpolator=interpolator,
            extrapolator_left=extrapolator_left,
            extrapolator_right=extrapolator_right,
            sabr_volatility_formula=sabr_volatility_formula,
        )

    def knots(self, family: SabrParameterType) -> Tuple[float, ...]:
        return self.parameter_curve_nodes[SABR_FAMILIES.index(family)]

    def free_parameter_count(self) -> int:
        """Number of calibrated knot values."""
        return sum(len(self.knots(family)) for family in self.free_families())

    def validate_quote_count(self, quote_count: int) -> None:
        """
        Reject a calibration with more free parameters than quotes.

        Raises:
            ValueError: if the system is under-determined
        """
        free = self.free_parameter_count()
        if free > quote_count:
            raise ValueError(
                f"SABR calibration '{self.name}' has {free} free parameters for {quote_count} quotes"
            )

    def create_full_transform(
        self,
        transforms: Sequence[ParameterLimitsTransform]
    ) -> List[ParameterLimitsTransform]:
        """
        One transform per free knot, from one transform per family.

        Args:
            transforms: Transforms for alpha, beta, rho and nu

        Returns:
            Transforms in parameter vector order; fixed families are omitted
        """
        if len(transforms) != 4:
            raise ValueError("transforms must contain transformation definition for alpha, beta, rho and nu")
        full = []
        for family, transform in zip(SABR_FAMILIES, transforms):
            if not self.is_fixed(family):
                full.extend([transform] * len(self.knots(family)))
        return full

    def create_full_initial_values(self) -> np.ndarray:
        """Initial value of every free knot, flat per family."""
        values = []
        for family, initial in zip(SABR_FAMILIES, self.initial_parameters):
            if not self.is_fixed(family):
                values.extend([initial] * len(self.knots(family)))
        return np.array(values, dtype=np.float64)

    def create_sabr_parameter_curves(
        self,
        metadata: Sequence[CurveMetadata],
        node_values: Sequence[float]
    ) -> List[ParameterCurve]:
        """
        Alpha, beta, rho and nu curves from the free knot values.

        The node values are ordered alpha, beta or rho (whichever is free),
        then nu. The fixed curve is returned in its own slot.
        """
        node_values = np.asarray(node_values, dtype=np.float64)
        if len(node_values) != self.free_parameter_count():
            raise ValueError(
                f"Expected {self.free_parameter_count()} node values, got {len(node_values)}"
            )
        curves: List[ParameterCurve] = []
        offset = 0
        for i, family in enumerate(SABR_FAMILIES):
            if self.is_fixed(family):
                curves.append(self.fixed_curve())
                continue
            knots = self.knots(family)
            curves.append(InterpolatedNodalCurve.of(
                metadata[i], knots, node_values[offset:offset + len(knots)],
                self.interpolator, self.extrapolator_left, self.extrapolator_right
            ))
            offset += len(knots)
        return curves

    def create_volatilities(
        self,
        valuation_date_time: datetime,
        node_values: Sequence[float]
    ) -> SabrParametersVolatilities:
        """SABR volatilities with the free knots set to node_values."""
        curves = self.create_sabr_parameter_curves(self.create_sabr_parameter_metadata(), node_values)
        parameters = SabrParameters(
            *curves,
            shift_curve=self.shift_curve,
            day_count=self.day_count,
            sabr_volatility_formula=self.sabr_volatility_formula,
        )
        return SabrParametersVolatilities(self.name, self.index, valuation_date_time, parameters)

    def free_curve_names(self) -> List[str]:
        metadata = self.create_sabr_parameter_metadata()
        return [metadata[SABR_FAMILIES.index(family)].name for family in self.free_families()]

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            'parameter_curve_nodes': [list(knots) for knots in self.parameter_curve_nodes],
            'initial_parameters': list(self.initial_parameters),
            'beta_curve': _optional_curve_dict(self.beta_curve),
            'rho_curve': _optional_curve_dict(self.rho_curve),
            'shift_curve': _optional_curve_dict(self.shift_curve),
            'interpolator': self.interpolator,
            'extrapolator_left': self.extrapolator_left,
            'extrapolator_right': self.extrapolator_right,
            'sabr_volatility_formula': self.sabr_volatility_formula.value,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SabrIborCapletFloorletVolatilityCalibrationDefinition":
        return cls(
            name=data['name'],
            index=IborIndex.from_dict(data['index']),
            day_count=DayCount.from_string(data['day_count']),
            parameter_curve_nodes=tuple(tuple(knots) for knots in data['parameter_curve_nodes']),
            initial_parameters=tuple(data['initial_parameters']),
            beta_curve=_optional_curve(data.get('beta_curve')),
            rho_curve=_optional_curve(data.get('rho_curve')),
            shift_curve=_optional_curve(data.get('shift_curve')),
            interpolator=data['interpolator'],
            extrapolator_left=data['extrapolator_left'],
            extrapolator_right=data['extrapolator_right'],
            sabr_volatility_formula=SabrVolatilityFormula(data['sabr_volatility_formula']),
        )


@dataclass(frozen=True)
class SabrIborCapletFloorletVolatilityBootstrapDefinition(_SabrDefinitionMixin, IborCapletFloorletVolatilityDefinition):
    """
    SABR parameter term structures bootstrapped by cap expiry.

    Each cap expiry contributes one knot, at the last caplet expiry of the
    cap, to every free curve. The interpolator must be local and the left
    extrapolation flat, so that a new knot leaves earlier caps unchanged.

    Attributes:
        name: Name of the resulting volatilities
        index: Ibor index
        day_count: Day count measuring expiry
        beta_curve: Fixed beta curve (fixed-beta bootstrap)
        rho_curve: Fixed rho curve (fixed-rho bootstrap)
        shift_curve: Shift curve (zero if None)
        initial_parameters: Initial alpha, beta, rho and nu of the first
            expiry; alpha is replaced by an estimate from the quotes
        interpolator: Local interpolator of the free curves
        extrapolator_left: Left extrapolator, flat
        extrapolator_right: Right extrapolator
        sabr_volatility_formula: Implied volatility approximation
    """
    name: str
    index: IborIndex
    day_count: DayCount
    beta_curve: Optional[ParameterCurve] = None
    rho_curve: Optional[ParameterCurve] = None
    shift_curve: Optional[ParameterCurve] = None
    initial_parameters: Tuple[float, ...] = (0.1, 0.5, -0.2, 0.5)
    interpolator: str = LINEAR
    extrapolator_left: str = FLAT
    extrapolator_right: str = FLAT
    sabr_volatility_formula: SabrVolatilityFormula = SabrVolatilityFormula.HAGAN

    def __post_init__(self):
        object.__setattr__(self, 'interpolator', interpolator_name(self.interpolator))
        object.__setattr__(self, 'extrapolator_left', extrapolator_name(self.extrapolator_left))
        object.__setattr__(self, 'extrapolator_right', extrapolator_name(self.extrapolator_right))
        initial = tuple(float(v) for v in self.initial_parameters)
        if len(initial) != 4:
            raise ValueError("The size of initial_parameters must be 4")
        object.__setattr__(self, 'initial_parameters', initial)
        if self.extrapolator_left != FLAT:
            raise ValueError("extrapolator left must be flat extrapolator")
        if self.interpolator not in LOCAL_INTERPOLATORS:
            raise ValueError(f"interpolator must be local interpolator, got {self.interpolator}")
        self._validate_fixed_curves()

    @classmethod
    def of_fixed_beta(
        cls,
        name: str,
        index: IborIndex,
        day_count: DayCount,
        beta: float,
        interpolator: str = LINEAR,
        extrapolator_left: str = FLAT,
        extrapolator_right: str = FLAT,
        shift: float = 0.0,
        sabr_volatility_formula: SabrVolatilityFormula = SabrVolatilityFormula.HAGAN
    ) -> "SabrIborCapletFloorletVolatilityBootstrapDefinition":
        return cls(
            name=name,
            index=index,
            day_count=day_count,
            beta_curve=sabr_constant_curve(name, day_count, SabrParameterType.BETA, beta),
            shift_curve=sabr_constant_curve(name, day_count, SabrParameterType.SHIFT, shift),
            initial_parameters=(0.1, beta, -0.2, 0.5),
            interpolator=interpolator,
            extrapolator_left=extrapolator_left,
            extrapolator_right=extrapolator_right,
            sabr_volatility_formula=sabr_volatility_formula,
        )

    @classmethod
    def of_fixed_rho(
        cls,
        name: str,
        index: IborIndex,
        day_count: DayCount,
        rho: float,
        interpolator: str = LINEAR,
        extrapolator_left: str = FLAT,
        extrapolator_right: str = FLAT,
        shift: float = 0.0,
        sabr_volatility_formula: SabrVolatilityFormula = SabrVolatilityFormula.HAGAN
    ) -> "SabrIborCapletFloorletVolatilityBootstrapDefinition":
        return cls(
            name=name,
            index=index,
            day_count=day_count,
            rho_curve=sabr_constant_curve(name, day_count, SabrParameterType.RHO, rho),
            shift_curve=sabr_constant_curve(name, day_count, SabrParameterType.SHIFT, shift),
            initial_parameters=(0.1, 0.7, rho, 0.5),
            interpolator=interpolator,
            extrapolator_left=extrapolator_left,
            extrapolator_right=extrapolator_right,
            sabr_volatility_formula=sabr_volatility_formula,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            'beta_curve': _optional_curve_dict(self.beta_curve),
            'rho_curve': _optional_curve_dict(self.rho_curve),
            'shift_curve': _optional_curve_dict(self.shift_curve),
            'initial_parameters': list(self.initial_parameters),
            'interpolator': self.interpolator,
            'extrapolator_left': self.extrapolator_left,
            'extrapolator_right': self.extrapolator_right,
            'sabr_volatility_formula': self.sabr_volatility_formula.value,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SabrIborCapletFloorletVolatilityBootstrapDefinition":
        return cls(
            name=data['name'],
            index=IborIndex.from_dict(data['index']),
            day_count=DayCount.from_string(data['day_count']),
            beta_curve=_optional_curve(data.get('beta_curve')),
            rho_curve=_optional_curve(data.get('rho_curve')),
            shift_curve=_optional_curve(data.get('shift_curve')),
            initial_parameters=tuple(data['initial_parameters']),
            interpolator=data['interpolator'],
            extrapolator_left=data['extrapolator_left'],
            extrapolator_right=data['extrapolator_right'],
            sabr_volatility_formula=SabrVolatilityFormula(data['sabr_volatility_formula']),
        )


@dataclass(frozen=True)
class SurfaceIborCapletFloorletVolatilityBootstrapDefinition(IborCapletFloorletVolatilityDefinition):
    """
    Caplet volatilities bootstrapped quote by quote.

    Each quote adds one node at (last caplet expiry of its cap, strike). For
    a flat quote grid the result is a curve in expiry with one node per cap.
    The expiry interpolation must be local with flat left extrapolation.

    Attributes:
        name: Name of the resulting volatilities
        index: Ibor index
        day_count: Day count measuring expiry
        interpolator: Grid surface interpolator; for flat grids only the
            expiry interpolator and extrapolators are used
        shift_curve: Optional shift of shifted Black volatilities
    """
    name: str
    index: IborIndex
    day_count: DayCount
    interpolator: GridSurfaceInterpolator = GridSurfaceInterpolator()
    shift_curve: Optional[ParameterCurve] = None

    def __post_init__(self):
        if self.interpolator.x_interpolator not in LOCAL_INTERPOLATORS:
            raise ValueError(f"expiry interpolator must be local interpolator, got {self.interpolator.x_interpolator}")
        if self.interpolator.x_extrapolator_left != FLAT:
            raise ValueError("expiry extrapolator left must be flat extrapolator")

    @classmethod
    def of(
        cls,
        name: str,
        index: IborIndex,
        day_count: DayCount,
        interpolator: GridSurfaceInterpolator = GridSurfaceInterpolator(),
        shift_curve: Optional[ParameterCurve] = None
    ) -> "SurfaceIborCapletFloorletVolatilityBootstrapDefinition":
        return cls(name, index, day_count, interpolator, shift_curve)

    def create_curve_metadata(self, raw_data: RawOptionData) -> CurveMetadata:
        """Curve metadata for a flat quote grid."""
        return _curve_metadata(self.name, self.day_count, raw_data)

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            'interpolator': self.interpolator.to_dict(),
            'shift_curve': _optional_curve_dict(self.shift_curve),
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SurfaceIborCapletFloorletVolatilityBootstrapDefinition":
        return cls(
            name=data['name'],
            index=IborIndex.from_dict(data['index']),
            day_count=DayCount.from_string(data['day_count']),
            interpolator=GridSurfaceInterpolator.from_dict(data['interpolator']),
            shift_curve=_optional_curve(data.get('shift_curve')),
        )


def definition_from_dict(data: Dict[str, Any]) -> IborCapletFloorletVolatilityDefinition:
    """Rebuild a definition serialized with to_dict."""
    types = {
        'DirectIborCapletFloorletFlatVolatilityDefinition': DirectIborCapletFloorletFlatVolatilityDefinition,
        'DirectIborCapletFloorletVolatilityDefinition': DirectIborCapletFloorletVolatilityDefinition,
        'SabrIborCapletFloorletVolatilityCalibrationDefinition': SabrIborCapletFloorletVolatilityCalibrationDefinition,
        'SabrIborCapletFloorletVolatilityBootstrapDefinition': SabrIborCapletFloorletVolatilityBootstrapDefinition,
        'SurfaceIborCapletFloorletVolatilityBootstrapDefinition': SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
    }
    definition_type = data.get('type')
    if definition_type not in types:
        raise ValueError(f"Unknown definition type: {definition_type}")
    return types[definition_type].from_dict(data)


__all__ = [
    "SABR_FAMILIES",
    "sabr_constant_curve",
    "IborCapletFloorletVolatilityDefinition",
    "DirectIborCapletFloorletFlatVolatilityDefinition",
    "DirectIborCapletFloorletVolatilityDefinition",
    "SabrIborCapletFloorletVolatilityCalibrationDefinition",
    "SabrIborCapletFloorletVolatilityBootstrapDefinition",
    "SurfaceIborCapletFloorletVolatilityBootstrapDefinition",
    "definition_from_dict",
]
