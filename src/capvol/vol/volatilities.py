"""
Caplet/floorlet volatility models.

A volatility model turns (expiry, strike, forward) into a caplet implied
volatility and converts point sensitivities into sensitivities to its own
parameters. Three variants are provided:
- ExpiryStrikeVolatilities: interpolated Black or Normal surface
- ExpiryFlatVolatilities: interpolated strike-independent curve
- SabrParametersVolatilities: SABR parameter term structures

Expiry is a year fraction measured from the valuation date under the
model's day count (see relative_time).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Union

from ..conventions import DayCount, relative_year_fraction
from ..curves.metadata import SabrParameterType, ValueType
from ..curves.nodal import InterpolatedNodalCurve, ParameterCurve, curve_from_dict
from ..index import IborIndex
from ..options.base_models import (
    bachelier_greeks,
    bachelier_price,
    shifted_black_greeks,
    shifted_black_price,
)
from ..risk.sensitivities import (
    CapletFloorletSabrSensitivity,
    CapletFloorletSensitivity,
    ParameterSensitivities,
    PointSensitivity,
)
from .sabr import SabrParameters, ValueDerivatives
from .surface import InterpolatedNodalSurface


VOLATILITY_TYPES = (ValueType.BLACK_VOLATILITY, ValueType.NORMAL_VOLATILITY)


class CapletFloorletVolatilities(ABC):
    """
    Base class for caplet/floorlet volatility models.

    Subclasses are frozen dataclasses with the fields index and
    valuation_date_time. The name is the name under which point
    sensitivities refer to the model.
    """

    name: str
    index: IborIndex
    valuation_date_time: datetime

    @property
    @abstractmethod
    def day_count(self) -> DayCount:
        """Day count used to measure expiry."""

    @property
    @abstractmethod
    def volatility_type(self) -> ValueType:
        """BLACK_VOLATILITY (shifted Black) or NORMAL_VOLATILITY."""

    @property
    def valuation_date(self) -> date:
        return self.valuation_date_time.date()

    def relative_time(self, date_time: Union[date, datetime]) -> float:
        """
        Signed year fraction from the valuation date to date_time.

        Zero at the valuation date, negative for dates before it.
        """
        if isinstance(date_time, datetime):
            date_time = date_time.date()
        return relative_year_fraction(self.valuation_date, date_time, self.day_count)

    def shift(self, expiry: float) -> float:
        """Shift of the shifted Black model at expiry; zero unless overridden."""
        return 0.0

    @abstractmethod
    def volatility(self, expiry: float, strike: float, forward: float) -> float:
        """Caplet implied volatility."""

    @abstractmethod
    def parameter_sensitivity(self, point_sensitivities: Iterable[PointSensitivity]) -> ParameterSensitivities:
        """Convert point sensitivities referring to this model into parameter sensitivities."""

    @abstractmethod
    def find_data(self, name: str) -> Optional[Any]:
        """Curve or surface with the given name, None if this model has none."""

    @property
    @abstractmethod
    def parameter_count(self) -> int:
        """Number of model parameters."""

    @abstractmethod
    def parameter(self, index: int) -> float:
        """Model parameter by index."""

    @abstractmethod
    def with_parameter(self, index: int, value: float) -> "CapletFloorletVolatilities":
        """Copy with one parameter replaced."""

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""

    def price_greeks(self, expiry: float, is_call: bool, strike: float, forward: float, volatility: float) -> Dict[str, float]:
        if self.volatility_type == ValueType.NORMAL_VOLATILITY:
            return bachelier_greeks(forward, strike, expiry, volatility, is_call)
        return shifted_black_greeks(forward, strike, expiry, volatility, self.shift(expiry), is_call)

    def price(self, expiry: float, is_call: bool, strike: float, forward: float, volatility: float) -> float:
        """Undiscounted option price per unit notional and accrual under this model's convention."""
        if self.volatility_type == ValueType.NORMAL_VOLATILITY:
            return bachelier_price(forward, strike, expiry, volatility, is_call)
        return shifted_black_price(forward, strike, expiry, volatility, self.shift(expiry), is_call)

    def price_delta(self, expiry: float, is_call: bool, strike: float, forward: float, volatility: float) -> float:
        return self.price_greeks(expiry, is_call, strike, forward, volatility)['delta']

    def price_dual_delta(self, expiry: float, is_call: bool, strike: float, forward: float, volatility: float) -> float:
        return self.price_greeks(expiry, is_call, strike, forward, volatility)['dual_delta']

    def price_gamma(self, expiry: float, is_call: bool, strike: float, forward: float, volatility: float) -> float:
        return self.price_greeks(expiry, is_call, strike, forward, volatility)['gamma']

    def price_theta(self, expiry: float, is_call: bool, strike: float, forward: float, volatility: float) -> float:
        return self.price_greeks(expiry, is_call, strike, forward, volatility)['theta']

    def price_vega(self, expiry: float, is_call: bool, strike: float, forward: float, volatility: float) -> float:
        return self.price_greeks(expiry, is_call, strike, forward, volatility)['vega']

    def _base_dict(self) -> Dict[str, Any]:
        return {
            'type': type(self).__name__,
            'index': self.index.to_dict(),
            'valuation_date_time': self.valuation_date_time.isoformat(),
        }


def _check_volatility_type(value_type: ValueType, name: str) -> ValueType:
    if value_type not in VOLATILITY_TYPES:
        raise ValueError(f"Volatilities '{name}' must hold Black or Normal volatility, got {value_type.value}")
    return value_type


@dataclass(frozen=True)
class ExpiryStrikeVolatilities(CapletFloorletVolatilities):
    """
    Volatilities from an interpolated (expiry, strike) surface.

    The surface z value type selects the Black or Normal convention. A
    shift curve may be supplied for shifted Black surfaces.

    Attributes:
        index: Ibor index the caplets fix on
        valuation_date_time: Valuation date-time
        surface: Volatility surface
        shift_curve: Optional shift by expiry (Black only)
    """
    index: IborIndex
    valuation_date_time: datetime
    surface: InterpolatedNodalSurface
    shift_curve: Optional[ParameterCurve] = None

    def __post_init__(self):
        value_type = _check_volatility_type(self.surface.metadata.z_value_type, self.surface.name)
        if self.surface.metadata.day_count is None:
            raise ValueError(f"Surface '{self.surface.name}' metadata must define a day count")
        if self.shift_curve is not None and value_type == ValueType.NORMAL_VOLATILITY:
            raise ValueError("A shift curve only applies to Black volatilities")

    @property
    def name(self) -> str:
        return self.surface.name

    @property
    def day_count(self) -> DayCount:
        return self.surface.metadata.day_count

    @property
    def volatility_type(self) -> ValueType:
        return self.surface.metadata.z_value_type

    def shift(self, expiry: float) -> float:
        return 0.0 if self.shift_curve is None else self.shift_curve.y_value(expiry)

    def volatility(self, expiry: float, strike: float, forward: float) -> float:
        return self.surface.z_value(expiry, strike)

    def parameter_sensitivity(self, point_sensitivities: Iterable[PointSensitivity]) -> ParameterSensitivities:
        result = ParameterSensitivities()
        for point in point_sensitivities:
            if isinstance(point, CapletFloorletSensitivity) and point.volatilities_name == self.name:
                sens = self.surface.z_value_parameter_sensitivity(point.expiry, point.strike)
                result = result.combined_with(sens.multiplied_by(point.sensitivity))
        return result

    def find_data(self, name: str) -> Optional[Any]:
        if name == self.surface.name:
            return self.surface
        if self.shift_curve is not None and name == self.shift_curve.name:
            return self.shift_curve
        return None

    @property
    def parameter_count(self) -> int:
        return self.surface.parameter_count

    def parameter(self, index: int) -> float:
        return self.surface.parameter(index)

    def with_parameter(self, index: int, value: float) -> "ExpiryStrikeVolatilities":
        return ExpiryStrikeVolatilities(
            self.index, self.valuation_date_time, self.surface.with_parameter(index, value), self.shift_curve
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data['surface'] = self.surface.to_dict()
        data['shift_curve'] = None if self.shift_curve is None else self.shift_curve.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpiryStrikeVolatilities":
        shift = data.get('shift_curve')
        return cls(
            index=IborIndex.from_dict(data['index']),
            valuation_date_time=datetime.fromisoformat(data['valuation_date_time']),
            surface=InterpolatedNodalSurface.from_dict(data['surface']),
            shift_curve=None if shift is None else curve_from_dict(shift),
        )


@dataclass(frozen=True)
class ExpiryFlatVolatilities(CapletFloorletVolatilities):
    """
    Strike-independent volatilities from a curve in expiry.

    Attributes:
        index: Ibor index the caplets fix on
        valuation_date_time: Valuation date-time
        curve: Volatility by expiry; y value type selects Black or Normal
        shift_curve: Optional shift by expiry (Black only)
    """
    index: IborIndex
    valuation_date_time: datetime
    curve: InterpolatedNodalCurve
    shift_curve: Optional[ParameterCurve] = None

    def __post_init__(self):
        value_type = _check_volatility_type(self.curve.metadata.y_value_type, self.curve.name)
        if self.curve.metadata.day_count is None:
            raise ValueError(f"Curve '{self.curve.name}' metadata must define a day count")
        if self.shift_curve is not None and value_type == ValueType.NORMAL_VOLATILITY:
            raise ValueError("A shift curve only applies to Black volatilities")

    @property
    def name(self) -> str:
        return self.curve.name

    @property
    def day_count(self) -> DayCount:
        return self.curve.metadata.day_count

    @property
    def volatility_type(self) -> ValueType:
        return self.curve.metadata.y_value_type

    def shift(self, expiry: float) -> float:
        return 0.0 if self.shift_curve is None else self.shift_curve.y_value(expiry)

    def volatility(self, expiry: float, strike: float, forward: float) -> float:
        return self.curve.y_value(expiry)

    def parameter_sensitivity(self, point_sensitivities: Iterable[PointSensitivity]) -> ParameterSensitivities:
        result = ParameterSensitivities()
        for point in point_sensitivities:
            if isinstance(point, CapletFloorletSensitivity) and point.volatilities_name == self.name:
                sens = self.curve.y_value_parameter_sensitivity(point.expiry)
                result = result.combined_with(sens.multiplied_by(point.sensitivity))
        return result

    def find_data(self, name: str) -> Optional[Any]:
        if name == self.curve.name:
            return self.curve
        if self.shift_curve is not None and name == self.shift_curve.name:
            return self.shift_curve
        return None

    @property
    def parameter_count(self) -> int:
        return self.curve.parameter_count

    def parameter(self, index: int) -> float:
        return self.curve.parameter(index)

    def with_parameter(self, index: int, value: float) -> "ExpiryFlatVolatilities":
        return ExpiryFlatVolatilities(
            self.index, self.valuation_date_time, self.curve.with_parameter(index, value), self.shift_curve
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data['curve'] = self.curve.to_dict()
        data['shift_curve'] = None if self.shift_curve is None else self.shift_curve.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpiryFlatVolatilities":
        shift = data.get('shift_curve')
        return cls(
            index=IborIndex.from_dict(data['index']),
            valuation_date_time=datetime.fromisoformat(data['valuation_date_time']),
            curve=InterpolatedNodalCurve.from_dict(data['curve']),
            shift_curve=None if shift is None else curve_from_dict(shift),
        )


@dataclass(frozen=True)
class SabrParametersVolatilities(CapletFloorletVolatilities):
    """
    Shifted Black volatilities implied by SABR parameter term structures.

    Point sensitivities may be SABR-typed (alpha, beta, rho, nu, shift at an
    expiry) or plain volatility points; the latter are chained through the
    analytic adjoint of the volatility formula.

    Attributes:
        name: Name of the volatility model
        index: Ibor index the caplets fix on
        valuation_date_time: Valuation date-time
        parameters: SABR parameter curves
    """
    name: str
    index: IborIndex
    valuation_date_time: datetime
    parameters: SabrParameters

    @property
    def day_count(self) -> DayCount:
        return self.parameters.day_count

    @property
    def volatility_type(self) -> ValueType:
        return ValueType.BLACK_VOLATILITY

    def alpha(self, expiry: float) -> float:
        return self.parameters.alpha(expiry)

    def beta(self, expiry: float) -> float:
        return self.parameters.beta(expiry)

    def rho(self, expiry: float) -> float:
        return self.parameters.rho(expiry)

    def nu(self, expiry: float) -> float:
        return self.parameters.nu(expiry)

    def shift(self, expiry: float) -> float:
        return self.parameters.shift(expiry)

    def volatility(self, expiry: float, strike: float, forward: float) -> float:
        return self.parameters.volatility(expiry, strike, forward)

    def volatility_adjoint(self, expiry: float, strike: float, forward: float) -> ValueDerivatives:
        """Volatility with derivatives [forward, strike, alpha, beta, rho, nu]."""
        return self.parameters.volatility_adjoint(expiry, strike, forward)

    def _curve_sensitivity(self, parameter_type: SabrParameterType, expiry: float, amount: float):
        curve = self.parameters.curve(parameter_type)
        return curve.y_value_parameter_sensitivity(expiry).multiplied_by(amount)

    def parameter_sensitivity(self, point_sensitivities: Iterable[PointSensitivity]) -> ParameterSensitivities:
        result = ParameterSensitivities()
        for point in point_sensitivities:
            if point.volatilities_name != self.name:
                continue
            if isinstance(point, CapletFloorletSabrSensitivity):
                result = result.combined_with(
                    self._curve_sensitivity(point.sensitivity_type, point.expiry, point.sensitivity)
                )
            elif isinstance(point, CapletFloorletSensitivity):
                d = self.volatility_adjoint(point.expiry, point.strike, point.forward).derivatives
                chained = (
                    (SabrParameterType.ALPHA, d[2]),
                    (SabrParameterType.BETA, d[3]),
                    (SabrParameterType.RHO, d[4]),
                    (SabrParameterType.NU, d[5]),
                    # shifting moves forward and strike together
                    (SabrParameterType.SHIFT, d[0] + d[1]),
                )
                for parameter_type, derivative in chained:
                    result = result.combined_with(
                        self._curve_sensitivity(parameter_type, point.expiry, point.sensitivity * derivative)
                    )
        return result

    def find_data(self, name: str) -> Optional[Any]:
        for curve in self.parameters.curves():
            if curve.name == name:
                return curve
        return None

    @property
    def parameter_count(self) -> int:
        return self.parameters.parameter_count

    def parameter(self, index: int) -> float:
        return self.parameters.parameter(index)

    def with_parameter(self, index: int, value: float) -> "SabrParametersVolatilities":
        return SabrParametersVolatilities(
            self.name, self.index, self.valuation_date_time, self.parameters.with_parameter(index, value)
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data['name'] = self.name
        data['parameters'] = self.parameters.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SabrParametersVolatilities":
        return cls(
            name=data['name'],
            index=IborIndex.from_dict(data['index']),
            valuation_date_time=datetime.fromisoformat(data['valuation_date_time']),
            parameters=SabrParameters.from_dict(data['parameters']),
        )


def volatilities_from_dict(data: Dict[str, Any]) -> CapletFloorletVolatilities:
    """Rebuild a volatility model serialized with to_dict."""
    types = {
        'ExpiryStrikeVolatilities': ExpiryStrikeVolatilities,
        'ExpiryFlatVolatilities': ExpiryFlatVolatilities,
        'SabrParametersVolatilities': SabrParametersVolatilities,
    }
    vol_type = data.get('type')
    if vol_type not in types:
        raise ValueError(f"Unknown volatilities type: {vol_type}")
    return types[vol_type].from_dict(data)


__all__ = [
    "CapletFloorletVolatilities",
    "ExpiryStrikeVolatilities",
    "ExpiryFlatVolatilities",
    "SabrParametersVolatilities",
    "volatilities_from_dict",
]
