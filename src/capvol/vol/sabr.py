"""
SABR stochastic volatility model.

Implements the SABR model for caplet volatility:
- Hagan et al. Black implied volatility approximation
- Shifted SABR for negative rates
- Analytic adjoint (derivatives with respect to forward, strike and
  the four SABR parameters) for calibration and risk
- SabrParameters: SABR parameters as term structures in expiry

References:
- Hagan, P.S. et al. (2002). "Managing Smile Risk." Wilmott Magazine.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import numpy as np

from ..conventions import DayCount
from ..curves.metadata import CurveMetadata, SabrParameterType
from ..curves.nodal import ConstantCurve, ParameterCurve, curve_from_dict


# Below this |z| the ratio z / x(z) is replaced by its first-order expansion
SMALL_Z = 1e-6
# Distance from rho = 1 treated as rho = 1
RHO_EPS = 1e-5


@dataclass
class ValueDerivatives:
    """
    A value with its derivatives.

    For the SABR adjoint, derivatives are ordered
    [forward, strike, alpha, beta, rho, nu].
    """
    value: float
    derivatives: np.ndarray


def hagan_black_vol_adjoint(
    F: float,
    K: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float,
    shift: float = 0.0
) -> ValueDerivatives:
    """
    Hagan Black implied volatility and its derivatives.

    The value is computed in a forward sweep and the derivatives in one
    backward (adjoint) sweep over the same intermediate quantities.

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry (years)
        alpha: SABR alpha
        beta: CEV exponent
        rho: Correlation
        nu: Vol of vol
        shift: Shift for negative rates

    Returns:
        ValueDerivatives with derivatives [dF, dK, dalpha, dbeta, drho, dnu]
    """
    F_s = F + shift
    K_s = K + shift
    if F_s <= 0 or K_s <= 0:
        raise ValueError(f"Shifted forward ({F_s}) and strike ({K_s}) must be positive")

    beta_star = 1.0 - beta
    sf_k = (F_s * K_s) ** (beta_star / 2)
    log_fk = np.log(F_s / K_s)
    z = nu / alpha * sf_k * log_fk

    rho_star = 1.0 - rho
    if abs(z) < SMALL_Z:
        x_z = None
        r_zxz = 1.0 - 0.5 * z * rho
    elif abs(rho_star) < RHO_EPS:
        if z >= 1.0:
            raise ValueError(f"SABR z ({z}) must be below 1 when rho is 1")
        x_z = -np.log(1.0 - z)
        r_zxz = z / x_z
    else:
        sqrt_term = np.sqrt(1.0 - 2.0 * rho * z + z * z)
        arg = sqrt_term + z - rho
        x_z = np.log(arg / rho_star)
        r_zxz = z / x_z

    sf1 = sf_k * (1.0 + beta_star**2 / 24 * log_fk**2 + beta_star**4 / 1920 * log_fk**4)
    sf2 = 1.0 + (
        beta_star**2 * alpha**2 / (24 * sf_k**2)
        + rho * beta * nu * alpha / (4 * sf_k)
        + (2 - 3 * rho**2) * nu**2 / 24
    ) * T
    vol = alpha / sf1 * r_zxz * sf2

    # Backward sweep
    sf2_bar = alpha / sf1 * r_zxz
    sf1_bar = -alpha / sf1**2 * r_zxz * sf2
    r_zxz_bar = alpha / sf1 * sf2

    if x_z is None:
        z_bar = -rho / 2 * r_zxz_bar
        rho_bar = -z / 2 * r_zxz_bar
    elif abs(rho_star) < RHO_EPS:
        x_z_bar = -z / x_z**2 * r_zxz_bar
        z_bar = r_zxz_bar / x_z + x_z_bar / (1.0 - z)
        ratio = z / (1.0 - z)
        rho_bar = (0.5 * ratio**2 + 0.25 * (z - 4.0) * ratio**3 / (1.0 - z) * rho_star) * x_z_bar
    else:
        x_z_bar = -z / x_z**2 * r_zxz_bar
        z_bar = r_zxz_bar / x_z + ((z - rho) / sqrt_term + 1.0) / arg * x_z_bar
        rho_bar = ((-z / sqrt_term - 1.0) / arg + 1.0 / rho_star) * x_z_bar

    log_fk_bar = (
        sf_k * (beta_star**2 / 12 * log_fk + beta_star**4 / 480 * log_fk**3) * sf1_bar
        + nu / alpha * sf_k * z_bar
    )
    sf_k_bar = (
        nu / alpha * log_fk * z_bar
        + sf1 / sf_k * sf1_bar
        - (beta_star**2 * alpha**2 / (12 * sf_k**3) + rho * beta * nu * alpha / (4 * sf_k**2)) * T * sf2_bar
    )

    forward_bar = log_fk_bar / F_s + beta_star * sf_k / (2 * F_s) * sf_k_bar
    strike_bar = -log_fk_bar / K_s + beta_star * sf_k / (2 * K_s) * sf_k_bar
    alpha_bar = (
        -nu / alpha**2 * sf_k * log_fk * z_bar
        + (beta_star**2 * alpha / (12 * sf_k**2) + rho * beta * nu / (4 * sf_k)) * T * sf2_bar
        + r_zxz * sf2 / sf1
    )
    beta_bar = (
        -0.5 * np.log(F_s * K_s) * sf_k * sf_k_bar
        - sf_k * (beta_star / 12 * log_fk**2 + beta_star**3 / 480 * log_fk**4) * sf1_bar
        + (-beta_star * alpha**2 / (12 * sf_k**2) + rho * nu * alpha / (4 * sf_k)) * T * sf2_bar
    )
    rho_bar += (beta * nu * alpha / (4 * sf_k) - rho * nu**2 / 4) * T * sf2_bar
    nu_bar = (
        sf_k * log_fk / alpha * z_bar
        + (rho * beta * alpha / (4 * sf_k) + (2 - 3 * rho**2) * nu / 12) * T * sf2_bar
    )

    return ValueDerivatives(
        value=float(vol),
        derivatives=np.array([forward_bar, strike_bar, alpha_bar, beta_bar, rho_bar, nu_bar], dtype=np.float64),
    )


def hagan_black_vol(
    F: float,
    K: float,
    T: float,
    alpha: float,
    beta: float,
    rho: float,
    nu: float,
    shift: float = 0.0
) -> float:
    """
    Hagan et al. approximation for SABR Black implied volatility.

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry (years)
        alpha: SABR alpha (instantaneous vol)
        beta: CEV exponent
        rho: Correlation
        nu: Vol of vol
        shift: Shift for negative rates

    Returns:
        Black implied volatility of the shifted forward
    """
    return hagan_black_vol_adjoint(F, K, T, alpha, beta, rho, nu, shift).value


class SabrVolatilityFormula(Enum):
    """Implied volatility approximation used with SABR parameters."""
    HAGAN = "Hagan"

    def volatility(self, F, K, T, alpha, beta, rho, nu, shift=0.0) -> float:
        return hagan_black_vol(F, K, T, alpha, beta, rho, nu, shift)

    def volatility_adjoint(self, F, K, T, alpha, beta, rho, nu, shift=0.0) -> ValueDerivatives:
        return hagan_black_vol_adjoint(F, K, T, alpha, beta, rho, nu, shift)


ZERO_SHIFT_NAME = "Zero shift"


def _zero_shift_curve() -> ConstantCurve:
    return ConstantCurve(CurveMetadata(ZERO_SHIFT_NAME, y_value_type=SabrParameterType.SHIFT.value_type), 0.0)


@dataclass(frozen=True)
class SabrParameters:
    """
    SABR parameters as term structures in expiry.

    Each parameter is a curve of expiry year fraction. The parameter vector
    of the set is the concatenation of the alpha, beta, rho, nu and shift
    curve parameters, in that order.

    Attributes:
        alpha_curve: Alpha by expiry
        beta_curve: Beta by expiry
        rho_curve: Rho by expiry
        nu_curve: Nu by expiry
        shift_curve: Shift by expiry (zero constant curve by default)
        day_count: Day count used to measure expiry
        sabr_volatility_formula: Implied volatility approximation
    """
    alpha_curve: ParameterCurve
    beta_curve: ParameterCurve
    rho_curve: ParameterCurve
    nu_curve: ParameterCurve
    shift_curve: Optional[ParameterCurve] = None
    day_count: DayCount = DayCount.ACT_365
    sabr_volatility_formula: SabrVolatilityFormula = SabrVolatilityFormula.HAGAN

    def __post_init__(self):
        if self.shift_curve is None:
            object.__setattr__(self, 'shift_curve', _zero_shift_curve())
        names = [c.name for c in self.curves()]
        if len(set(names)) != len(names):
            raise ValueError(f"SABR parameter curves must have distinct names, got {names}")

    def curves(self) -> Tuple[ParameterCurve, ...]:
        return (self.alpha_curve, self.beta_curve, self.rho_curve, self.nu_curve, self.shift_curve)

    def curve(self, parameter_type: SabrParameterType) -> ParameterCurve:
        return {
            SabrParameterType.ALPHA: self.alpha_curve,
            SabrParameterType.BETA: self.beta_curve,
            SabrParameterType.RHO: self.rho_curve,
            SabrParameterType.NU: self.nu_curve,
            SabrParameterType.SHIFT: self.shift_curve,
        }[parameter_type]

    def alpha(self, expiry: float) -> float:
        return self.alpha_curve.y_value(expiry)

    def beta(self, expiry: float) -> float:
        return self.beta_curve.y_value(expiry)

    def rho(self, expiry: float) -> float:
        return self.rho_curve.y_value(expiry)

    def nu(self, expiry: float) -> float:
        return self.nu_curve.y_value(expiry)

    def shift(self, expiry: float) -> float:
        return self.shift_curve.y_value(expiry)

    def volatility(self, expiry: float, strike: float, forward: float) -> float:
        """Shifted Black volatility at expiry for the given strike and forward."""
        return self.sabr_volatility_formula.volatility(
            forward, strike, expiry, self.alpha(expiry), self.beta(expiry),
            self.rho(expiry), self.nu(expiry), self.shift(expiry)
        )

    def volatility_adjoint(self, expiry: float, strike: float, forward: float) -> ValueDerivatives:
        """Volatility with derivatives [forward, strike, alpha, beta, rho, nu]."""
        return self.sabr_volatility_formula.volatility_adjoint(
            forward, strike, expiry, self.alpha(expiry), self.beta(expiry),
            self.rho(expiry), self.nu(expiry), self.shift(expiry)
        )

    @property
    def parameter_count(self) -> int:
        return sum(c.parameter_count for c in self.curves())

    def _locate(self, index: int) -> Tuple[int, int]:
        if index < 0:
            raise IndexError(f"Parameter index must be non-negative, got {index}")
        for i, curve in enumerate(self.curves()):
            if index < curve.parameter_count:
                return i, index
            index -= curve.parameter_count
        raise IndexError("Parameter index out of range")

    def parameter(self, index: int) -> float:
        i, j = self._locate(index)
        return self.curves()[i].parameter(j)

    def with_parameter(self, index: int, value: float) -> "SabrParameters":
        i, j = self._locate(index)
        curves = list(self.curves())
        curves[i] = curves[i].with_parameter(j, value)
        return SabrParameters(*curves, day_count=self.day_count, sabr_volatility_formula=self.sabr_volatility_formula)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            'alpha_curve': self.alpha_curve.to_dict(),
            'beta_curve': self.beta_curve.to_dict(),
            'rho_curve': self.rho_curve.to_dict(),
            'nu_curve': self.nu_curve.to_dict(),
            'shift_curve': self.shift_curve.to_dict(),
            'day_count': self.day_count.value,
            'sabr_volatility_formula': self.sabr_volatility_formula.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SabrParameters":
        """Deserialize from dictionary."""
        return cls(
            alpha_curve=curve_from_dict(data['alpha_curve']),
            beta_curve=curve_from_dict(data['beta_curve']),
            rho_curve=curve_from_dict(data['rho_curve']),
            nu_curve=curve_from_dict(data['nu_curve']),
            shift_curve=curve_from_dict(data['shift_curve']),
            day_count=DayCount.from_string(data['day_count']),
            sabr_volatility_formula=SabrVolatilityFormula(data['sabr_volatility_formula']),
        )


__all__ = [
    "ValueDerivatives",
    "hagan_black_vol",
    "hagan_black_vol_adjoint",
    "SabrVolatilityFormula",
    "SabrParameters",
]
