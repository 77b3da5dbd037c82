"""
Interpolation methods for volatility and parameter curves.

Provides:
- LinearInterpolator: Piecewise linear interpolation
- TimeSquareInterpolator: Linear in total variance x * y^2 (volatility term structures)
- NaturalCubicSplineInterpolator: Natural cubic spline (zero curvature at both ends)
- StepUpperInterpolator: Piecewise constant, taking the value of the next node

Extrapolators (applied by BoundInterpolator outside the node range):
- flat: hold the boundary node value
- linear: extend with the slope of the interpolant at the boundary node
- interpolator: continue the boundary segment of the interpolant

Every interpolator also returns the gradient of its value with respect to
the node values (node_sensitivity). Calibration and risk are built on these
analytic gradients.
"""

from abc import ABC, abstractmethod
from typing import Optional
import numpy as np


LINEAR = "linear"
TIME_SQUARE = "time_square"
NATURAL_CUBIC_SPLINE = "natural_cubic_spline"
STEP_UPPER = "step_upper"

FLAT = "flat"
INTERPOLATOR = "interpolator"

# Interpolators whose value between two nodes only depends on those nodes
LOCAL_INTERPOLATORS = frozenset({LINEAR, TIME_SQUARE, STEP_UPPER})

_INTERPOLATOR_ALIASES = {
    "linear": LINEAR,
    "lin": LINEAR,
    "time_square": TIME_SQUARE,
    "timesquare": TIME_SQUARE,
    "natural_cubic_spline": NATURAL_CUBIC_SPLINE,
    "natural_spline": NATURAL_CUBIC_SPLINE,
    "cubic_spline": NATURAL_CUBIC_SPLINE,
    "cubic": NATURAL_CUBIC_SPLINE,
    "spline": NATURAL_CUBIC_SPLINE,
    "step_upper": STEP_UPPER,
    "stepupper": STEP_UPPER,
}

_EXTRAPOLATOR_ALIASES = {
    "flat": FLAT,
    "linear": LINEAR,
    "lin": LINEAR,
    "interpolator": INTERPOLATOR,
}


def _normalize(method: str) -> str:
    return method.lower().strip().replace("-", "_").replace(" ", "_")


def interpolator_name(method: str) -> str:
    """Canonical interpolator name, e.g. "Time-Square" -> "time_square"."""
    key = _normalize(method)
    if key not in _INTERPOLATOR_ALIASES:
        raise ValueError(f"Unknown interpolation method: {method}")
    return _INTERPOLATOR_ALIASES[key]


def extrapolator_name(method: str) -> str:
    """Canonical extrapolator name."""
    key = _normalize(method)
    if key not in _EXTRAPOLATOR_ALIASES:
        raise ValueError(f"Unknown extrapolation method: {method}")
    return _EXTRAPOLATOR_ALIASES[key]


class Interpolator(ABC):
    """
    Abstract base class for node interpolation.

    Outside the node range each interpolator continues its boundary
    segment; flat and linear extrapolation are applied by BoundInterpolator.
    """

    name = ""

    def __init__(self):
        self.x: Optional[np.ndarray] = None
        self.y: Optional[np.ndarray] = None

    def fit(self, x: np.ndarray, y: np.ndarray) -> None:
        """
        Fit the interpolator to data points.

        Args:
            x: Node coordinates (strictly increasing)
            y: Node values
        """
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if x.shape != y.shape or x.ndim != 1:
            raise ValueError("Node coordinates and values must be 1-d arrays of the same length")
        if len(x) < 2:
            raise ValueError("Need at least 2 points for interpolation")
        if np.any(np.diff(x) <= 0):
            raise ValueError("Node coordinates must be strictly increasing")
        self.x = x
        self.y = y
        self._prepare()

    def _prepare(self) -> None:
        """Precompute coefficients after fitting."""

    def _check_fitted(self) -> None:
        if self.x is None:
            raise RuntimeError("Interpolator not fitted")

    def _segment(self, x: float) -> int:
        idx = int(np.searchsorted(self.x, x, side='right')) - 1
        return max(0, min(idx, len(self.x) - 2))

    def __call__(self, x: float) -> float:
        """Convenience method to call interpolate."""
        return self.interpolate(x)

    @abstractmethod
    def interpolate(self, x: float) -> float:
        """Interpolated value at x."""

    @abstractmethod
    def derivative(self, x: float) -> float:
        """First derivative with respect to x."""

    @abstractmethod
    def node_sensitivity(self, x: float) -> np.ndarray:
        """Gradient of interpolate(x) with respect to the node values."""

    @abstractmethod
    def derivative_sensitivity(self, x: float) -> np.ndarray:
        """Gradient of derivative(x) with respect to the node values."""


class LinearInterpolator(Interpolator):
    """Piecewise linear interpolation between nodes."""

    name = LINEAR

    def _weights(self, x: float):
        i = self._segment(x)
        h = self.x[i + 1] - self.x[i]
        return i, h, (x - self.x[i]) / h

    def interpolate(self, x: float) -> float:
        self._check_fitted()
        i, _, w = self._weights(x)
        return float(self.y[i] + w * (self.y[i + 1] - self.y[i]))

    def derivative(self, x: float) -> float:
        self._check_fitted()
        i, h, _ = self._weights(x)
        return float((self.y[i + 1] - self.y[i]) / h)

    def node_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        i, _, w = self._weights(x)
        sens = np.zeros(len(self.x))
        sens[i] = 1.0 - w
        sens[i + 1] = w
        return sens

    def derivative_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        i, h, _ = self._weights(x)
        sens = np.zeros(len(self.x))
        sens[i] = -1.0 / h
        sens[i + 1] = 1.0 / h
        return sens


class TimeSquareInterpolator(Interpolator):
    """
    Time-square interpolation.

    Interpolates total variance x * y^2 linearly and returns
    sqrt(variance / x). This is the usual interpolation for a volatility
    term structure where x is time to expiry. Node coordinates must be
    positive. At x <= 0 the first node value is returned.
    """

    name = TIME_SQUARE

    def _prepare(self) -> None:
        if np.any(self.x <= 0):
            raise ValueError("Time-square interpolation requires positive node coordinates")
        self.variance = self.x * self.y ** 2

    def _linear(self, x: float):
        i = self._segment(x)
        h = self.x[i + 1] - self.x[i]
        w = (x - self.x[i]) / h
        total = self.variance[i] + w * (self.variance[i + 1] - self.variance[i])
        slope = (self.variance[i + 1] - self.variance[i]) / h
        return i, h, w, total, slope

    def interpolate(self, x: float) -> float:
        self._check_fitted()
        if x <= 0:
            return float(self.y[0])
        _, _, _, total, _ = self._linear(x)
        return float(np.sqrt(total / x))

    def derivative(self, x: float) -> float:
        self._check_fitted()
        if x <= 0:
            return 0.0
        _, _, _, total, slope = self._linear(x)
        value = np.sqrt(total / x)
        return float((slope / x - total / x ** 2) / (2.0 * value))

    def node_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        sens = np.zeros(len(self.x))
        if x <= 0:
            sens[0] = 1.0
            return sens
        i, _, w, total, _ = self._linear(x)
        value = np.sqrt(total / x)
        # d(total)/dy_j = weight_j * 2 x_j y_j
        sens[i] = (1.0 - w) * self.x[i] * self.y[i] / (x * value)
        sens[i + 1] = w * self.x[i + 1] * self.y[i + 1] / (x * value)
        return sens

    def derivative_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        sens = np.zeros(len(self.x))
        if x <= 0:
            return sens
        i, h, w, total, slope = self._linear(x)
        value = np.sqrt(total / x)
        g = slope / x - total / x ** 2
        for j, weight, dweight in ((i, 1.0 - w, -1.0 / h), (i + 1, w, 1.0 / h)):
            d_total = weight * 2.0 * self.x[j] * self.y[j]
            d_slope = dweight * 2.0 * self.x[j] * self.y[j]
            d_value = d_total / (2.0 * x * value)
            d_g = d_slope / x - d_total / x ** 2
            sens[j] = (d_g * value - g * d_value) / (2.0 * value ** 2)
        return sens


class NaturalCubicSplineInterpolator(Interpolator):
    """
    Natural cubic spline interpolation.

    Second derivative is zero at both boundary nodes. The spline is linear
    in the node values, so the coefficient gradients are stored at fit time
    and sensitivities are exact.
    """

    name = NATURAL_CUBIC_SPLINE

    def _prepare(self) -> None:
        n = len(self.x)
        h = np.diff(self.x)

        # Second derivatives M solve A M = B y with M[0] = M[n-1] = 0
        A = np.zeros((n, n))
        B = np.zeros((n, n))
        A[0, 0] = 1.0
        A[n - 1, n - 1] = 1.0
        for i in range(1, n - 1):
            A[i, i - 1] = h[i - 1]
            A[i, i] = 2 * (h[i - 1] + h[i])
            A[i, i + 1] = h[i]
            B[i, i - 1] = 6.0 / h[i - 1]
            B[i, i] = -6.0 / h[i - 1] - 6.0 / h[i]
            B[i, i + 1] = 6.0 / h[i]
        G = np.linalg.solve(A, B)

        # S_i(x) = a_i + b_i*(x-x_i) + c_i*(x-x_i)^2 + d_i*(x-x_i)^3, coefficients linear in y
        eye = np.eye(n)
        self.coefficient_sensitivity = np.zeros((n - 1, 4, n))
        for i in range(n - 1):
            self.coefficient_sensitivity[i, 0] = eye[i]
            self.coefficient_sensitivity[i, 1] = (eye[i + 1] - eye[i]) / h[i] - h[i] * (G[i + 1] + 2 * G[i]) / 6
            self.coefficient_sensitivity[i, 2] = G[i] / 2
            self.coefficient_sensitivity[i, 3] = (G[i + 1] - G[i]) / (6 * h[i])
        self.coefficients = self.coefficient_sensitivity @ self.y

    def interpolate(self, x: float) -> float:
        self._check_fitted()
        i = self._segment(x)
        dx = x - self.x[i]
        a, b, c, d = self.coefficients[i]
        return float(a + b * dx + c * dx ** 2 + d * dx ** 3)

    def derivative(self, x: float) -> float:
        self._check_fitted()
        i = self._segment(x)
        dx = x - self.x[i]
        _, b, c, d = self.coefficients[i]
        return float(b + 2 * c * dx + 3 * d * dx ** 2)

    def node_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        i = self._segment(x)
        dx = x - self.x[i]
        return np.array([1.0, dx, dx ** 2, dx ** 3]) @ self.coefficient_sensitivity[i]

    def derivative_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        i = self._segment(x)
        dx = x - self.x[i]
        return np.array([0.0, 1.0, 2 * dx, 3 * dx ** 2]) @ self.coefficient_sensitivity[i]


class StepUpperInterpolator(Interpolator):
    """
    Step interpolation taking the value of the first node at or above x.

    For x in (x_{i-1}, x_i] the value is y_i. Used for bootstrapped term
    structures where each node covers the period ending at it.
    """

    name = STEP_UPPER

    def _index(self, x: float) -> int:
        idx = int(np.searchsorted(self.x, x, side='left'))
        return min(idx, len(self.x) - 1)

    def interpolate(self, x: float) -> float:
        self._check_fitted()
        return float(self.y[self._index(x)])

    def derivative(self, x: float) -> float:
        self._check_fitted()
        return 0.0

    def node_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        sens = np.zeros(len(self.x))
        sens[self._index(x)] = 1.0
        return sens

    def derivative_sensitivity(self, x: float) -> np.ndarray:
        self._check_fitted()
        return np.zeros(len(self.x))


def create_interpolator(method: str) -> Interpolator:
    """
    Factory function to create an interpolator by name.

    Args:
        method: One of "linear", "time_square", "natural_cubic_spline", "step_upper"
            (case, dashes and spaces are ignored)

    Returns:
        Interpolator instance
    """
    name = interpolator_name(method)
    if name == LINEAR:
        return LinearInterpolator()
    elif name == TIME_SQUARE:
        return TimeSquareInterpolator()
    elif name == NATURAL_CUBIC_SPLINE:
        return NaturalCubicSplineInterpolator()
    return StepUpperInterpolator()


class BoundInterpolator:
    """
    Interpolator fitted to a node set, with left and right extrapolation.

    A single node gives a constant function whose only sensitivity is 1.
    """

    def __init__(
        self,
        x: np.ndarray,
        y: np.ndarray,
        interpolator: str = LINEAR,
        extrapolator_left: str = FLAT,
        extrapolator_right: str = FLAT
    ):
        self.x = np.asarray(x, dtype=np.float64)
        self.y = np.asarray(y, dtype=np.float64)
        if self.x.shape != self.y.shape or self.x.ndim != 1 or len(self.x) == 0:
            raise ValueError("Nodes must be non-empty 1-d arrays of the same length")
        self.extrapolator_left = extrapolator_name(extrapolator_left)
        self.extrapolator_right = extrapolator_name(extrapolator_right)
        self._interpolator: Optional[Interpolator] = None
        if len(self.x) > 1:
            self._interpolator = create_interpolator(interpolator)
            self._interpolator.fit(self.x, self.y)

    def _side(self, x: float):
        if x < self.x[0]:
            return self.extrapolator_left, 0
        if x > self.x[-1]:
            return self.extrapolator_right, len(self.x) - 1
        return None, None

    def value(self, x: float) -> float:
        """Value at x, extrapolating outside the nodes."""
        if self._interpolator is None:
            return float(self.y[0])
        method, idx = self._side(x)
        if method == FLAT:
            return float(self.y[idx])
        if method == LINEAR:
            bx = self.x[idx]
            return float(self.y[idx] + self._interpolator.derivative(bx) * (x - bx))
        return self._interpolator.interpolate(x)

    def first_derivative(self, x: float) -> float:
        """Derivative of value with respect to x."""
        if self._interpolator is None:
            return 0.0
        method, idx = self._side(x)
        if method == FLAT:
            return 0.0
        if method == LINEAR:
            return self._interpolator.derivative(self.x[idx])
        return self._interpolator.derivative(x)

    def parameter_sensitivity(self, x: float) -> np.ndarray:
        """Gradient of value(x) with respect to the node values."""
        if self._interpolator is None:
            return np.ones(1)
        method, idx = self._side(x)
        if method == FLAT:
            sens = np.zeros(len(self.x))
            sens[idx] = 1.0
            return sens
        if method == LINEAR:
            bx = self.x[idx]
            sens = self._interpolator.derivative_sensitivity(bx) * (x - bx)
            sens[idx] += 1.0
            return sens
        return self._interpolator.node_sensitivity(x)


__all__ = [
    "LINEAR",
    "TIME_SQUARE",
    "NATURAL_CUBIC_SPLINE",
    "STEP_UPPER",
    "FLAT",
    "INTERPOLATOR",
    "LOCAL_INTERPOLATORS",
    "interpolator_name",
    "extrapolator_name",
    "Interpolator",
    "LinearInterpolator",
    "TimeSquareInterpolator",
    "NaturalCubicSplineInterpolator",
    "StepUpperInterpolator",
    "create_interpolator",
    "BoundInterpolator",
]
