"""
Parameter limit transforms.

Optimizers work on unconstrained values. A transform maps a model parameter
with limits (e.g. rho in (-1, 1)) to an unconstrained fitting value and back:

    y = transform(x)            model -> fitting
    x = inverse_transform(y)    fitting -> model

inverse_transform is defined on the whole real line and always lands inside
the limits.
"""

from abc import ABC, abstractmethod
from enum import Enum

import numpy as np
from scipy.special import expit


# Fitting values beyond +-TANH_MAX map to the range ends
TANH_MAX = 25.0


class LimitType(Enum):
    GREATER_THAN = "GreaterThan"
    LESS_THAN = "LessThan"


class ParameterLimitsTransform(ABC):
    """Map between a limited model parameter and an unconstrained fitting value."""

    @abstractmethod
    def transform(self, x: float) -> float:
        """Model value to fitting value."""

    @abstractmethod
    def inverse_transform(self, y: float) -> float:
        """Fitting value to model value."""

    @abstractmethod
    def transform_gradient(self, x: float) -> float:
        """dy/dx at model value x."""

    @abstractmethod
    def inverse_transform_gradient(self, y: float) -> float:
        """dx/dy at fitting value y."""


class NullTransform(ParameterLimitsTransform):
    """Identity transform for unlimited parameters."""

    def transform(self, x: float) -> float:
        return float(x)

    def inverse_transform(self, y: float) -> float:
        return float(y)

    def transform_gradient(self, x: float) -> float:
        return 1.0

    def inverse_transform_gradient(self, y: float) -> float:
        return 1.0

    def __eq__(self, other) -> bool:
        return isinstance(other, NullTransform)

    def __hash__(self) -> int:
        return hash(NullTransform)

    def __repr__(self) -> str:
        return "NullTransform()"


class SingleRangeLimitTransform(ParameterLimitsTransform):
    """
    One-sided limit x > a (or x < a) through a softplus map.

    For x > a:
        x = a + log(1 + exp(y))
        y = log(exp(x - a) - 1)
    """

    def __init__(self, limit: float = 0.0, limit_type: LimitType = LimitType.GREATER_THAN):
        self.limit = float(limit)
        self.limit_type = limit_type
        self._sign = 1.0 if limit_type == LimitType.GREATER_THAN else -1.0

    def transform(self, x: float) -> float:
        d = self._sign * (x - self.limit)
        if d <= 0:
            raise ValueError(f"Value {x} is outside the limit ({self.limit_type.value} {self.limit})")
        # log(expm1(d)) without overflow for large d
        return float(d + np.log(-np.expm1(-d)))

    def inverse_transform(self, y: float) -> float:
        return float(self.limit + self._sign * np.logaddexp(0.0, y))

    def transform_gradient(self, x: float) -> float:
        d = self._sign * (x - self.limit)
        if d <= 0:
            raise ValueError(f"Value {x} is outside the limit ({self.limit_type.value} {self.limit})")
        return float(self._sign / -np.expm1(-d))

    def inverse_transform_gradient(self, y: float) -> float:
        return float(self._sign * expit(y))

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, SingleRangeLimitTransform)
            and other.limit == self.limit
            and other.limit_type == self.limit_type
        )

    def __hash__(self) -> int:
        return hash((self.limit, self.limit_type))

    def __repr__(self) -> str:
        return f"SingleRangeLimitTransform(limit={self.limit}, limit_type={self.limit_type.name})"


class DoubleRangeLimitTransform(ParameterLimitsTransform):
    """
    Two-sided limit a < x < b through a tanh map.

        x = a + (b - a) * (tanh(y) + 1) / 2
        y = atanh((2x - a - b) / (b - a))

    The range ends themselves map to +-TANH_MAX.
    """

    def __init__(self, lower: float, upper: float):
        if not lower < upper:
            raise ValueError(f"Lower limit {lower} must be below upper limit {upper}")
        self.lower = float(lower)
        self.upper = float(upper)
        self._mid = 0.5 * (self.lower + self.upper)
        self._scale = 0.5 * (self.upper - self.lower)

    def transform(self, x: float) -> float:
        if x < self.lower or x > self.upper:
            raise ValueError(f"Value {x} is outside [{self.lower}, {self.upper}]")
        if x == self.lower:
            return -TANH_MAX
        if x == self.upper:
            return TANH_MAX
        return float(np.clip(np.arctanh((x - self._mid) / self._scale), -TANH_MAX, TANH_MAX))

    def inverse_transform(self, y: float) -> float:
        y = float(np.clip(y, -TANH_MAX, TANH_MAX))
        return float(self._mid + self._scale * np.tanh(y))

    def transform_gradient(self, x: float) -> float:
        if x <= self.lower or x >= self.upper:
            raise ValueError(f"Value {x} is not strictly inside ({self.lower}, {self.upper})")
        u = (x - self._mid) / self._scale
        return float(1.0 / (self._scale * (1.0 - u * u)))

    def inverse_transform_gradient(self, y: float) -> float:
        if abs(y) > TANH_MAX:
            return 0.0
        t = np.tanh(y)
        return float(self._scale * (1.0 - t * t))

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, DoubleRangeLimitTransform)
            and other.lower == self.lower
            and other.upper == self.upper
        )

    def __hash__(self) -> int:
        return hash((self.lower, self.upper))

    def __repr__(self) -> str:
        return f"DoubleRangeLimitTransform(lower={self.lower}, upper={self.upper})"


def default_sabr_transforms():
    """Transforms for (alpha, beta, rho, nu): alpha > 0, 0 <= beta <= 1, -1 < rho < 1, nu > 0."""
    return (
        SingleRangeLimitTransform(0.0, LimitType.GREATER_THAN),
        DoubleRangeLimitTransform(0.0, 1.0),
        DoubleRangeLimitTransform(-1.0, 1.0),
        SingleRangeLimitTransform(0.0, LimitType.GREATER_THAN),
    )


__all__ = [
    "LimitType",
    "ParameterLimitsTransform",
    "NullTransform",
    "SingleRangeLimitTransform",
    "DoubleRangeLimitTransform",
    "default_sabr_transforms",
    "TANH_MAX",
]
