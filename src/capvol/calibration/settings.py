"""
Numerical settings of the calibrators.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class CalibrationSettings:
    """
    Container for solver settings.

    Attributes:
        tolerance: Relative tolerance on the cost and the parameter step
            (least squares ftol and xtol)
        gradient_tolerance: Tolerance on the scaled gradient (gtol)
        max_iterations: Cap on function evaluations per least squares solve
        root_tolerance: Absolute volatility tolerance of bootstrap root finding
        volatility_bracket: Search interval of bootstrap root finding
        compute_data_sensitivity: Attach d(parameters)/d(quotes) to results
    """
    tolerance: float = 1e-10
    gradient_tolerance: float = 1e-10
    max_iterations: int = 1000
    root_tolerance: float = 1e-12
    volatility_bracket: Tuple[float, float] = (1e-8, 5.0)
    compute_data_sensitivity: bool = False

    def __post_init__(self):
        if self.tolerance <= 0 or self.gradient_tolerance <= 0 or self.root_tolerance <= 0:
            raise ValueError("Tolerances must be positive")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        low, high = self.volatility_bracket
        if not 0 <= low < high:
            raise ValueError(f"Invalid volatility bracket: {self.volatility_bracket}")
        object.__setattr__(self, 'volatility_bracket', (float(low), float(high)))

    @classmethod
    def default(cls) -> "CalibrationSettings":
        """Standard settings."""
        return cls()

    @classmethod
    def fast(cls) -> "CalibrationSettings":
        """Looser tolerances for interactive use."""
        return cls(
            tolerance=1e-8,
            gradient_tolerance=1e-8,
            max_iterations=200,
            root_tolerance=1e-10,
        )

    @classmethod
    def strict(cls) -> "CalibrationSettings":
        """Tight tolerances with data sensitivity."""
        return cls(
            tolerance=1e-14,
            gradient_tolerance=1e-14,
            max_iterations=5000,
            root_tolerance=1e-14,
            compute_data_sensitivity=True,
        )


__all__ = [
    "CalibrationSettings",
]
