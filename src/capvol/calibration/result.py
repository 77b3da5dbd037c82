"""
Calibration result and failure.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
import pandas as pd

from ..vol.volatilities import CapletFloorletVolatilities
from .objective import CalibrationObjective


class CalibrationError(RuntimeError):
    """
    Raised when a calibration does not converge.

    Attributes:
        residual_norm: Norm of the residuals at the last iterate
        iterations: Function evaluations spent before the failure, summed
            over the buckets already solved for a bootstrap
    """

    def __init__(self, message: str, residual_norm: float, iterations: int):
        super().__init__(f"{message} (residual norm {residual_norm:.3e}, iterations {iterations})")
        self.residual_norm = residual_norm
        self.iterations = iterations


@dataclass(frozen=True)
class CalibrationResult:
    """
    Outcome of one calibration.

    Attributes:
        volatilities: Calibrated volatility model
        converged: Solver convergence flag
        iterations: Function evaluations summed over all solves
        residual_norm: Euclidean norm of the weighted quote residuals
        chi_square: Sum of squared residuals plus the penalty term
        residuals: Weighted residual per quote, in grid order
        data_sensitivity: Derivative of the model parameters with respect to
            the quotes (parameters x quotes), if requested
        objective: Objective the model was fitted to
    """
    volatilities: CapletFloorletVolatilities
    converged: bool
    iterations: int
    residual_norm: float
    chi_square: float
    residuals: Tuple[float, ...]
    data_sensitivity: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    objective: Optional[CalibrationObjective] = field(default=None, compare=False, repr=False)

    def diagnostics_table(self) -> pd.DataFrame:
        """
        Per-quote fit report.

        Columns: expiry, strike, is_cap, quote, model_quote, error, weight, residual
        """
        columns = ['expiry', 'strike', 'is_cap', 'quote', 'model_quote', 'error', 'weight', 'residual']
        if self.objective is None:
            return pd.DataFrame(columns=columns)
        model_quotes = self.objective.implied_quotes(self.volatilities)
        rows = []
        for inst, model_quote, residual in zip(self.objective.instruments, model_quotes, self.residuals):
            rows.append({
                'expiry': inst.expiry_tenor,
                'strike': inst.strike,
                'is_cap': inst.is_cap,
                'quote': inst.quote,
                'model_quote': model_quote,
                'error': model_quote - inst.quote,
                'weight': inst.weight,
                'residual': residual,
            })
        return pd.DataFrame(rows, columns=columns)


__all__ = [
    "CalibrationError",
    "CalibrationResult",
]
