"""
Penalized nonlinear least squares.

Minimizes

    0.5 * |r(x)|^2 + 0.5 * x^T P x

by appending the rows F x (F^T F = P) to the residual vector and handing the
stacked problem to scipy.optimize.least_squares.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from scipy.optimize import least_squares

from .penalty import penalty_residual_matrix
from .result import CalibrationError
from .settings import CalibrationSettings

LOGGER = logging.getLogger(__name__)


@dataclass
class LeastSquaresFit:
    """Solution of a penalized least squares problem."""
    x: np.ndarray
    residuals: np.ndarray
    jacobian: np.ndarray
    penalty_cost: float
    iterations: int
    status: int
    message: str

    @property
    def residual_norm(self) -> float:
        return float(np.linalg.norm(self.residuals))

    @property
    def chi_square(self) -> float:
        return float(np.dot(self.residuals, self.residuals) + self.penalty_cost)


def solve_least_squares(
    residual_fn: Callable[[np.ndarray], np.ndarray],
    jacobian_fn: Callable[[np.ndarray], np.ndarray],
    x0: np.ndarray,
    settings: CalibrationSettings,
    penalty: Optional[np.ndarray] = None,
    label: str = ""
) -> LeastSquaresFit:
    """
    Solve a penalized least squares problem.

    Levenberg-Marquardt is used whenever the stacked system has at least as
    many rows as unknowns, the trust-region reflective method otherwise.

    Args:
        residual_fn: Residuals at x
        jacobian_fn: Jacobian of the residuals at x
        x0: Starting point
        settings: Solver settings
        penalty: Optional penalty matrix P
        label: Name used in log and error messages

    Returns:
        LeastSquaresFit

    Raises:
        CalibrationError: if the evaluation cap is reached before convergence
    """
    x0 = np.asarray(x0, dtype=np.float64)
    n = len(x0)
    factor = np.zeros((0, n)) if penalty is None else penalty_residual_matrix(penalty)

    def fun(x):
        return np.concatenate([residual_fn(x), factor @ x])

    def jac(x):
        return np.vstack([jacobian_fn(x), factor])

    rows = len(fun(x0))
    method = "lm" if rows >= n else "trf"
    LOGGER.debug("Solving '%s': %d unknowns, %d residual rows, method %s", label, n, rows, method)

    result = least_squares(
        fun,
        x0,
        jac=jac,
        method=method,
        ftol=settings.tolerance,
        xtol=settings.tolerance,
        gtol=settings.gradient_tolerance,
        max_nfev=settings.max_iterations,
    )
    residuals = residual_fn(result.x)
    penalty_rows = factor @ result.x
    fit = LeastSquaresFit(
        x=result.x,
        residuals=residuals,
        jacobian=jacobian_fn(result.x),
        penalty_cost=float(np.dot(penalty_rows, penalty_rows)),
        iterations=int(result.nfev),
        status=int(result.status),
        message=str(result.message),
    )
    if result.status <= 0:
        raise CalibrationError(
            f"Calibration '{label}' did not converge: {result.message}",
            fit.residual_norm,
            fit.iterations,
        )
    LOGGER.debug("Solved '%s' in %d evaluations, residual norm %.3e", label, fit.iterations, fit.residual_norm)
    return fit


def data_sensitivity(
    jacobian: np.ndarray,
    weights: np.ndarray,
    penalty: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    First-order derivative of fitted parameters with respect to the quotes.

    A quote change dq moves the residuals by -w dq, so the normal equations
    give dx/dq = (J^T J + P)^+ J^T diag(w).

    Args:
        jacobian: Residual Jacobian in parameter space (quotes x parameters)
        weights: Residual weights
        penalty: Optional penalty matrix in parameter space

    Returns:
        parameters x quotes matrix
    """
    normal = jacobian.T @ jacobian
    if penalty is not None:
        normal = normal + penalty
    return np.linalg.pinv(normal) @ jacobian.T @ np.diag(weights)


__all__ = [
    "LeastSquaresFit",
    "solve_least_squares",
    "data_sensitivity",
]
