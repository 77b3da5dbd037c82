"""
Roughness penalty matrices.

A penalty matrix P gives the smoothness cost x^T P x of a vector of node
values x. It is built from a finite-difference matrix D on the (possibly
non-uniform) node grid:

    P = range^(2k) / (n - k) * D^T D

where k is the difference order, n the node count and range the grid
width. The scaling makes the cost independent of the grid units and node
count, so a single lambda works across grids.

For a surface with nodes in expiry-major order (all strikes of the first
expiry, then the next expiry) the penalties of the two directions combine
as lambda_expiry * (P_t kron I_k) + lambda_strike * (I_t kron P_k).
"""

from typing import Sequence

import numpy as np


def difference_matrix(x: Sequence[float], order: int) -> np.ndarray:
    """
    Finite-difference matrix of order 0, 1 or 2 on a non-uniform grid.

    Row i of the second-order matrix estimates f'' at x[i + 1] with the
    three-point formula, which is exact for quadratics.

    Args:
        x: Strictly increasing grid points
        order: Difference order

    Returns:
        (n - order) x n matrix
    """
    x = np.asarray(x, dtype=np.float64)
    n = len(x)
    if order < 0 or order > 2:
        raise ValueError(f"Difference order must be 0, 1 or 2, got {order}")
    if n <= order:
        raise ValueError(f"Need at least {order + 1} points for a difference of order {order}")
    if np.any(np.diff(x) <= 0):
        raise ValueError("Grid points must be strictly increasing")

    if order == 0:
        return np.eye(n)

    h = np.diff(x)
    if order == 1:
        d = np.zeros((n - 1, n))
        for i in range(n - 1):
            d[i, i] = -1.0 / h[i]
            d[i, i + 1] = 1.0 / h[i]
        return d

    d = np.zeros((n - 2, n))
    for i in range(n - 2):
        h0, h1 = h[i], h[i + 1]
        d[i, i] = 2.0 / (h0 * (h0 + h1))
        d[i, i + 1] = -2.0 / (h0 * h1)
        d[i, i + 2] = 2.0 / (h1 * (h0 + h1))
    return d


def penalty_matrix(x: Sequence[float], order: int = 2) -> np.ndarray:
    """
    Scaled roughness penalty on a one-dimensional grid.

    Args:
        x: Strictly increasing grid points
        order: Difference order (2 penalizes curvature)

    Returns:
        n x n symmetric positive semi-definite matrix
    """
    x = np.asarray(x, dtype=np.float64)
    d = difference_matrix(x, order)
    n = len(x)
    scale = (x[-1] - x[0]) ** (2 * order) / (n - order) if order > 0 else 1.0 / n
    return scale * d.T @ d


def penalty_matrix_2d(
    expiries: Sequence[float],
    strikes: Sequence[float],
    lambda_expiry: float,
    lambda_strike: float,
    order: int = 2
) -> np.ndarray:
    """
    Penalty for a full expiry x strike grid in expiry-major node order.

    Args:
        expiries: Distinct expiries, increasing
        strikes: Distinct strikes, increasing
        lambda_expiry: Weight of roughness along expiry
        lambda_strike: Weight of roughness along strike
        order: Difference order in both directions

    Returns:
        (n_t * n_k) square matrix
    """
    p_t = penalty_matrix(expiries, order)
    p_k = penalty_matrix(strikes, order)
    return (
        lambda_expiry * np.kron(p_t, np.eye(len(strikes)))
        + lambda_strike * np.kron(np.eye(len(expiries)), p_k)
    )


def penalty_residual_matrix(penalty: np.ndarray, cutoff: float = 1e-14) -> np.ndarray:
    """
    Matrix F with F^T F = P, for adding a penalty as residual rows F x.

    Null-space directions of P are dropped, so F has rank(P) rows.

    Args:
        penalty: Symmetric positive semi-definite matrix
        cutoff: Eigenvalues below cutoff * max eigenvalue are treated as zero

    Returns:
        rank(P) x n matrix
    """
    penalty = np.asarray(penalty, dtype=np.float64)
    eigenvalues, eigenvectors = np.linalg.eigh(0.5 * (penalty + penalty.T))
    top = eigenvalues.max(initial=0.0)
    if top <= 0:
        return np.zeros((0, penalty.shape[0]))
    keep = eigenvalues > cutoff * top
    return np.sqrt(eigenvalues[keep])[:, None] * eigenvectors[:, keep].T


__all__ = [
    "difference_matrix",
    "penalty_matrix",
    "penalty_matrix_2d",
    "penalty_residual_matrix",
]
