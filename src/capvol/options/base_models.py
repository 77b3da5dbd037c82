"""
Base option pricing models.

Implements:
- Bachelier (normal) model for rates options
- Black'76 model for forward options
- Shifted Black for negative rates

These are the "base models" that take an implied vol as input. Prices are
per unit notional and unit accrual; df scales to present value. Greeks
returned by the *_greeks functions:
- delta: dP/dF
- dual_delta: dP/dK
- gamma: d2P/dF2
- vega: dP/dsigma
- theta: driftless time decay, -dP/dT
"""

from typing import Dict
import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm


# Standard normal CDF and PDF
N = norm.cdf
n = norm.pdf


def _intrinsic(F: float, K: float, is_call: bool) -> float:
    return max(F - K, 0.0) if is_call else max(K - F, 0.0)


def _intrinsic_greeks(F: float, K: float, df: float, is_call: bool) -> Dict[str, float]:
    in_the_money = (F > K) if is_call else (F < K)
    sign = 1.0 if is_call else -1.0
    return {
        'delta': sign * df if in_the_money else 0.0,
        'dual_delta': -sign * df if in_the_money else 0.0,
        'gamma': 0.0,
        'vega': 0.0,
        'theta': 0.0,
    }


def bachelier_price(
    F: float,
    K: float,
    T: float,
    sigma_n: float,
    is_call: bool = True,
    df: float = 1.0
) -> float:
    """
    Bachelier (normal) model option price.

    Assumes forward follows arithmetic Brownian motion:
    dF = sigma_n * dW

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry (years)
        sigma_n: Normal volatility
        is_call: True for call (caplet), False for put (floorlet)
        df: Discount factor to payment

    Returns:
        Option price
    """
    if T <= 0 or sigma_n <= 0:
        return _intrinsic(F, K, is_call) * df

    sqrt_t = np.sqrt(T)
    d = (F - K) / (sigma_n * sqrt_t)

    if is_call:
        return float(df * ((F - K) * N(d) + sigma_n * sqrt_t * n(d)))
    return float(df * ((K - F) * N(-d) + sigma_n * sqrt_t * n(d)))


def black76_price(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    is_call: bool = True,
    df: float = 1.0
) -> float:
    """
    Black'76 model option price.

    Assumes forward follows geometric Brownian motion:
    dF = sigma_b * F * dW

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry
        sigma_b: Black (lognormal) volatility
        is_call: True for call (caplet), False for put (floorlet)
        df: Discount factor

    Returns:
        Option price
    """
    if F <= 0 or K <= 0:
        raise ValueError(f"Forward ({F}) and strike ({K}) must be positive for Black model")

    if T <= 0 or sigma_b <= 0:
        return _intrinsic(F, K, is_call) * df

    sqrt_t = np.sqrt(T)
    d1 = (np.log(F / K) + 0.5 * sigma_b**2 * T) / (sigma_b * sqrt_t)
    d2 = d1 - sigma_b * sqrt_t

    if is_call:
        return float(df * (F * N(d1) - K * N(d2)))
    return float(df * (K * N(-d2) - F * N(-d1)))


def shifted_black_price(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    shift: float,
    is_call: bool = True,
    df: float = 1.0
) -> float:
    """
    Shifted Black'76 model option price.

    Allows pricing when forward can be negative:
    d(F + shift) = sigma_b * (F + shift) * dW
    """
    return black76_price(F + shift, K + shift, T, sigma_b, is_call, df)


def bachelier_greeks(
    F: float,
    K: float,
    T: float,
    sigma_n: float,
    is_call: bool = True,
    df: float = 1.0
) -> Dict[str, float]:
    """
    Compute Greeks for Bachelier model.

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry
        sigma_n: Normal volatility
        is_call: True for call, False for put
        df: Discount factor

    Returns:
        Dict with delta, dual_delta, gamma, vega, theta
    """
    if T <= 0 or sigma_n <= 0:
        return _intrinsic_greeks(F, K, df, is_call)

    sqrt_t = np.sqrt(T)
    d = (F - K) / (sigma_n * sqrt_t)

    if is_call:
        delta = df * N(d)
    else:
        delta = -df * N(-d)

    return {
        'delta': float(delta),
        'dual_delta': float(-delta),
        'gamma': float(df * n(d) / (sigma_n * sqrt_t)),
        'vega': float(df * sqrt_t * n(d)),
        'theta': float(-df * sigma_n * n(d) / (2 * sqrt_t)),
    }


def black76_greeks(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    is_call: bool = True,
    df: float = 1.0
) -> Dict[str, float]:
    """
    Compute Greeks for Black'76 model.

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry
        sigma_b: Black volatility
        is_call: True for call, False for put
        df: Discount factor

    Returns:
        Dict with delta, dual_delta, gamma, vega, theta
    """
    if F <= 0 or K <= 0:
        raise ValueError(f"Forward ({F}) and strike ({K}) must be positive for Black model")

    if T <= 0 or sigma_b <= 0:
        return _intrinsic_greeks(F, K, df, is_call)

    sqrt_t = np.sqrt(T)
    d1 = (np.log(F / K) + 0.5 * sigma_b**2 * T) / (sigma_b * sqrt_t)
    d2 = d1 - sigma_b * sqrt_t

    if is_call:
        delta = df * N(d1)
        dual_delta = -df * N(d2)
    else:
        delta = -df * N(-d1)
        dual_delta = df * N(-d2)

    return {
        'delta': float(delta),
        'dual_delta': float(dual_delta),
        'gamma': float(df * n(d1) / (F * sigma_b * sqrt_t)),
        'vega': float(df * F * sqrt_t * n(d1)),
        'theta': float(-df * F * sigma_b * n(d1) / (2 * sqrt_t)),
    }


def shifted_black_greeks(
    F: float,
    K: float,
    T: float,
    sigma_b: float,
    shift: float,
    is_call: bool = True,
    df: float = 1.0
) -> Dict[str, float]:
    """Greeks of the shifted Black model; derivatives are with respect to the unshifted F and K."""
    return black76_greeks(F + shift, K + shift, T, sigma_b, is_call, df)


def _implied_vol(pricer, price: float, F: float, K: float, T: float,
                 is_call: bool, upper: float, tol: float) -> float:
    if T <= 0:
        raise ValueError("Cannot compute implied vol for expired option")
    intrinsic = _intrinsic(F, K, is_call)
    if price < intrinsic - tol:
        raise ValueError(f"Price {price} is below intrinsic value {intrinsic}")
    if price <= intrinsic + tol:
        return 0.0
    if pricer(upper) < price:
        raise ValueError(f"Price {price} is above the price at volatility {upper}")
    return float(brentq(lambda s: pricer(s) - price, 1e-12, upper, xtol=tol))


def implied_vol_bachelier(
    price: float,
    F: float,
    K: float,
    T: float,
    is_call: bool = True,
    tol: float = 1e-14,
    upper: float = 1.0
) -> float:
    """
    Compute implied normal volatility from an undiscounted option price.

    Uses Brent's method on [1e-12, upper].

    Args:
        price: Option price per unit notional and accrual, undiscounted
        F: Forward rate
        K: Strike
        T: Time to expiry
        is_call: True for call, False for put
        tol: Convergence tolerance on the volatility
        upper: Upper end of the volatility bracket

    Returns:
        Implied normal volatility
    """
    return _implied_vol(
        lambda s: bachelier_price(F, K, T, s, is_call), price, F, K, T, is_call, upper, tol
    )


def implied_vol_black(
    price: float,
    F: float,
    K: float,
    T: float,
    is_call: bool = True,
    shift: float = 0.0,
    tol: float = 1e-14,
    upper: float = 10.0
) -> float:
    """
    Compute implied (shifted) Black volatility from an undiscounted option price.

    Args:
        price: Option price per unit notional and accrual, undiscounted
        F: Forward rate
        K: Strike
        T: Time to expiry
        is_call: True for call, False for put
        shift: Shift applied to forward and strike
        tol: Convergence tolerance on the volatility
        upper: Upper end of the volatility bracket

    Returns:
        Implied Black volatility
    """
    if F + shift <= 0 or K + shift <= 0:
        raise ValueError("Shifted forward and strike must be positive")
    return _implied_vol(
        lambda s: shifted_black_price(F, K, T, s, shift, is_call), price, F, K, T, is_call, upper, tol
    )


__all__ = [
    "bachelier_price",
    "black76_price",
    "shifted_black_price",
    "bachelier_greeks",
    "black76_greeks",
    "shifted_black_greeks",
    "implied_vol_bachelier",
    "implied_vol_black",
]
