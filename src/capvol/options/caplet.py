"""
Caplet/Floorlet and cap/floor pricing engine.

A caplet is a call option on a forward Ibor rate.
A floorlet is a put option on a forward Ibor rate.

Pricing:
    V_caplet = N * delta_t * DF(T_pay) * BaseModel(F, K, T_fix, sigma)

where:
    - delta_t = accrual year fraction of the period
    - DF(T_pay) = discount factor to payment date
    - F = Ibor forward rate fixing at T_fix
    - sigma = implied volatility from the volatility model at (T_fix, K, F)

A cap (floor) is a strip of caplets (floorlets) on consecutive index
periods with a common strike.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Tuple

import numpy as np
from scipy.optimize import brentq

from ..conventions import year_fraction
from ..curves.metadata import SabrParameterType
from ..dates import DateUtils
from ..index import IborIndex
from ..market_state import RatesProvider
from ..risk.sensitivities import (
    CapletFloorletSabrSensitivity,
    CapletFloorletSensitivity,
    PointSensitivities,
)
from ..vol.volatilities import CapletFloorletVolatilities, SabrParametersVolatilities


@dataclass(frozen=True)
class CapletFloorletPeriod:
    """
    A single caplet or floorlet.

    Attributes:
        index: Ibor index observed
        fixing_date: Fixing (option expiry) date
        start_date: Accrual start
        end_date: Accrual end
        payment_date: Payment date
        year_fraction: Accrual year fraction
        strike: Strike rate
        notional: Notional amount
        is_cap: True for caplet, False for floorlet
    """
    index: IborIndex
    fixing_date: date
    start_date: date
    end_date: date
    payment_date: date
    year_fraction: float
    strike: float
    notional: float = 1.0
    is_cap: bool = True


@dataclass(frozen=True)
class CapFloor:
    """A strip of caplets or floorlets with a common strike."""
    periods: Tuple[CapletFloorletPeriod, ...]

    def __post_init__(self):
        if len(self.periods) == 0:
            raise ValueError("Cap/floor needs at least one period")
        object.__setattr__(self, 'periods', tuple(self.periods))

    @property
    def strike(self) -> float:
        return self.periods[0].strike

    @property
    def is_cap(self) -> bool:
        return self.periods[0].is_cap

    @property
    def start_date(self) -> date:
        return self.periods[0].start_date

    @property
    def end_date(self) -> date:
        return self.periods[-1].end_date

    @property
    def last_fixing_date(self) -> date:
        return self.periods[-1].fixing_date

    def with_strike(self, strike: float, is_cap: Optional[bool] = None) -> "CapFloor":
        """Same schedule with another strike (and optionally cap/floor flag)."""
        flag = self.is_cap if is_cap is None else is_cap
        return CapFloor(tuple(
            CapletFloorletPeriod(
                p.index, p.fixing_date, p.start_date, p.end_date, p.payment_date,
                p.year_fraction, strike, p.notional, flag
            )
            for p in self.periods
        ))


def create_cap_floor(
    index: IborIndex,
    valuation_date: date,
    tenor: str,
    strike: float,
    is_cap: bool = True,
    notional: float = 1.0
) -> CapFloor:
    """
    Create a spot-starting cap or floor in market convention.

    The cap accrues from spot (valuation date plus the index fixing offset)
    to spot plus tenor in index-tenor periods. The first caplet, which
    fixes on the valuation date, is excluded.

    Args:
        index: Ibor index
        valuation_date: Trade date
        tenor: Cap tenor, e.g. "5Y"
        strike: Strike rate
        is_cap: True for cap, False for floor
        notional: Notional amount

    Returns:
        CapFloor
    """
    spot = index.effective_date(valuation_date)
    end = DateUtils.add_tenor(spot, tenor)
    schedule = DateUtils.generate_periods(spot, end, index.tenor)
    if len(schedule) < 2:
        raise ValueError(f"Cap tenor {tenor} must be longer than the index tenor {index.tenor}")

    periods = []
    for start, period_end in schedule[1:]:
        periods.append(CapletFloorletPeriod(
            index=index,
            fixing_date=index.fixing_date(start),
            start_date=start,
            end_date=period_end,
            payment_date=period_end,
            year_fraction=year_fraction(start, period_end, index.day_count),
            strike=strike,
            notional=notional,
            is_cap=is_cap,
        ))
    return CapFloor(tuple(periods))


class CapletPricer:
    """
    Caplet/Floorlet pricing engine.

    Forward rates come from the rates provider, the volatility and price
    convention (shifted Black or Normal) from the volatility model.
    """

    def forward_rate(self, period: CapletFloorletPeriod, rates: RatesProvider) -> float:
        """Ibor forward rate of the period."""
        return rates.ibor_rate(period.index, period.fixing_date)

    def _scale(self, period: CapletFloorletPeriod, rates: RatesProvider) -> float:
        return period.notional * period.year_fraction * rates.discount_factor(period.payment_date)

    def _inputs(self, period: CapletFloorletPeriod, rates: RatesProvider, vols: CapletFloorletVolatilities):
        expiry = vols.relative_time(period.fixing_date)
        forward = self.forward_rate(period, rates)
        if expiry <= 0:
            return expiry, forward, 0.0
        return expiry, forward, vols.volatility(expiry, period.strike, forward)

    def implied_volatility(
        self,
        period: CapletFloorletPeriod,
        rates: RatesProvider,
        vols: CapletFloorletVolatilities
    ) -> float:
        """Volatility used to price the period."""
        return self._inputs(period, rates, vols)[2]

    def price(self, period: CapletFloorletPeriod, rates: RatesProvider, vols: CapletFloorletVolatilities) -> float:
        """
        Present value of a caplet or floorlet.

        Periods that have fixed (expiry not after valuation) are priced at
        intrinsic value on the current forward.
        """
        expiry, forward, vol = self._inputs(period, rates, vols)
        return self._scale(period, rates) * vols.price(max(expiry, 0.0), period.is_cap, period.strike, forward, vol)

    def price_vega(self, period: CapletFloorletPeriod, rates: RatesProvider, vols: CapletFloorletVolatilities) -> float:
        """Present value change per unit of volatility."""
        expiry, forward, vol = self._inputs(period, rates, vols)
        if expiry <= 0:
            return 0.0
        return self._scale(period, rates) * vols.price_vega(expiry, period.is_cap, period.strike, forward, vol)

    def price_delta(self, period: CapletFloorletPeriod, rates: RatesProvider, vols: CapletFloorletVolatilities) -> float:
        """Present value change per unit of forward rate, volatility held fixed."""
        expiry, forward, vol = self._inputs(period, rates, vols)
        return self._scale(period, rates) * vols.price_delta(max(expiry, 0.0), period.is_cap, period.strike, forward, vol)

    def price_sensitivity_volatility(
        self,
        period: CapletFloorletPeriod,
        rates: RatesProvider,
        vols: CapletFloorletVolatilities
    ) -> PointSensitivities:
        """Vega as a point sensitivity at (expiry, strike, forward) of the model."""
        expiry, forward, vol = self._inputs(period, rates, vols)
        if expiry <= 0:
            return PointSensitivities.empty()
        vega = self._scale(period, rates) * vols.price_vega(expiry, period.is_cap, period.strike, forward, vol)
        return PointSensitivities.of(CapletFloorletSensitivity(vols.name, expiry, period.strike, forward, vega))

    def price_sensitivity_model_parameters(
        self,
        period: CapletFloorletPeriod,
        rates: RatesProvider,
        vols: SabrParametersVolatilities
    ) -> PointSensitivities:
        """
        Sensitivity to the SABR parameters at the period expiry.

        The shift sensitivity includes the direct effect of moving the
        shifted forward and strike in the Black formula.
        """
        expiry, forward, vol = self._inputs(period, rates, vols)
        if expiry <= 0:
            return PointSensitivities.empty()
        d = vols.volatility_adjoint(expiry, period.strike, forward).derivatives
        greeks = vols.price_greeks(expiry, period.is_cap, period.strike, forward, vol)
        scale = self._scale(period, rates)
        vega = scale * greeks['vega']
        amounts = (
            (SabrParameterType.ALPHA, vega * d[2]),
            (SabrParameterType.BETA, vega * d[3]),
            (SabrParameterType.RHO, vega * d[4]),
            (SabrParameterType.NU, vega * d[5]),
            (SabrParameterType.SHIFT,
             vega * (d[0] + d[1]) + scale * (greeks['delta'] + greeks['dual_delta'])),
        )
        return PointSensitivities(tuple(
            CapletFloorletSabrSensitivity(vols.name, expiry, parameter_type, amount)
            for parameter_type, amount in amounts
        ))


class CapPricer:
    """Cap/floor pricing as the sum over its caplets/floorlets."""

    def __init__(self, caplet_pricer: Optional[CapletPricer] = None):
        self.caplet_pricer = caplet_pricer or CapletPricer()

    def price(self, cap: CapFloor, rates: RatesProvider, vols: CapletFloorletVolatilities) -> float:
        return float(sum(self.caplet_pricer.price(p, rates, vols) for p in cap.periods))

    def price_vega(self, cap: CapFloor, rates: RatesProvider, vols: CapletFloorletVolatilities) -> float:
        return float(sum(self.caplet_pricer.price_vega(p, rates, vols) for p in cap.periods))

    def price_delta(self, cap: CapFloor, rates: RatesProvider, vols: CapletFloorletVolatilities) -> float:
        return float(sum(self.caplet_pricer.price_delta(p, rates, vols) for p in cap.periods))

    def price_sensitivity_volatility(
        self,
        cap: CapFloor,
        rates: RatesProvider,
        vols: CapletFloorletVolatilities
    ) -> PointSensitivities:
        result = PointSensitivities.empty()
        for p in cap.periods:
            result = result.combined_with(self.caplet_pricer.price_sensitivity_volatility(p, rates, vols))
        return result

    def price_sensitivity_model_parameters(
        self,
        cap: CapFloor,
        rates: RatesProvider,
        vols: SabrParametersVolatilities
    ) -> PointSensitivities:
        result = PointSensitivities.empty()
        for p in cap.periods:
            result = result.combined_with(self.caplet_pricer.price_sensitivity_model_parameters(p, rates, vols))
        return result

    def price_sensitivity(
        self,
        cap: CapFloor,
        rates: RatesProvider,
        vols: CapletFloorletVolatilities
    ) -> PointSensitivities:
        """Model-parameter points for SABR models, volatility points otherwise."""
        if isinstance(vols, SabrParametersVolatilities):
            return self.price_sensitivity_model_parameters(cap, rates, vols)
        return self.price_sensitivity_volatility(cap, rates, vols)

    def par_rate(self, cap: CapFloor, rates: RatesProvider) -> float:
        """
        Annuity-weighted average forward of the cap periods.

        This is the ATM strike: the cap and floor at this strike have equal value.
        """
        weights = np.array([
            p.notional * p.year_fraction * rates.discount_factor(p.payment_date) for p in cap.periods
        ])
        forwards = np.array([self.caplet_pricer.forward_rate(p, rates) for p in cap.periods])
        return float(np.dot(weights, forwards) / np.sum(weights))

    def implied_volatility(
        self,
        cap: CapFloor,
        rates: RatesProvider,
        vols_at: Callable[[float], CapletFloorletVolatilities],
        price: float,
        bracket: Tuple[float, float] = (1e-8, 5.0),
        tol: float = 1e-12
    ) -> float:
        """
        Flat volatility that reproduces a cap price.

        Args:
            cap: Cap or floor
            rates: Rates provider
            vols_at: Function mapping a flat volatility to a volatility model
            price: Target present value
            bracket: Volatility search interval
            tol: Tolerance on the volatility

        Returns:
            Implied flat volatility
        """
        low, high = bracket
        f_low = self.price(cap, rates, vols_at(low)) - price
        f_high = self.price(cap, rates, vols_at(high)) - price
        if f_low * f_high > 0:
            raise ValueError(f"Cap price {price} is not attainable with volatility in {bracket}")
        return float(brentq(lambda v: self.price(cap, rates, vols_at(v)) - price, low, high, xtol=tol))


__all__ = [
    "CapletFloorletPeriod",
    "CapFloor",
    "create_cap_floor",
    "CapletPricer",
    "CapPricer",
]
