"""
Tests for caplet/floorlet and cap/floor pricing.
"""

from datetime import date

import pytest
import numpy as np

from capvol.conventions import DayCount
from capvol.curves import CurveMetadata, InterpolatedNodalCurve, create_flat_curve
from capvol.market_state import RatesProvider
from capvol.options.base_models import black76_price, bachelier_price
from capvol.options.caplet import CapletPricer, CapPricer, create_cap_floor
from capvol.vol.volatilities import ExpiryFlatVolatilities


def _flat(index, valuation_date_time, vol, normal=False):
    factory = CurveMetadata.normal_volatility_by_expiry if normal else CurveMetadata.black_volatility_by_expiry
    curve = InterpolatedNodalCurve.of(factory("Flat", DayCount.ACT_365), [1.0], [vol])
    return ExpiryFlatVolatilities(index, valuation_date_time, curve)


class TestCapConstruction:
    """Tests for cap schedules."""

    def test_first_caplet_excluded(self, index, valuation_date):
        """A 1Y cap on a 3M index has three caplets."""
        cap = create_cap_floor(index, valuation_date, "1Y", 0.03)
        assert len(cap.periods) == 3
        assert cap.start_date == date(2024, 4, 17)
        assert cap.end_date == date(2025, 1, 17)

    def test_fixing_dates(self, index, valuation_date):
        """Each caplet fixes two business days before it starts."""
        cap = create_cap_floor(index, valuation_date, "2Y", 0.03)
        for period in cap.periods:
            assert period.fixing_date < period.start_date
            assert index.effective_date(period.fixing_date) == period.start_date
        assert cap.last_fixing_date == cap.periods[-1].fixing_date

    def test_with_strike(self, index, valuation_date):
        """Changing the strike keeps the schedule."""
        cap = create_cap_floor(index, valuation_date, "2Y", 0.03)
        floor = cap.with_strike(0.02, is_cap=False)
        assert floor.strike == 0.02
        assert not floor.is_cap
        assert [p.fixing_date for p in floor.periods] == [p.fixing_date for p in cap.periods]

    def test_short_tenor_rejected(self, index, valuation_date):
        """A cap needs more than one index period."""
        with pytest.raises(ValueError):
            create_cap_floor(index, valuation_date, "3M", 0.03)


class TestCapletPricer:
    """Tests for single period pricing."""

    def test_black_price(self, index, valuation_date, valuation_date_time, rates):
        """Caplet price is accrual times discount factor times Black."""
        vols = _flat(index, valuation_date_time, 0.25)
        period = create_cap_floor(index, valuation_date, "1Y", 0.028).periods[0]
        pricer = CapletPricer()
        forward = pricer.forward_rate(period, rates)
        expiry = vols.relative_time(period.fixing_date)
        expected = (
            period.year_fraction * rates.discount_factor(period.payment_date)
            * black76_price(forward, 0.028, expiry, 0.25)
        )
        assert pricer.price(period, rates, vols) == pytest.approx(expected, rel=1e-12)

    def test_normal_price(self, index, valuation_date, valuation_date_time, rates):
        """Normal volatilities price with Bachelier."""
        vols = _flat(index, valuation_date_time, 0.009, normal=True)
        period = create_cap_floor(index, valuation_date, "1Y", 0.028, is_cap=False).periods[1]
        pricer = CapletPricer()
        forward = pricer.forward_rate(period, rates)
        expiry = vols.relative_time(period.fixing_date)
        expected = (
            period.year_fraction * rates.discount_factor(period.payment_date)
            * bachelier_price(forward, 0.028, expiry, 0.009, False)
        )
        assert pricer.price(period, rates, vols) == pytest.approx(expected, rel=1e-12)

    def test_vega_matches_bump(self, index, valuation_date, valuation_date_time, rates):
        """Vega agrees with a volatility bump."""
        period = create_cap_floor(index, valuation_date, "2Y", 0.03).periods[4]
        pricer = CapletPricer()
        h = 1e-6
        up = pricer.price(period, rates, _flat(index, valuation_date_time, 0.2 + h))
        down = pricer.price(period, rates, _flat(index, valuation_date_time, 0.2 - h))
        vega = pricer.price_vega(period, rates, _flat(index, valuation_date_time, 0.2))
        assert vega == pytest.approx((up - down) / (2 * h), rel=1e-6)


class TestCapPricer:
    """Tests for cap/floor pricing."""

    def test_par_rate_near_flat_rate(self, index, valuation_date, rates):
        """On a flat 3% continuous curve the par rate is near 3%."""
        cap = create_cap_floor(index, valuation_date, "5Y", 0.0)
        par = CapPricer().par_rate(cap, rates)
        assert 0.029 < par < 0.032

    def test_cap_floor_parity_at_par(self, index, valuation_date, valuation_date_time, rates):
        """Cap and floor struck at the par rate have equal value."""
        pricer = CapPricer()
        vols = _flat(index, valuation_date_time, 0.3)
        cap = create_cap_floor(index, valuation_date, "5Y", 0.0)
        par = pricer.par_rate(cap, rates)
        cap_value = pricer.price(cap.with_strike(par, True), rates, vols)
        floor_value = pricer.price(cap.with_strike(par, False), rates, vols)
        assert abs(cap_value - floor_value) < 1e-14

    def test_price_is_sum_of_caplets(self, index, valuation_date, valuation_date_time, rates):
        """Cap value is the sum of its caplets."""
        vols = _flat(index, valuation_date_time, 0.3)
        cap = create_cap_floor(index, valuation_date, "3Y", 0.025)
        caplets = sum(CapletPricer().price(p, rates, vols) for p in cap.periods)
        assert CapPricer().price(cap, rates, vols) == pytest.approx(caplets, rel=1e-14)

    @pytest.mark.parametrize("normal,vol", [(False, 0.23), (True, 0.0075)])
    def test_implied_volatility_round_trip(self, index, valuation_date, valuation_date_time, rates, normal, vol):
        """Implied flat volatility recovers the pricing volatility."""
        pricer = CapPricer()
        cap = create_cap_floor(index, valuation_date, "4Y", 0.035)
        price = pricer.price(cap, rates, _flat(index, valuation_date_time, vol, normal))
        implied = pricer.implied_volatility(
            cap, rates, lambda v: _flat(index, valuation_date_time, v, normal), price
        )
        assert abs(implied - vol) < 1e-10

    def test_model_factory_called_inside_bracket(self, index, valuation_date, valuation_date_time, rates):
        """The model factory receives flat volatilities from the search interval only."""
        pricer = CapPricer()
        cap = create_cap_floor(index, valuation_date, "3Y", 0.03)
        price = pricer.price(cap, rates, _flat(index, valuation_date_time, 0.2))
        requested = []

        def vols_at(vol):
            requested.append(vol)
            return _flat(index, valuation_date_time, vol)

        implied = pricer.implied_volatility(cap, rates, vols_at, price, bracket=(0.05, 0.6))
        assert implied == pytest.approx(0.2, abs=1e-10)
        assert requested[:2] == [0.05, 0.6]
        assert all(0.05 <= v <= 0.6 for v in requested)

    def test_unattainable_price(self, index, valuation_date, valuation_date_time, rates):
        """A price above the bracket raises."""
        pricer = CapPricer()
        cap = create_cap_floor(index, valuation_date, "2Y", 0.03)
        with pytest.raises(ValueError):
            pricer.implied_volatility(cap, rates, lambda v: _flat(index, valuation_date_time, v), 1.0)

    def test_forward_curve_used(self, index, valuation_date, valuation_date_time, rates):
        """A separate forwarding curve moves the forwards but not the discounting."""
        cap = create_cap_floor(index, valuation_date, "2Y", 0.03)
        shifted = rates.with_forward_curve(index, create_flat_curve(valuation_date, 0.04))
        pricer = CapPricer()
        assert pricer.par_rate(cap, shifted) > pricer.par_rate(cap, rates) + 0.009
        vols = _flat(index, valuation_date_time, 0.2)
        assert pricer.price(cap, shifted, vols) > pricer.price(cap, rates, vols)
