"""
Shared fixtures: a flat 3% market at 2024-01-15 and quote grid builders.
"""

from datetime import date, datetime

import numpy as np
import pytest

from capvol.conventions import DayCount
from capvol.curves import create_flat_curve
from capvol.index import USD_LIBOR_3M
from capvol.market_state import RatesProvider
from capvol.options.caplet import CapPricer, create_cap_floor
from capvol.vol.quotes import RawOptionData
from capvol.calibration.objective import ObjectiveBuilder


VALUATION_DATE = date(2024, 1, 15)


@pytest.fixture
def valuation_date():
    return VALUATION_DATE


@pytest.fixture
def valuation_date_time():
    return datetime(2024, 1, 15)


@pytest.fixture
def index():
    return USD_LIBOR_3M


@pytest.fixture
def rates():
    """Flat 3% continuously compounded discounting and forwarding."""
    return RatesProvider(VALUATION_DATE, create_flat_curve(VALUATION_DATE, 0.03))


@pytest.fixture
def implied_quotes(index, rates, valuation_date_time):
    """
    Function turning a volatility model into a quote grid.

    Each cell holds the flat volatility, in the requested convention, that
    reprices the market cap of that expiry and strike under the model.
    """
    def build(vols, expiries, strikes, data_type, shift=0.0):
        pricer = CapPricer()
        template = RawOptionData.of(
            expiries, strikes, data_type, np.ones((len(expiries), max(1, len(strikes)))), shift=shift
        )
        builder = ObjectiveBuilder(index, valuation_date_time, rates, DayCount.ACT_365, pricer)
        data = np.zeros((len(expiries), max(1, len(strikes))))
        for i, tenor in enumerate(expiries):
            cap = create_cap_floor(index, VALUATION_DATE, tenor, 0.0)
            row_strikes = [pricer.par_rate(cap, rates)] if len(strikes) == 0 else strikes
            for j, strike in enumerate(row_strikes):
                priced = cap.with_strike(strike)
                price = pricer.price(priced, rates, vols)
                data[i, j] = pricer.implied_volatility(
                    priced, rates, lambda v: builder.market_volatilities(template, v), price
                )
        return RawOptionData.of(expiries, strikes, data_type, data, shift=shift)

    return build
