"""
Calibration instruments and objective.

ObjectiveBuilder turns a quote grid into market caps and floors, one per
available (expiry, strike) cell in grid order, and prices each under its
own quote to get the market price and vega.

CalibrationObjective measures a volatility model against those prices:

    residual_i = w_i * (PV_model_i - PV_market_i) / vega_market_i

which is, to first order, the weighted difference between the flat
volatility implied by the model and the quoted volatility. The Jacobian
comes from the pricer point sensitivities chained through the model's
parameter sensitivity.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..conventions import DayCount, relative_year_fraction
from ..curves.metadata import SurfaceMetadata, ValueType
from ..curves.nodal import ConstantCurve
from ..index import IborIndex
from ..market_state import RatesProvider
from ..options.caplet import CapFloor, CapPricer, create_cap_floor
from ..vol.quotes import RawOptionData
from ..vol.surface import InterpolatedNodalSurface
from ..vol.volatilities import CapletFloorletVolatilities, ExpiryStrikeVolatilities

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationInstrument:
    """
    One market cap or floor with its quote.

    Attributes:
        expiry_tenor: Cap tenor from the grid
        row: Expiry index in the grid
        column: Strike index in the grid (0 for a flat grid)
        cap: Cap or floor at the quoted strike
        quote: Quoted volatility
        weight: Residual weight (1 or 1/error)
        market_price: Present value under the quote
        market_vega: Present value vega under the quote
        expiry: Last caplet expiry year fraction
        caplet_expiries: Expiry year fraction of every caplet
    """
    expiry_tenor: str
    row: int
    column: int
    cap: CapFloor
    quote: float
    weight: float
    market_price: float
    market_vega: float
    expiry: float
    caplet_expiries: Tuple[float, ...]

    @property
    def strike(self) -> float:
        return self.cap.strike

    @property
    def is_cap(self) -> bool:
        return self.cap.is_cap


class ObjectiveBuilder:
    """
    Build calibration instruments from a quote grid.

    Args:
        index: Ibor index of the caps
        valuation_date_time: Valuation date-time
        rates: Discount and forward curves
        day_count: Day count measuring expiry (the definition's)
        pricer: Cap pricer
    """

    def __init__(
        self,
        index: IborIndex,
        valuation_date_time: datetime,
        rates: RatesProvider,
        day_count: DayCount,
        pricer: Optional[CapPricer] = None
    ):
        self.index = index
        self.valuation_date_time = valuation_date_time
        self.rates = rates
        self.day_count = day_count
        self.pricer = pricer or CapPricer()

    def market_volatilities(
        self,
        raw_data: RawOptionData,
        volatility: float
    ) -> ExpiryStrikeVolatilities:
        """Volatilities flat at the quoted level, in the quote convention."""
        if raw_data.data_type == ValueType.BLACK_VOLATILITY:
            metadata = SurfaceMetadata.black_volatility_by_expiry_strike("Market quote", self.day_count)
        elif raw_data.data_type == ValueType.NORMAL_VOLATILITY:
            metadata = SurfaceMetadata.normal_volatility_by_expiry_strike("Market quote", self.day_count)
        else:
            raise ValueError(f"Data type not supported: {raw_data.data_type.value}")
        surface = InterpolatedNodalSurface.of(metadata, [1.0], [0.0], [volatility])
        shift_curve = None
        if raw_data.data_type == ValueType.BLACK_VOLATILITY and raw_data.shift != 0.0:
            shift_curve = ConstantCurve.of("Market quote shift", raw_data.shift)
        return ExpiryStrikeVolatilities(self.index, self.valuation_date_time, surface, shift_curve)

    def caplet_expiries(self, cap: CapFloor) -> Tuple[float, ...]:
        valuation_date = self.valuation_date_time.date()
        return tuple(
            relative_year_fraction(valuation_date, p.fixing_date, self.day_count) for p in cap.periods
        )

    def build(self, raw_data: RawOptionData) -> List[CalibrationInstrument]:
        """
        One instrument per available quote, expiry ascending then strike ascending.

        A strike at or above the ATM rate gives a cap, below it a floor. A
        flat grid uses the ATM rate as strike.

        Raises:
            ValueError: for price quotes or a quote without vega
        """
        if raw_data.data_type not in (ValueType.BLACK_VOLATILITY, ValueType.NORMAL_VOLATILITY):
            raise ValueError(f"Data type not supported: {raw_data.data_type.value}")

        valuation_date = self.valuation_date_time.date()
        instruments = []
        skipped = 0
        for i, tenor in enumerate(raw_data.expiries):
            template = create_cap_floor(self.index, valuation_date, tenor, 0.0)
            atm = self.pricer.par_rate(template, self.rates)
            expiries = self.caplet_expiries(template)
            for j, quote in enumerate(raw_data.data[i]):
                if quote is None:
                    skipped += 1
                    continue
                strike = atm if raw_data.is_flat else raw_data.strikes[j]
                cap = template.with_strike(strike, strike >= atm)
                market = self.market_volatilities(raw_data, quote)
                price = self.pricer.price(cap, self.rates, market)
                vega = self.pricer.price_vega(cap, self.rates, market)
                if vega <= 0:
                    raise ValueError(f"Quote {quote} at ({tenor}, {strike}) has no vega")
                weight = 1.0 if raw_data.error is None else 1.0 / raw_data.error[i][j]
                instruments.append(CalibrationInstrument(
                    expiry_tenor=tenor,
                    row=i,
                    column=j,
                    cap=cap,
                    quote=quote,
                    weight=weight,
                    market_price=price,
                    market_vega=vega,
                    expiry=expiries[-1],
                    caplet_expiries=expiries,
                ))
        if skipped:
            LOGGER.warning("Skipped %d missing quotes", skipped)
        LOGGER.debug("Built %d calibration instruments", len(instruments))
        return instruments


class CalibrationObjective:
    """
    Weighted vega-scaled price residuals of a volatility model.

    Args:
        builder: Builder that produced the instruments
        raw_data: Quote grid
        instruments: Instruments to fit
    """

    def __init__(
        self,
        builder: ObjectiveBuilder,
        raw_data: RawOptionData,
        instruments: Sequence[CalibrationInstrument]
    ):
        self.builder = builder
        self.raw_data = raw_data
        self.instruments = list(instruments)
        self._scale = np.array([inst.weight / inst.market_vega for inst in self.instruments])

    @property
    def size(self) -> int:
        return len(self.instruments)

    @property
    def weights(self) -> np.ndarray:
        return np.array([inst.weight for inst in self.instruments])

    @property
    def quotes(self) -> np.ndarray:
        return np.array([inst.quote for inst in self.instruments])

    def price_differences(self, vols: CapletFloorletVolatilities) -> np.ndarray:
        """Model minus market present value per instrument."""
        pricer = self.builder.pricer
        rates = self.builder.rates
        return np.array([
            pricer.price(inst.cap, rates, vols) - inst.market_price for inst in self.instruments
        ])

    def residuals(self, vols: CapletFloorletVolatilities) -> np.ndarray:
        return self._scale * self.price_differences(vols)

    def jacobian(self, vols: CapletFloorletVolatilities, names: Sequence[str]) -> np.ndarray:
        """
        Derivative of the residuals with respect to the parameters of the
        named curves or surfaces of the model.

        Columns follow names, then the node order of each curve or surface.
        """
        sizes = []
        for name in names:
            data = vols.find_data(name)
            if data is None:
                raise ValueError(f"Volatilities '{vols.name}' have no curve or surface named '{name}'")
            sizes.append(data.parameter_count)

        pricer = self.builder.pricer
        rates = self.builder.rates
        jac = np.zeros((self.size, sum(sizes)))
        for row, (inst, scale) in enumerate(zip(self.instruments, self._scale)):
            points = pricer.price_sensitivity(inst.cap, rates, vols)
            sensitivities = vols.parameter_sensitivity(points)
            offset = 0
            for name, size in zip(names, sizes):
                sens = sensitivities.get(name)
                if sens is not None:
                    jac[row, offset:offset + size] = scale * sens.sensitivity
                offset += size
        return jac

    def implied_quotes(self, vols: CapletFloorletVolatilities) -> np.ndarray:
        """Flat volatility in the quote convention reproducing each model price."""
        pricer = self.builder.pricer
        rates = self.builder.rates
        vols_at: Callable[[float], CapletFloorletVolatilities] = (
            lambda v: self.builder.market_volatilities(self.raw_data, v)
        )
        result = []
        for inst in self.instruments:
            price = pricer.price(inst.cap, rates, vols)
            result.append(pricer.implied_volatility(inst.cap, rates, vols_at, price))
        return np.array(result)


__all__ = [
    "CalibrationInstrument",
    "ObjectiveBuilder",
    "CalibrationObjective",
]
