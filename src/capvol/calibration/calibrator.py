"""
Caplet volatility calibrator.

Dispatches a calibration definition to its algorithm:

- DirectIborCapletFloorletFlatVolatilityDefinition: penalized least squares
  on a strike-independent curve
- DirectIborCapletFloorletVolatilityDefinition: penalized least squares on
  an expiry-strike surface
- SabrIborCapletFloorletVolatilityCalibrationDefinition: joint SABR fit
- SabrIborCapletFloorletVolatilityBootstrapDefinition: SABR bootstrap
- SurfaceIborCapletFloorletVolatilityBootstrapDefinition: exact bootstrap
"""

import logging
from datetime import date, datetime, time
from typing import Optional, Union

from ..market_state import RatesProvider
from ..options.caplet import CapPricer
from ..vol.quotes import RawOptionData
from .bootstrap import bootstrap_sabr, bootstrap_surface
from .definitions import (
    DirectIborCapletFloorletFlatVolatilityDefinition,
    DirectIborCapletFloorletVolatilityDefinition,
    IborCapletFloorletVolatilityDefinition,
    SabrIborCapletFloorletVolatilityBootstrapDefinition,
    SabrIborCapletFloorletVolatilityCalibrationDefinition,
    SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
)
from .direct import calibrate_flat, calibrate_surface
from .result import CalibrationError, CalibrationResult
from .sabr import calibrate_sabr
from .settings import CalibrationSettings

LOGGER = logging.getLogger(__name__)


class IborCapletFloorletVolatilityCalibrator:
    """
    Calibrate caplet volatilities to cap/floor quotes.

    Usage:
        calibrator = IborCapletFloorletVolatilityCalibrator(CalibrationSettings.fast())
        result = calibrator.calibrate(definition, valuation_date, raw_data, rates)
        vols = result.volatilities
    """

    def __init__(
        self,
        settings: Optional[CalibrationSettings] = None,
        pricer: Optional[CapPricer] = None
    ):
        self.settings = settings or CalibrationSettings.default()
        self.pricer = pricer or CapPricer()

    def calibrate(
        self,
        definition: IborCapletFloorletVolatilityDefinition,
        valuation_date_time: Union[date, datetime],
        raw_data: RawOptionData,
        rates: RatesProvider
    ) -> CalibrationResult:
        """
        Calibrate the volatilities described by a definition.

        Args:
            definition: Calibration definition
            valuation_date_time: Valuation date-time; a date is taken at midnight
            raw_data: Quote grid
            rates: Discount and forward curves at the valuation date

        Returns:
            CalibrationResult

        Raises:
            ValueError: for an unsupported definition, a quote grid the
                definition cannot use or a rates provider at another date
            CalibrationError: if the solver does not converge
        """
        if not isinstance(valuation_date_time, datetime):
            valuation_date_time = datetime.combine(valuation_date_time, time())
        if rates.valuation_date != valuation_date_time.date():
            raise ValueError(
                f"Rates valuation date {rates.valuation_date} differs from "
                f"calibration date {valuation_date_time.date()}"
            )
        LOGGER.info(
            "Calibrating '%s' (%s) to %s quotes on %s",
            definition.name, type(definition).__name__, raw_data.data_type.value, valuation_date_time.date()
        )
        args = (definition, valuation_date_time, raw_data, rates, self.settings, self.pricer)
        if isinstance(definition, DirectIborCapletFloorletFlatVolatilityDefinition):
            return calibrate_flat(*args)
        if isinstance(definition, DirectIborCapletFloorletVolatilityDefinition):
            return calibrate_surface(*args)
        if isinstance(definition, SabrIborCapletFloorletVolatilityCalibrationDefinition):
            return calibrate_sabr(*args)
        if isinstance(definition, SabrIborCapletFloorletVolatilityBootstrapDefinition):
            return bootstrap_sabr(*args)
        if isinstance(definition, SurfaceIborCapletFloorletVolatilityBootstrapDefinition):
            return bootstrap_surface(*args)
        raise ValueError(f"Unsupported calibration definition: {type(definition).__name__}")


__all__ = [
    "IborCapletFloorletVolatilityCalibrator",
    "CalibrationError",
    "CalibrationResult",
]
