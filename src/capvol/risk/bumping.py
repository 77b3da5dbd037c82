"""
Finite-difference sensitivities by bump and reprice.

Provides a generic central-difference engine used to check analytic
sensitivities:
- Node bumps of a parameter curve or surface
- Parameter bumps of a volatility model, grouped by curve or surface
- Quote bumps of a quote grid, for recalibration sensitivities
"""

from typing import Callable, List, Sequence

import numpy as np

from ..vol.quotes import RawOptionData
from ..vol.volatilities import (
    CapletFloorletVolatilities,
    ExpiryFlatVolatilities,
    ExpiryStrikeVolatilities,
    SabrParametersVolatilities,
)
from .sensitivities import ParameterSensitivities, ParameterSensitivity


def _model_data(vols: CapletFloorletVolatilities) -> Sequence:
    """Curves and surfaces of a model, in parameter index order."""
    if isinstance(vols, SabrParametersVolatilities):
        return vols.parameters.curves()
    if isinstance(vols, ExpiryStrikeVolatilities):
        return [vols.surface]
    if isinstance(vols, ExpiryFlatVolatilities):
        return [vols.curve]
    raise ValueError(f"Unsupported volatilities: {type(vols).__name__}")


class FiniteDifferenceCalculator:
    """
    Central finite differences.

        dV/dp = (V(p + h) - V(p - h)) / (2h)

    Attributes:
        shift: Bump size h, absolute
    """

    def __init__(self, shift: float = 1e-6):
        if shift <= 0:
            raise ValueError(f"Bump size must be positive, got {shift}")
        self.shift = shift

    def _central(self, bumped: Callable[[int, float], float], size: int) -> np.ndarray:
        result = np.zeros(size)
        for i in range(size):
            result[i] = (bumped(i, self.shift) - bumped(i, -self.shift)) / (2 * self.shift)
        return result

    def parameter_sensitivity(self, data, fn: Callable[[object], float]) -> np.ndarray:
        """
        Node sensitivity of a function of one curve or surface.

        Args:
            data: Object with parameter_count, parameter(i) and with_parameter(i, value)
            fn: Function of the bumped object

        Returns:
            Array of dfn/dnode, in node order
        """
        return self._central(
            lambda i, h: fn(data.with_parameter(i, data.parameter(i) + h)),
            data.parameter_count
        )

    def sensitivity(
        self,
        vols: CapletFloorletVolatilities,
        fn: Callable[[CapletFloorletVolatilities], float]
    ) -> ParameterSensitivities:
        """
        Sensitivity of a function of a volatility model to every model parameter.

        Args:
            vols: Volatility model
            fn: Function of the bumped model (e.g. a present value)

        Returns:
            ParameterSensitivities keyed by curve or surface name
        """
        values = self.parameter_sensitivity(vols, fn)
        result = ParameterSensitivities()
        offset = 0
        for data in _model_data(vols):
            size = data.parameter_count
            result = result.combined_with(ParameterSensitivity(
                data.name, data.metadata.parameter_metadata, values[offset:offset + size]
            ))
            offset += size
        return result

    def quote_sensitivity(
        self,
        raw_data: RawOptionData,
        fn: Callable[[RawOptionData], np.ndarray]
    ) -> np.ndarray:
        """
        Sensitivity of a vector function of a quote grid to each available quote.

        Quotes are taken in grid order, skipping missing cells.

        Args:
            raw_data: Quote grid
            fn: Function of the bumped grid, e.g. calibrated parameters

        Returns:
            len(fn) x quotes matrix
        """
        values = raw_data.values
        cells: List = [tuple(c) for c in np.argwhere(~np.isnan(values))]

        def bumped(i: int, h: float) -> np.ndarray:
            data = values.copy()
            data[cells[i]] += h
            grid = RawOptionData.of(
                raw_data.expiries, raw_data.strikes, raw_data.data_type, data, raw_data.error, raw_data.shift
            )
            return np.asarray(fn(grid), dtype=np.float64)

        columns = [
            (bumped(i, self.shift) - bumped(i, -self.shift)) / (2 * self.shift)
            for i in range(len(cells))
        ]
        return np.column_stack(columns)


__all__ = [
    "FiniteDifferenceCalculator",
]
