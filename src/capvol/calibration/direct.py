"""
Direct calibration of caplet volatilities.

The unknowns are the caplet volatilities themselves, at every caplet expiry
(flat curve) or at every caplet expiry and quoted strike (surface). There
are usually many more nodes than quotes; a roughness penalty picks the
smoothest term structure or surface that fits the quotes.
"""

import logging
from datetime import datetime
from typing import Optional

import numpy as np

from ..curves.metadata import ValueType
from ..curves.nodal import ConstantCurve, InterpolatedNodalCurve, ParameterCurve
from ..market_state import RatesProvider
from ..options.caplet import CapPricer
from ..vol.quotes import RawOptionData
from ..vol.surface import InterpolatedNodalSurface
from ..vol.volatilities import ExpiryFlatVolatilities, ExpiryStrikeVolatilities
from .definitions import (
    DirectIborCapletFloorletFlatVolatilityDefinition,
    DirectIborCapletFloorletVolatilityDefinition,
)
from .least_squares import data_sensitivity, solve_least_squares
from .objective import CalibrationObjective, ObjectiveBuilder
from .result import CalibrationResult
from .settings import CalibrationSettings

LOGGER = logging.getLogger(__name__)


def quote_shift_curve(name: str, raw_data: RawOptionData) -> Optional[ConstantCurve]:
    """Constant shift curve for shifted Black quotes, None otherwise."""
    if raw_data.data_type == ValueType.BLACK_VOLATILITY and raw_data.shift != 0.0:
        return ConstantCurve.of(f"{name}-Shift", raw_data.shift)
    return None


def _check_node_count(name: str, nodes: int, quotes: int, penalized: bool) -> None:
    if nodes > quotes and not penalized:
        raise ValueError(
            f"Calibration '{name}' has {nodes} nodes for {quotes} quotes and no penalty"
        )


def calibrate_flat(
    definition: DirectIborCapletFloorletFlatVolatilityDefinition,
    valuation_date_time: datetime,
    raw_data: RawOptionData,
    rates: RatesProvider,
    settings: CalibrationSettings,
    pricer: Optional[CapPricer] = None
) -> CalibrationResult:
    """
    Calibrate a strike-independent caplet volatility curve.

    Nodes are the distinct caplet expiries of all market caps; the start
    value is the median quote.

    Raises:
        ValueError: for more nodes than quotes without penalty
        CalibrationError: on non-convergence
    """
    builder = ObjectiveBuilder(definition.index, valuation_date_time, rates, definition.day_count, pricer)
    objective = CalibrationObjective(builder, raw_data, builder.build(raw_data))
    nodes = np.unique(np.concatenate([inst.caplet_expiries for inst in objective.instruments]))
    _check_node_count(definition.name, len(nodes), objective.size, definition.lambda_ > 0)

    metadata = definition.create_curve_metadata(raw_data)
    shift_curve = quote_shift_curve(definition.name, raw_data)
    curve = InterpolatedNodalCurve.of(
        metadata, nodes, np.full(len(nodes), np.median(objective.quotes)),
        definition.interpolator, definition.extrapolator_left, definition.extrapolator_right
    )
    penalty = definition.compute_penalty_matrix(nodes) if definition.lambda_ > 0 else None

    def to_vols(x):
        return ExpiryFlatVolatilities(definition.index, valuation_date_time, curve.with_y_values(x), shift_curve)

    fit = solve_least_squares(
        lambda x: objective.residuals(to_vols(x)),
        lambda x: objective.jacobian(to_vols(x), [curve.name]),
        np.array(curve.y_values),
        settings,
        penalty,
        definition.name,
    )
    LOGGER.info(
        "Calibrated flat volatilities '%s': %d nodes, %d quotes, %d evaluations, residual norm %.3e",
        definition.name, len(nodes), objective.size, fit.iterations, fit.residual_norm
    )
    return CalibrationResult(
        volatilities=to_vols(fit.x),
        converged=True,
        iterations=fit.iterations,
        residual_norm=fit.residual_norm,
        chi_square=fit.chi_square,
        residuals=tuple(float(r) for r in fit.residuals),
        data_sensitivity=(
            data_sensitivity(fit.jacobian, objective.weights, penalty)
            if settings.compute_data_sensitivity else None
        ),
        objective=objective,
    )


def calibrate_surface(
    definition: DirectIborCapletFloorletVolatilityDefinition,
    valuation_date_time: datetime,
    raw_data: RawOptionData,
    rates: RatesProvider,
    settings: CalibrationSettings,
    pricer: Optional[CapPricer] = None
) -> CalibrationResult:
    """
    Calibrate a caplet volatility surface.

    Nodes are every (caplet expiry, quoted strike) pair in expiry-major
    order; the start value is the median quote.

    Raises:
        ValueError: for a flat quote grid, or more nodes than quotes without penalty
        CalibrationError: on non-convergence
    """
    if raw_data.is_flat:
        raise ValueError(f"Surface calibration '{definition.name}' needs quotes by strike")
    builder = ObjectiveBuilder(definition.index, valuation_date_time, rates, definition.day_count, pricer)
    objective = CalibrationObjective(builder, raw_data, builder.build(raw_data))
    expiries = np.unique(np.concatenate([inst.caplet_expiries for inst in objective.instruments]))
    strikes = np.array(raw_data.strikes)
    _check_node_count(definition.name, len(expiries) * len(strikes), objective.size, definition.has_penalty)

    metadata = definition.create_metadata(raw_data)
    shift_curve: Optional[ParameterCurve] = None
    if raw_data.data_type == ValueType.BLACK_VOLATILITY:
        shift_curve = definition.shift_curve or quote_shift_curve(definition.name, raw_data)
    x = np.repeat(expiries, len(strikes))
    y = np.tile(strikes, len(expiries))
    surface = InterpolatedNodalSurface.of(
        metadata, x, y, np.full(len(x), np.median(objective.quotes)), definition.interpolator
    )
    penalty = definition.compute_penalty_matrix(strikes, expiries) if definition.has_penalty else None

    def to_vols(z):
        return ExpiryStrikeVolatilities(definition.index, valuation_date_time, surface.with_z_values(z), shift_curve)

    fit = solve_least_squares(
        lambda z: objective.residuals(to_vols(z)),
        lambda z: objective.jacobian(to_vols(z), [surface.name]),
        np.array(surface.z_values),
        settings,
        penalty,
        definition.name,
    )
    LOGGER.info(
        "Calibrated volatility surface '%s': %d nodes, %d quotes, %d evaluations, residual norm %.3e",
        definition.name, len(x), objective.size, fit.iterations, fit.residual_norm
    )
    return CalibrationResult(
        volatilities=to_vols(fit.x),
        converged=True,
        iterations=fit.iterations,
        residual_norm=fit.residual_norm,
        chi_square=fit.chi_square,
        residuals=tuple(float(r) for r in fit.residuals),
        data_sensitivity=(
            data_sensitivity(fit.jacobian, objective.weights, penalty)
            if settings.compute_data_sensitivity else None
        ),
        objective=objective,
    )


__all__ = [
    "quote_shift_curve",
    "calibrate_flat",
    "calibrate_surface",
]
