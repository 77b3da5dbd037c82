"""
Bootstrap calibration of caplet volatilities.

Caps are processed by expiry, shortest first. A cap of expiry T_i shares
its caplets before T_{i-1} with the previous cap, so each new expiry only
adds nodes at T_i (its last caplet expiry). With a local interpolator and
flat left extrapolation the new nodes leave the earlier caps unchanged and
every bucket is solved holding the earlier ones fixed.

Two flavours:
- Surface: one node per quote at (T_i, strike), solved by root finding;
  a flat quote grid gives a curve with one node per expiry.
- SABR: one knot per expiry on each free parameter curve, solved by a small
  least squares problem over the smiles of that expiry.
"""

import logging
from datetime import datetime
from itertools import groupby
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import brentq

from ..curves.metadata import CurveMetadata, SabrParameterType, ValueType
from ..curves.nodal import InterpolatedNodalCurve, ParameterCurve
from ..market_state import RatesProvider
from ..options.caplet import CapPricer
from ..vol.quotes import RawOptionData
from ..vol.sabr import SabrParameters
from ..vol.surface import InterpolatedNodalSurface
from ..vol.volatilities import (
    ExpiryFlatVolatilities,
    ExpiryStrikeVolatilities,
    SabrParametersVolatilities,
)
from .definitions import (
    SABR_FAMILIES,
    SabrIborCapletFloorletVolatilityBootstrapDefinition,
    SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
)
from .direct import quote_shift_curve
from .least_squares import data_sensitivity, solve_least_squares
from .objective import CalibrationInstrument, CalibrationObjective, ObjectiveBuilder
from .result import CalibrationError, CalibrationResult
from .settings import CalibrationSettings
from .transforms import ParameterLimitsTransform, default_sabr_transforms

LOGGER = logging.getLogger(__name__)

# Order in which SABR families become unknowns when a bucket has few quotes
BUCKET_PRIORITY = (
    SabrParameterType.ALPHA,
    SabrParameterType.NU,
    SabrParameterType.RHO,
    SabrParameterType.BETA,
)


def _buckets(instruments: List[CalibrationInstrument]) -> List[List[CalibrationInstrument]]:
    return [list(group) for _, group in groupby(instruments, key=lambda inst: inst.row)]


def _result(
    objective: CalibrationObjective,
    vols,
    names: List[str],
    iterations: int,
    settings: CalibrationSettings
) -> CalibrationResult:
    residuals = objective.residuals(vols)
    sensitivity = None
    if settings.compute_data_sensitivity:
        sensitivity = data_sensitivity(objective.jacobian(vols, names), objective.weights)
    return CalibrationResult(
        volatilities=vols,
        converged=True,
        iterations=iterations,
        residual_norm=float(np.linalg.norm(residuals)),
        chi_square=float(np.dot(residuals, residuals)),
        residuals=tuple(float(r) for r in residuals),
        data_sensitivity=sensitivity,
        objective=objective,
    )


def _solve_node(
    objective: CalibrationObjective,
    inst: CalibrationInstrument,
    vols_at,
    settings: CalibrationSettings,
    evaluations: int
) -> Tuple[float, int]:
    """
    Volatility node repricing one quote, with the price evaluations spent.

    Raises:
        CalibrationError: carrying ``evaluations`` plus the evaluations of this node
    """
    pricer = objective.builder.pricer
    rates = objective.builder.rates

    def price_error(v):
        return pricer.price(inst.cap, rates, vols_at(v)) - inst.market_price

    low, high = settings.volatility_bracket
    f_low, f_high = price_error(low), price_error(high)
    if f_low * f_high > 0:
        best = min(abs(f_low), abs(f_high)) * inst.weight / inst.market_vega
        raise CalibrationError(
            f"No volatility in {settings.volatility_bracket} reprices the quote "
            f"{inst.quote} at ({inst.expiry_tenor}, {inst.strike})",
            best,
            evaluations + 2,
        )
    root, info = brentq(
        price_error, low, high, xtol=settings.root_tolerance, maxiter=settings.max_iterations,
        full_output=True, disp=False
    )
    spent = 2 + info.function_calls
    if not info.converged:
        raise CalibrationError(
            f"Root search for ({inst.expiry_tenor}, {inst.strike}) did not converge: {info.flag}",
            abs(price_error(root)) * inst.weight / inst.market_vega,
            evaluations + spent + 1,
        )
    return float(root), spent


def bootstrap_surface(
    definition: SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
    valuation_date_time: datetime,
    raw_data: RawOptionData,
    rates: RatesProvider,
    settings: CalibrationSettings,
    pricer: Optional[CapPricer] = None
) -> CalibrationResult:
    """
    Bootstrap caplet volatilities quote by quote.

    Returns:
        CalibrationResult holding ExpiryStrikeVolatilities, or
        ExpiryFlatVolatilities for a flat quote grid

    Raises:
        CalibrationError: if a quote cannot be repriced within the volatility bracket
    """
    builder = ObjectiveBuilder(definition.index, valuation_date_time, rates, definition.day_count, pricer)
    objective = CalibrationObjective(builder, raw_data, builder.build(raw_data))
    shift_curve: Optional[ParameterCurve] = None
    if raw_data.data_type == ValueType.BLACK_VOLATILITY:
        shift_curve = definition.shift_curve or quote_shift_curve(definition.name, raw_data)
    scheme = definition.interpolator
    evaluations = 0

    if raw_data.is_flat:
        metadata = definition.create_curve_metadata(raw_data)

        def build(x, z):
            curve = InterpolatedNodalCurve.of(
                metadata, x, z, scheme.x_interpolator, scheme.x_extrapolator_left, scheme.x_extrapolator_right
            )
            return ExpiryFlatVolatilities(definition.index, valuation_date_time, curve, shift_curve)

        x: List[float] = []
        z: List[float] = []
        for inst in objective.instruments:
            node, spent = _solve_node(
                objective, inst, lambda v: build(x + [inst.expiry], z + [v]), settings, evaluations
            )
            evaluations += spent
            z.append(node)
            x.append(inst.expiry)
            LOGGER.debug("Bootstrapped %s: %.6f", inst.expiry_tenor, z[-1])
        vols = build(x, z)
    else:
        metadata = definition.create_metadata(raw_data)

        def build(x, y, z):
            surface = InterpolatedNodalSurface.of(metadata, x, y, z, scheme)
            return ExpiryStrikeVolatilities(definition.index, valuation_date_time, surface, shift_curve)

        x, y, z = [], [], []
        for inst in objective.instruments:
            node, spent = _solve_node(
                objective, inst,
                lambda v: build(x + [inst.expiry], y + [inst.strike], z + [v]),
                settings, evaluations
            )
            evaluations += spent
            z.append(node)
            x.append(inst.expiry)
            y.append(inst.strike)
            LOGGER.debug("Bootstrapped (%s, %.6f): %.6f", inst.expiry_tenor, inst.strike, z[-1])
        vols = build(x, y, z)

    LOGGER.info(
        "Bootstrapped volatilities '%s' from %d quotes in %d evaluations",
        definition.name, objective.size, evaluations
    )
    return _result(objective, vols, [definition.name], evaluations, settings)


def _initial_alpha(
    bucket: List[CalibrationInstrument],
    objective: CalibrationObjective,
    data_type: ValueType,
    beta: float,
    shift: float,
    default: float
) -> float:
    """Alpha giving the median quote at the money to leading order."""
    forward = objective.builder.pricer.par_rate(bucket[0].cap, objective.builder.rates) + shift
    if forward <= 0.0:
        return default
    level = float(np.median([inst.quote for inst in bucket]))
    if data_type == ValueType.NORMAL_VOLATILITY:
        return level * forward ** (-beta)
    return level * forward ** (1.0 - beta)


def _sabr_volatilities(
    definition: SabrIborCapletFloorletVolatilityBootstrapDefinition,
    valuation_date_time: datetime,
    metadata: Dict[SabrParameterType, CurveMetadata],
    times: List[float],
    knots: Dict[SabrParameterType, List[float]]
) -> SabrParametersVolatilities:
    curves = []
    for family in SABR_FAMILIES:
        if family not in knots:
            curves.append(definition.fixed_curve())
            continue
        curves.append(InterpolatedNodalCurve.of(
            metadata[family], times, knots[family],
            definition.interpolator, definition.extrapolator_left, definition.extrapolator_right
        ))
    parameters = SabrParameters(
        *curves,
        shift_curve=definition.shift_curve,
        day_count=definition.day_count,
        sabr_volatility_formula=definition.sabr_volatility_formula,
    )
    return SabrParametersVolatilities(definition.name, definition.index, valuation_date_time, parameters)


def bootstrap_sabr(
    definition: SabrIborCapletFloorletVolatilityBootstrapDefinition,
    valuation_date_time: datetime,
    raw_data: RawOptionData,
    rates: RatesProvider,
    settings: CalibrationSettings,
    pricer: Optional[CapPricer] = None,
    transforms: Optional[Sequence[ParameterLimitsTransform]] = None
) -> CalibrationResult:
    """
    Bootstrap SABR parameter curves expiry by expiry.

    Each expiry adds a knot to every free curve. The number of unknowns of a
    bucket is the smaller of the number of free families and the number of
    quotes; families become unknowns in the order alpha, nu, then rho or
    beta. Families that are not unknowns keep the value of the previous knot.

    Args:
        definition: SABR bootstrap definition
        valuation_date_time: Valuation date-time
        raw_data: Quote grid
        rates: Discount and forward curves
        settings: Solver settings
        pricer: Cap pricer
        transforms: Limit transforms for alpha, beta, rho and nu

    Returns:
        CalibrationResult holding SabrParametersVolatilities

    Raises:
        CalibrationError: if a bucket does not converge
    """
    builder = ObjectiveBuilder(definition.index, valuation_date_time, rates, definition.day_count, pricer)
    objective = CalibrationObjective(builder, raw_data, builder.build(raw_data))
    metadata = dict(zip(SABR_FAMILIES, definition.create_sabr_parameter_metadata()))
    limits = dict(zip(SABR_FAMILIES, transforms or default_sabr_transforms()))
    free = definition.free_families()
    priority = [family for family in BUCKET_PRIORITY if family in free]
    initial = dict(zip(SABR_FAMILIES, definition.initial_parameters))

    times: List[float] = []
    knots: Dict[SabrParameterType, List[float]] = {family: [] for family in free}
    iterations = 0
    for bucket in _buckets(objective.instruments):
        t = bucket[0].expiry
        tenor = bucket[0].expiry_tenor

        def build(node):
            return _sabr_volatilities(
                definition, valuation_date_time, metadata,
                times + [t], {family: knots[family] + [node[family]] for family in free}
            )

        if times:
            start = {family: knots[family][-1] for family in free}
        else:
            start = {family: initial[family] for family in free}
            probe = build(start)
            start[SabrParameterType.ALPHA] = _initial_alpha(
                bucket, objective, raw_data.data_type, probe.beta(t), probe.shift(t),
                initial[SabrParameterType.ALPHA]
            )
        unknowns = priority[:min(len(priority), len(bucket))]
        if len(unknowns) < len(priority):
            LOGGER.warning(
                "Expiry %s has %d quotes for %d SABR parameters, solving %s only",
                tenor, len(bucket), len(priority), ", ".join(f.value.lower() for f in unknowns)
            )
        bucket_objective = CalibrationObjective(builder, raw_data, bucket)
        names = [metadata[family].name for family in unknowns]
        # last knot of each unknown curve
        columns = [(k + 1) * (len(times) + 1) - 1 for k in range(len(unknowns))]

        def node_at(y):
            node = dict(start)
            for family, v in zip(unknowns, y):
                node[family] = limits[family].inverse_transform(v)
            return node

        def jacobian(y):
            gradient = np.array([limits[family].inverse_transform_gradient(v) for family, v in zip(unknowns, y)])
            return bucket_objective.jacobian(build(node_at(y)), names)[:, columns] * gradient[None, :]

        try:
            fit = solve_least_squares(
                lambda y: bucket_objective.residuals(build(node_at(y))),
                jacobian,
                np.array([limits[family].transform(start[family]) for family in unknowns]),
                settings,
                None,
                f"{definition.name} {tenor}",
            )
        except CalibrationError as exc:
            raise CalibrationError(
                f"SABR bootstrap '{definition.name}' failed at expiry {tenor}",
                exc.residual_norm,
                iterations + exc.iterations,
            ) from exc
        iterations += fit.iterations
        node = node_at(fit.x)
        times.append(t)
        for family in free:
            knots[family].append(node[family])
        LOGGER.debug(
            "Bootstrapped SABR %s: %s",
            tenor, ", ".join(f"{family.value.lower()}={node[family]:.6f}" for family in free)
        )

    vols = _sabr_volatilities(definition, valuation_date_time, metadata, times, knots)
    LOGGER.info(
        "Bootstrapped SABR '%s' over %d expiries in %d evaluations",
        definition.name, len(times), iterations
    )
    return _result(objective, vols, [metadata[family].name for family in free], iterations, settings)


__all__ = [
    "bootstrap_surface",
    "bootstrap_sabr",
]
