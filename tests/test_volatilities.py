"""
Tests for caplet volatility models and their parameter sensitivities.
"""

from datetime import date, datetime

import pytest
import numpy as np

from capvol.conventions import DayCount
from capvol.curves import (
    ConstantCurve,
    CurveMetadata,
    InterpolatedNodalCurve,
    SabrParameterType,
    SurfaceMetadata,
    ValueType,
)
from capvol.options.caplet import CapPricer, create_cap_floor
from capvol.risk.bumping import FiniteDifferenceCalculator
from capvol.risk.sensitivities import (
    CapletFloorletSabrSensitivity,
    CapletFloorletSensitivity,
    PointSensitivities,
)
from capvol.vol.sabr import SabrParameters
from capvol.vol.surface import GridSurfaceInterpolator, InterpolatedNodalSurface
from capvol.vol.volatilities import (
    ExpiryFlatVolatilities,
    ExpiryStrikeVolatilities,
    SabrParametersVolatilities,
    volatilities_from_dict,
)


DC = DayCount.ACT_365


@pytest.fixture
def surface_vols(index, valuation_date_time):
    x = [0.5, 0.5, 0.5, 1.5, 1.5, 1.5, 3.0, 3.0, 3.0]
    y = [0.015, 0.03, 0.045] * 3
    z = [0.34, 0.28, 0.26, 0.30, 0.25, 0.23, 0.27, 0.22, 0.21]
    surface = InterpolatedNodalSurface.of(
        SurfaceMetadata.black_volatility_by_expiry_strike("Black surface", DC),
        x, y, z, GridSurfaceInterpolator.of("time_square", "linear")
    )
    return ExpiryStrikeVolatilities(index, valuation_date_time, surface)


@pytest.fixture
def flat_vols(index, valuation_date_time):
    curve = InterpolatedNodalCurve.of(
        CurveMetadata.normal_volatility_by_expiry("Normal curve", DC),
        [0.5, 1.0, 2.0, 3.0], [0.0080, 0.0085, 0.0090, 0.0088], "linear", "flat", "flat"
    )
    return ExpiryFlatVolatilities(index, valuation_date_time, curve)


@pytest.fixture
def sabr_vols(index, valuation_date_time):
    def curve(name, parameter_type, x, y):
        metadata = CurveMetadata.sabr_parameter_by_expiry(name, DC, parameter_type)
        return InterpolatedNodalCurve.of(metadata, x, y, "linear", "flat", "flat")

    parameters = SabrParameters(
        curve("Alpha", SabrParameterType.ALPHA, [0.5, 1.5, 3.0], [0.045, 0.050, 0.052]),
        ConstantCurve.of(CurveMetadata.sabr_parameter_by_expiry("Beta", DC, SabrParameterType.BETA), 0.5),
        curve("Rho", SabrParameterType.RHO, [1.0, 3.0], [-0.20, -0.30]),
        curve("Nu", SabrParameterType.NU, [1.0, 3.0], [0.50, 0.40]),
        ConstantCurve.of(CurveMetadata.sabr_parameter_by_expiry("Shift", DC, SabrParameterType.SHIFT), 0.01),
        day_count=DC,
    )
    return SabrParametersVolatilities("SABR", index, valuation_date_time, parameters)


class TestRelativeTime:
    """Tests for expiry measurement."""

    def test_zero_at_valuation(self, surface_vols, valuation_date):
        """Valuation date is time zero."""
        assert surface_vols.relative_time(valuation_date) == 0.0
        assert surface_vols.relative_time(datetime(2024, 1, 15, 17, 0)) == 0.0

    def test_sign_and_day_count(self, surface_vols):
        """Later dates are positive, earlier negative, on the model day count."""
        assert surface_vols.relative_time(date(2025, 1, 14)) == pytest.approx(365 / 365)
        assert surface_vols.relative_time(date(2023, 1, 15)) == pytest.approx(-365 / 365)


class TestModels:
    """Tests for volatility lookup and data access."""

    def test_surface_volatility(self, surface_vols):
        """Surface model reads the surface."""
        assert surface_vols.volatility(1.5, 0.03, 0.031) == pytest.approx(0.25)
        assert surface_vols.volatility_type == ValueType.BLACK_VOLATILITY
        assert surface_vols.day_count == DC

    def test_flat_volatility_ignores_strike(self, flat_vols):
        """Flat model has no smile."""
        assert flat_vols.volatility(1.5, 0.01, 0.03) == flat_vols.volatility(1.5, 0.05, 0.03)
        assert flat_vols.volatility_type == ValueType.NORMAL_VOLATILITY

    def test_sabr_shift(self, sabr_vols):
        """SABR model exposes its shift curve."""
        assert sabr_vols.shift(2.0) == 0.01
        assert sabr_vols.volatility_type == ValueType.BLACK_VOLATILITY

    def test_find_data(self, surface_vols, flat_vols, sabr_vols):
        """Data is found by name; unknown names give None."""
        assert surface_vols.find_data("Black surface") is surface_vols.surface
        assert flat_vols.find_data("Normal curve") is flat_vols.curve
        assert sabr_vols.find_data("Rho") is sabr_vols.parameters.rho_curve
        assert surface_vols.find_data("Missing") is None
        assert sabr_vols.find_data("Missing") is None

    def test_normal_shift_rejected(self, index, valuation_date_time, flat_vols):
        """A shift curve only makes sense for Black volatilities."""
        with pytest.raises(ValueError):
            ExpiryFlatVolatilities(index, valuation_date_time, flat_vols.curve, ConstantCurve.of("Shift", 0.01))

    def test_price_type_rejected(self, index, valuation_date_time):
        """Price-valued curves are not volatilities."""
        curve = InterpolatedNodalCurve.of(CurveMetadata("Prices", y_value_type=ValueType.PRICE, day_count=DC), [1.0], [0.01])
        with pytest.raises(ValueError):
            ExpiryFlatVolatilities(index, valuation_date_time, curve)

    @pytest.mark.parametrize("model", ["surface_vols", "flat_vols", "sabr_vols"])
    def test_round_trip(self, model, request):
        """Models survive serialization."""
        vols = request.getfixturevalue(model)
        restored = volatilities_from_dict(vols.to_dict())
        assert restored == vols
        assert restored.volatility(1.2, 0.028, 0.03) == pytest.approx(vols.volatility(1.2, 0.028, 0.03))


class TestParameterSensitivity:
    """Point sensitivities turned into model parameter sensitivities."""

    @pytest.mark.parametrize("model", ["surface_vols", "flat_vols", "sabr_vols"])
    @pytest.mark.parametrize("tenor,strike", [("2Y", 0.025), ("3Y", 0.035)])
    def test_matches_bump_and_reprice(self, model, tenor, strike, request, index, rates, valuation_date):
        """Analytic price sensitivity to every parameter agrees with central differences."""
        vols = request.getfixturevalue(model)
        pricer = CapPricer()
        cap = create_cap_floor(index, valuation_date, tenor, strike)
        points = pricer.price_sensitivity(cap, rates, vols)
        analytic = vols.parameter_sensitivity(points)
        numeric = FiniteDifferenceCalculator().sensitivity(vols, lambda v: pricer.price(cap, rates, v))
        assert analytic.equal_with_tolerance(numeric, 1e-7)

    def test_superposition(self, surface_vols, index, rates, valuation_date):
        """Sensitivity of two caps is the sum of the separate sensitivities."""
        pricer = CapPricer()
        cap_a = create_cap_floor(index, valuation_date, "2Y", 0.02)
        cap_b = create_cap_floor(index, valuation_date, "3Y", 0.04, is_cap=False)
        points_a = pricer.price_sensitivity(cap_a, rates, surface_vols)
        points_b = pricer.price_sensitivity(cap_b, rates, surface_vols)
        joint = surface_vols.parameter_sensitivity(points_a.combined_with(points_b))
        separate = surface_vols.parameter_sensitivity(points_a).combined_with(
            surface_vols.parameter_sensitivity(points_b)
        )
        assert joint.equal_with_tolerance(separate, 1e-14)

    def test_superposition_mixed_kinds(self, sabr_vols):
        """SABR parameter points and vega points at different expiries add up on every curve."""
        points = [
            CapletFloorletSabrSensitivity("SABR", 0.8, SabrParameterType.ALPHA, 120.0),
            CapletFloorletSensitivity("SABR", 2.2, 0.025, 0.031, 75.0),
            CapletFloorletSabrSensitivity("SABR", 2.2, SabrParameterType.NU, -40.0),
        ]
        joint = sabr_vols.parameter_sensitivity(PointSensitivities.of(*points))
        separate = [sabr_vols.parameter_sensitivity(PointSensitivities.of(point)) for point in points]

        assert sorted(joint.names()) == ["Alpha", "Beta", "Nu", "Rho", "Shift"]
        for name in joint.names():
            expected = sum(s.get(name).sensitivity for s in separate if s.get(name) is not None)
            np.testing.assert_allclose(joint.get(name).sensitivity, expected, rtol=1e-12, atol=1e-14)

    def test_points_of_other_models_ignored(self, surface_vols, flat_vols, index, rates, valuation_date):
        """Only points carrying the model name contribute."""
        pricer = CapPricer()
        cap = create_cap_floor(index, valuation_date, "2Y", 0.03)
        points = pricer.price_sensitivity(cap, rates, flat_vols)
        assert surface_vols.parameter_sensitivity(points).size == 0

    def test_sabr_volatility_points_chained(self, sabr_vols, index, rates, valuation_date):
        """Vega points on a SABR model chain to the same alpha, rho and nu risk as parameter points."""
        pricer = CapPricer()
        cap = create_cap_floor(index, valuation_date, "3Y", 0.028)
        chained = sabr_vols.parameter_sensitivity(pricer.price_sensitivity_volatility(cap, rates, sabr_vols))
        direct = sabr_vols.parameter_sensitivity(pricer.price_sensitivity_model_parameters(cap, rates, sabr_vols))
        for name in ["Alpha", "Beta", "Rho", "Nu"]:
            np.testing.assert_allclose(
                chained.get(name).sensitivity, direct.get(name).sensitivity, rtol=1e-10, atol=1e-14
            )

    def test_sensitivity_table(self, surface_vols, index, rates, valuation_date):
        """Parameter sensitivities flatten to a labelled table."""
        pricer = CapPricer()
        cap = create_cap_floor(index, valuation_date, "2Y", 0.03)
        table = surface_vols.parameter_sensitivity(pricer.price_sensitivity(cap, rates, surface_vols)).to_dataframe()
        assert list(table.columns) == ['name', 'label', 'x', 'y', 'sensitivity']
        assert len(table) == surface_vols.parameter_count
        assert (table['name'] == "Black surface").all()
