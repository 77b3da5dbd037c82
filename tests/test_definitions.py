"""
Tests for calibration definitions.
"""

import pytest
import numpy as np

from capvol.conventions import DayCount
from capvol.curves import (
    FLAT,
    LINEAR,
    TIME_SQUARE,
    ConstantCurve,
    CurveMetadata,
    SabrParameterType,
    ValueType,
)
from capvol.index import USD_LIBOR_3M, EUR_EURIBOR_6M
from capvol.vol.quotes import RawOptionData
from capvol.vol.surface import GridSurfaceInterpolator
from capvol.vol.volatilities import SabrParametersVolatilities
from capvol.calibration.definitions import (
    DirectIborCapletFloorletFlatVolatilityDefinition,
    DirectIborCapletFloorletVolatilityDefinition,
    SabrIborCapletFloorletVolatilityBootstrapDefinition,
    SabrIborCapletFloorletVolatilityCalibrationDefinition,
    SurfaceIborCapletFloorletVolatilityBootstrapDefinition,
    definition_from_dict,
    sabr_constant_curve,
)
from capvol.calibration.transforms import (
    DoubleRangeLimitTransform,
    SingleRangeLimitTransform,
    default_sabr_transforms,
)


@pytest.fixture
def black_quotes():
    return RawOptionData.of(["1Y", "3Y", "5Y"], [0.01], ValueType.BLACK_VOLATILITY, [[0.18], [0.15], [0.115]])


@pytest.fixture
def normal_quotes():
    return RawOptionData.of(["1Y", "3Y"], [], ValueType.NORMAL_VOLATILITY, [0.008, 0.009])


@pytest.fixture
def price_quotes():
    return RawOptionData.of(["1Y", "3Y"], [], ValueType.PRICE, [0.001, 0.004])


@pytest.fixture
def sabr_definition():
    return SabrIborCapletFloorletVolatilityCalibrationDefinition.of_fixed_beta(
        "SABR", USD_LIBOR_3M, DayCount.ACT_365, 0.5,
        alpha_curve_nodes=[1.0, 3.0, 5.0],
        rho_curve_nodes=[2.0, 5.0],
        nu_curve_nodes=[3.0],
        shift=0.01,
    )


class TestDirectFlatDefinition:
    """Tests for the strike-independent direct definition."""

    def test_getters(self):
        """Getters return the supplied values with flat default extrapolation."""
        definition = DirectIborCapletFloorletFlatVolatilityDefinition.of(
            "Test", USD_LIBOR_3M, DayCount.ACT_365, 0.07, "time-square"
        )
        assert definition.name == "Test"
        assert definition.index == USD_LIBOR_3M
        assert definition.day_count == DayCount.ACT_365
        assert definition.lambda_ == 0.07
        assert definition.interpolator == TIME_SQUARE
        assert definition.extrapolator_left == FLAT
        assert definition.extrapolator_right == FLAT

    def test_curve_metadata(self, black_quotes, normal_quotes, price_quotes):
        """Metadata follows the quote type; prices are rejected."""
        definition = DirectIborCapletFloorletFlatVolatilityDefinition.of(
            "Test", USD_LIBOR_3M, DayCount.ACT_365, 0.07, LINEAR
        )
        black = definition.create_curve_metadata(black_quotes)
        assert black.name == "Test"
        assert black.y_value_type == ValueType.BLACK_VOLATILITY
        assert black.day_count == DayCount.ACT_365
        assert definition.create_curve_metadata(normal_quotes).y_value_type == ValueType.NORMAL_VOLATILITY
        with pytest.raises(ValueError):
            definition.create_curve_metadata(price_quotes)
        with pytest.raises(ValueError):
            definition.create_metadata(black_quotes)

    def test_penalty(self):
        """Penalty is lambda times the scaled curvature matrix."""
        definition = DirectIborCapletFloorletFlatVolatilityDefinition.of(
            "Test", USD_LIBOR_3M, DayCount.ACT_365, 0.07, LINEAR
        )
        expiries = [0.25, 0.5, 1.0, 2.0]
        penalty = definition.compute_penalty_matrix(expiries)
        assert penalty.shape == (4, 4)
        np.testing.assert_allclose(penalty, penalty.T)
        linear = 0.2 + 0.01 * np.array(expiries)
        assert abs(linear @ penalty @ linear) < 1e-14
        with pytest.raises(ValueError):
            definition.compute_penalty_matrix([0.25, 0.5])

    def test_negative_lambda_rejected(self):
        """Penalty weights cannot be negative."""
        with pytest.raises(ValueError):
            DirectIborCapletFloorletFlatVolatilityDefinition.of("Test", USD_LIBOR_3M, DayCount.ACT_365, -0.1, LINEAR)


class TestDirectSurfaceDefinition:
    """Tests for the expiry-strike direct definition."""

    @pytest.fixture
    def definition(self):
        return DirectIborCapletFloorletVolatilityDefinition.of(
            "Surface", EUR_EURIBOR_6M, DayCount.ACT_365, 0.02, 0.5,
            GridSurfaceInterpolator.of(LINEAR, LINEAR),
            ConstantCurve.of("Shift", 0.01),
        )

    def test_metadata(self, definition, black_quotes, normal_quotes, price_quotes):
        """Surface metadata follows the quote type."""
        assert definition.create_metadata(black_quotes).z_value_type == ValueType.BLACK_VOLATILITY
        assert definition.create_metadata(normal_quotes).z_value_type == ValueType.NORMAL_VOLATILITY
        with pytest.raises(ValueError):
            definition.create_metadata(price_quotes)

    def test_penalty(self, definition):
        """Surface penalty covers the full grid and vanishes on planes."""
        strikes = [0.01, 0.02, 0.04]
        expiries = [0.5, 1.0, 2.0, 3.0]
        penalty = definition.compute_penalty_matrix(strikes, expiries)
        assert penalty.shape == (12, 12)
        plane = np.array([0.2 + 0.01 * t - 0.5 * k for t in expiries for k in strikes])
        assert abs(plane @ penalty @ plane) < 1e-14
        with pytest.raises(ValueError):
            definition.compute_penalty_matrix([0.01, 0.02], expiries)
        with pytest.raises(ValueError):
            definition.compute_penalty_matrix(strikes, [0.5, 1.0])

    def test_has_penalty(self, definition):
        """Zero weights mean no regularization."""
        assert definition.has_penalty
        unpenalized = DirectIborCapletFloorletVolatilityDefinition.of(
            "Surface", EUR_EURIBOR_6M, DayCount.ACT_365, 0.0, 0.0, GridSurfaceInterpolator()
        )
        assert not unpenalized.has_penalty


class TestSabrCalibrationDefinition:
    """Tests for the joint SABR definition."""

    def test_fixed_beta_curves(self, sabr_definition):
        """Beta and shift are constant curves named after the definition."""
        assert sabr_definition.beta_curve.name == "SABR-Beta"
        assert sabr_definition.beta_curve.value == 0.5
        assert sabr_definition.shift_curve.value == 0.01
        assert sabr_definition.rho_curve is None
        assert sabr_definition.initial_parameters == (0.1, 0.5, -0.2, 0.5)

    def test_free_parameters(self, sabr_definition):
        """Free knots are counted over alpha, rho and nu."""
        assert sabr_definition.free_families() == [
            SabrParameterType.ALPHA, SabrParameterType.RHO, SabrParameterType.NU
        ]
        assert sabr_definition.free_parameter_count() == 6
        assert sabr_definition.free_curve_names() == ["SABR-Alpha", "SABR-Rho", "SABR-Nu"]

    def test_full_transform(self, sabr_definition):
        """One transform per free knot, in vector order."""
        full = sabr_definition.create_full_transform(default_sabr_transforms())
        assert len(full) == 6
        assert all(isinstance(t, SingleRangeLimitTransform) for t in full[:3])
        assert full[3] == DoubleRangeLimitTransform(-1.0, 1.0)
        assert isinstance(full[5], SingleRangeLimitTransform)
        with pytest.raises(ValueError):
            sabr_definition.create_full_transform(default_sabr_transforms()[:3])

    def test_full_initial_values(self, sabr_definition):
        """Initial values are flat per family."""
        np.testing.assert_allclose(
            sabr_definition.create_full_initial_values(), [0.1, 0.1, 0.1, -0.2, -0.2, 0.5]
        )

    def test_create_volatilities(self, sabr_definition, valuation_date_time):
        """Node values fill the free curves; the fixed curve is kept."""
        vols = sabr_definition.create_volatilities(valuation_date_time, [0.03, 0.04, 0.05, -0.1, -0.3, 0.6])
        assert isinstance(vols, SabrParametersVolatilities)
        assert vols.name == "SABR"
        params = vols.parameters
        assert params.alpha_curve.name == "SABR-Alpha"
        assert params.alpha_curve.x_values == (1.0, 3.0, 5.0)
        assert params.rho_curve.y_values == (-0.1, -0.3)
        assert params.nu(10.0) == 0.6
        assert params.beta(2.0) == 0.5
        assert params.shift(2.0) == 0.01
        with pytest.raises(ValueError):
            sabr_definition.create_volatilities(valuation_date_time, [0.03])

    def test_fixed_rho(self):
        """Fixed-rho definitions calibrate beta instead."""
        definition = SabrIborCapletFloorletVolatilityCalibrationDefinition.of_fixed_rho(
            "SABR", USD_LIBOR_3M, DayCount.ACT_365, -0.25, [1.0, 5.0], [1.0, 5.0], [1.0, 5.0]
        )
        assert definition.free_families() == [
            SabrParameterType.ALPHA, SabrParameterType.BETA, SabrParameterType.NU
        ]
        assert definition.fixed_curve().value == -0.25
        assert definition.initial_parameters[1] == 0.7

    def test_quote_count(self, sabr_definition):
        """More free knots than quotes is rejected."""
        sabr_definition.validate_quote_count(6)
        with pytest.raises(ValueError):
            sabr_definition.validate_quote_count(5)

    def test_fixed_nodes_must_be_empty(self):
        """Knots for the fixed family are rejected."""
        with pytest.raises(ValueError):
            SabrIborCapletFloorletVolatilityCalibrationDefinition(
                "SABR", USD_LIBOR_3M, DayCount.ACT_365,
                ((1.0,), (1.0,), (1.0,), (1.0,)), (0.1, 0.5, -0.2, 0.5),
                beta_curve=sabr_constant_curve("SABR", DayCount.ACT_365, SabrParameterType.BETA, 0.5),
            )

    def test_free_nodes_must_not_be_empty(self):
        """Every free family needs knots."""
        with pytest.raises(ValueError):
            SabrIborCapletFloorletVolatilityCalibrationDefinition.of_fixed_beta(
                "SABR", USD_LIBOR_3M, DayCount.ACT_365, 0.5, [1.0], [], [1.0]
            )

    def test_one_fixed_curve(self):
        """Exactly one of beta and rho is fixed."""
        beta = sabr_constant_curve("SABR", DayCount.ACT_365, SabrParameterType.BETA, 0.5)
        rho = sabr_constant_curve("SABR", DayCount.ACT_365, SabrParameterType.RHO, -0.2)
        nodes = ((1.0,), (), (), (1.0,))
        with pytest.raises(ValueError):
            SabrIborCapletFloorletVolatilityCalibrationDefinition(
                "SABR", USD_LIBOR_3M, DayCount.ACT_365, nodes, (0.1, 0.5, -0.2, 0.5),
                beta_curve=beta, rho_curve=rho,
            )
        with pytest.raises(ValueError):
            SabrIborCapletFloorletVolatilityCalibrationDefinition(
                "SABR", USD_LIBOR_3M, DayCount.ACT_365, ((1.0,), (1.0,), (1.0,), (1.0,)), (0.1, 0.5, -0.2, 0.5),
            )

    def test_initial_parameter_size(self):
        """Four initial values are needed."""
        with pytest.raises(ValueError):
            SabrIborCapletFloorletVolatilityCalibrationDefinition.of_fixed_beta(
                "SABR", USD_LIBOR_3M, DayCount.ACT_365, 0.5, [1.0], [1.0], [1.0], initial_parameters=[0.1, 0.5]
            )


class TestBootstrapDefinitions:
    """Tests for the bootstrap definitions."""

    def test_sabr_bootstrap_defaults(self):
        """Fixed-beta bootstrap carries beta into the initial values."""
        definition = SabrIborCapletFloorletVolatilityBootstrapDefinition.of_fixed_beta(
            "Boot", USD_LIBOR_3M, DayCount.ACT_365, 0.6
        )
        assert definition.initial_parameters == (0.1, 0.6, -0.2, 0.5)
        assert definition.free_families() == [
            SabrParameterType.ALPHA, SabrParameterType.RHO, SabrParameterType.NU
        ]
        assert [m.name for m in definition.create_sabr_parameter_metadata()] == [
            "Boot-Alpha", "Boot-Beta", "Boot-Rho", "Boot-Nu"
        ]

    def test_sabr_bootstrap_needs_local_interpolator(self):
        """Spline interpolation and non-flat left extrapolation are rejected."""
        with pytest.raises(ValueError):
            SabrIborCapletFloorletVolatilityBootstrapDefinition.of_fixed_beta(
                "Boot", USD_LIBOR_3M, DayCount.ACT_365, 0.5, interpolator="natural_cubic_spline"
            )
        with pytest.raises(ValueError):
            SabrIborCapletFloorletVolatilityBootstrapDefinition.of_fixed_beta(
                "Boot", USD_LIBOR_3M, DayCount.ACT_365, 0.5, extrapolator_left=LINEAR
            )

    def test_surface_bootstrap_needs_local_interpolator(self):
        """Expiry interpolation must be local with flat left extrapolation."""
        with pytest.raises(ValueError):
            SurfaceIborCapletFloorletVolatilityBootstrapDefinition.of(
                "Boot", USD_LIBOR_3M, DayCount.ACT_365, GridSurfaceInterpolator.of("natural_cubic_spline", LINEAR)
            )
        with pytest.raises(ValueError):
            SurfaceIborCapletFloorletVolatilityBootstrapDefinition.of(
                "Boot", USD_LIBOR_3M, DayCount.ACT_365, GridSurfaceInterpolator(x_extrapolator_left=LINEAR)
            )

    def test_surface_bootstrap_metadata(self, normal_quotes):
        """Flat grids bootstrap into a curve."""
        definition = SurfaceIborCapletFloorletVolatilityBootstrapDefinition.of("Boot", USD_LIBOR_3M, DayCount.ACT_365)
        metadata = definition.create_curve_metadata(normal_quotes)
        assert isinstance(metadata, CurveMetadata)
        assert metadata.y_value_type == ValueType.NORMAL_VOLATILITY


class TestSerialization:
    """Definitions survive serialization."""

    @pytest.mark.parametrize("build", [
        lambda: DirectIborCapletFloorletFlatVolatilityDefinition.of(
            "Flat", USD_LIBOR_3M, DayCount.ACT_365, 0.07, TIME_SQUARE, FLAT, LINEAR
        ),
        lambda: DirectIborCapletFloorletVolatilityDefinition.of(
            "Surface", USD_LIBOR_3M, DayCount.ACT_365, 0.1, 0.2, GridSurfaceInterpolator.of(TIME_SQUARE, LINEAR),
            ConstantCurve.of("Shift", 0.005)
        ),
        lambda: SabrIborCapletFloorletVolatilityCalibrationDefinition.of_fixed_beta(
            "SABR", USD_LIBOR_3M, DayCount.ACT_365, 0.5, [1.0, 5.0], [2.0], [3.0], shift=0.01
        ),
        lambda: SabrIborCapletFloorletVolatilityBootstrapDefinition.of_fixed_rho(
            "Boot", USD_LIBOR_3M, DayCount.ACT_365, -0.1, "step_upper"
        ),
        lambda: SurfaceIborCapletFloorletVolatilityBootstrapDefinition.of("Boot", USD_LIBOR_3M, DayCount.ACT_360),
    ])
    def test_round_trip(self, build):
        """Definition rebuilt from its dictionary is equal."""
        definition = build()
        assert definition_from_dict(definition.to_dict()) == definition

    def test_unknown_type(self):
        """Unknown definition types are rejected."""
        with pytest.raises(ValueError):
            definition_from_dict({'type': 'Other'})
