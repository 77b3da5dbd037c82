"""
Tests for interpolators and parameter curves.
"""

import pytest
import numpy as np

from capvol.conventions import DayCount
from capvol.curves import (
    LINEAR,
    TIME_SQUARE,
    NATURAL_CUBIC_SPLINE,
    STEP_UPPER,
    FLAT,
    INTERPOLATOR,
    BoundInterpolator,
    CurveMetadata,
    InterpolatedNodalCurve,
    ConstantCurve,
    curve_from_dict,
    interpolator_name,
    extrapolator_name,
)
from capvol.risk.bumping import FiniteDifferenceCalculator


X = np.array([0.5, 1.0, 2.0, 3.5, 5.0])
Y = np.array([0.21, 0.19, 0.175, 0.16, 0.155])


class TestInterpolatorNames:
    """Tests for name normalisation."""

    def test_interpolator_aliases(self):
        """Dashes, spaces and case are ignored."""
        assert interpolator_name("Time-Square") == TIME_SQUARE
        assert interpolator_name("natural cubic spline") == NATURAL_CUBIC_SPLINE
        assert interpolator_name("LINEAR") == LINEAR

    def test_extrapolator_aliases(self):
        """Extrapolator names are normalised the same way."""
        assert extrapolator_name("Flat") == FLAT
        assert extrapolator_name("Interpolator") == INTERPOLATOR

    def test_unknown_name(self):
        """Unknown names raise."""
        with pytest.raises(ValueError):
            interpolator_name("quartic")


class TestBoundInterpolator:
    """Tests for fitted interpolators with extrapolation."""

    @pytest.mark.parametrize("method", [LINEAR, TIME_SQUARE, NATURAL_CUBIC_SPLINE, STEP_UPPER])
    def test_reproduces_nodes(self, method):
        """Every interpolator passes through its nodes."""
        bound = BoundInterpolator(X, Y, method)
        for x, y in zip(X, Y):
            assert bound.value(x) == pytest.approx(y, abs=1e-10)

    def test_linear_midpoint(self):
        """Linear interpolation halfway between nodes."""
        bound = BoundInterpolator(X, Y, LINEAR)
        assert bound.value(0.75) == pytest.approx(0.5 * (Y[0] + Y[1]))

    def test_time_square_interpolates_variance(self):
        """Time-square is linear in total variance."""
        bound = BoundInterpolator(X, Y, TIME_SQUARE)
        x = 1.5
        variance = 0.5 * (X[1] * Y[1] ** 2 + X[2] * Y[2] ** 2)
        assert bound.value(x) == pytest.approx(np.sqrt(variance / x))

    def test_step_upper(self):
        """Step upper takes the next node's value."""
        bound = BoundInterpolator(X, Y, STEP_UPPER)
        assert bound.value(0.8) == Y[1]
        assert bound.value(1.0) == Y[1]

    def test_flat_extrapolation(self):
        """Flat extrapolation holds the end values."""
        bound = BoundInterpolator(X, Y, LINEAR, FLAT, FLAT)
        assert bound.value(0.1) == Y[0]
        assert bound.value(10.0) == Y[-1]

    def test_linear_extrapolation(self):
        """Linear extrapolation continues the end slope."""
        bound = BoundInterpolator(X, Y, LINEAR, LINEAR, LINEAR)
        slope = (Y[-1] - Y[-2]) / (X[-1] - X[-2])
        assert bound.value(6.0) == pytest.approx(Y[-1] + slope)

    def test_single_node_is_constant(self):
        """One node gives a constant with unit sensitivity."""
        bound = BoundInterpolator(np.array([2.0]), np.array([0.3]))
        assert bound.value(0.1) == 0.3
        assert bound.value(7.0) == 0.3
        np.testing.assert_allclose(bound.parameter_sensitivity(5.0), [1.0])

    @pytest.mark.parametrize("method", [LINEAR, TIME_SQUARE, NATURAL_CUBIC_SPLINE, STEP_UPPER])
    @pytest.mark.parametrize("extrapolator", [FLAT, LINEAR, INTERPOLATOR])
    def test_parameter_sensitivity_matches_bumps(self, method, extrapolator):
        """Analytic node weights match central differences, inside and outside the nodes."""
        for x in [0.2, 0.7, 1.3, 2.9, 4.4, 6.5]:
            analytic = BoundInterpolator(X, Y, method, extrapolator, extrapolator).parameter_sensitivity(x)
            numeric = np.zeros(len(Y))
            h = 1e-6
            for j in range(len(Y)):
                up, down = Y.copy(), Y.copy()
                up[j] += h
                down[j] -= h
                numeric[j] = (
                    BoundInterpolator(X, up, method, extrapolator, extrapolator).value(x)
                    - BoundInterpolator(X, down, method, extrapolator, extrapolator).value(x)
                ) / (2 * h)
            np.testing.assert_allclose(analytic, numeric, atol=1e-7)


class TestInterpolatedNodalCurve:
    """Tests for parameter curves."""

    @pytest.fixture
    def curve(self):
        metadata = CurveMetadata.black_volatility_by_expiry("Test vols", DayCount.ACT_365)
        return InterpolatedNodalCurve.of(metadata, X, Y, "time-square", "flat", "linear")

    def test_names_normalised(self, curve):
        """Interpolator and extrapolator names are stored normalised."""
        assert curve.interpolator == TIME_SQUARE
        assert curve.extrapolator_right == LINEAR

    def test_parameter_metadata_generated(self, curve):
        """One label per node is generated."""
        assert len(curve.metadata.parameter_metadata) == len(X)
        assert curve.metadata.parameter_metadata[1].x == 1.0

    def test_y_value_parameter_sensitivity_matches_bumps(self, curve):
        """Node sensitivity of the curve agrees with bump and reprice."""
        fd = FiniteDifferenceCalculator()
        for x in [0.3, 1.7, 4.0, 8.0]:
            analytic = curve.y_value_parameter_sensitivity(x)
            numeric = fd.parameter_sensitivity(curve, lambda c: c.y_value(x))
            assert analytic.market_data_name == "Test vols"
            np.testing.assert_allclose(analytic.sensitivity, numeric, atol=1e-7)

    def test_with_parameter(self, curve):
        """Replacing one node leaves the others."""
        bumped = curve.with_parameter(2, 0.3)
        assert bumped.y_values[2] == 0.3
        assert bumped.y_values[1] == curve.y_values[1]
        assert curve.y_values[2] == Y[2]

    def test_invalid_nodes(self):
        """Unsorted or mismatched nodes raise."""
        metadata = CurveMetadata("Bad")
        with pytest.raises(ValueError):
            InterpolatedNodalCurve.of(metadata, [1.0, 0.5], [0.1, 0.2])
        with pytest.raises(ValueError):
            InterpolatedNodalCurve.of(metadata, [1.0, 2.0], [0.1])

    def test_round_trip(self, curve):
        """Serialization gives an equal curve."""
        restored = curve_from_dict(curve.to_dict())
        assert restored == curve
        assert restored.y_value(1.5) == curve.y_value(1.5)


class TestConstantCurve:
    """Tests for constant curves."""

    def test_constant(self):
        """Same value everywhere, one parameter."""
        curve = ConstantCurve.of("Beta", 0.5)
        assert curve.y_value(0.1) == 0.5
        assert curve.y_value(30.0) == 0.5
        assert curve.parameter_count == 1
        np.testing.assert_allclose(curve.y_value_parameter_sensitivity(3.0).sensitivity, [1.0])

    def test_with_parameter(self):
        """Only index 0 exists."""
        curve = ConstantCurve.of("Beta", 0.5)
        assert curve.with_parameter(0, 0.7).value == 0.7
        with pytest.raises(IndexError):
            curve.with_parameter(1, 0.7)

    def test_round_trip(self):
        """Serialization gives an equal curve."""
        curve = ConstantCurve.of("Shift", 0.01)
        assert curve_from_dict(curve.to_dict()) == curve
