"""
Tests for the SABR formula and SABR parameter term structures.
"""

import pytest
import numpy as np

from capvol.conventions import DayCount
from capvol.curves import (
    CurveMetadata,
    ConstantCurve,
    InterpolatedNodalCurve,
    SabrParameterType,
)
from capvol.vol.sabr import (
    SabrParameters,
    SabrVolatilityFormula,
    hagan_black_vol,
    hagan_black_vol_adjoint,
)


F = 0.03
T = 2.0
ALPHA, BETA, RHO, NU = 0.05, 0.5, -0.25, 0.45


def _bumped(index, h, F, K, shift):
    args = [F, K, ALPHA, BETA, RHO, NU]
    args[index] += h
    f, k, a, b, r, n = args
    return hagan_black_vol(f, k, T, a, b, r, n, shift)


class TestHaganFormula:
    """Tests for the Hagan approximation and its adjoint."""

    def test_atm_vol(self):
        """ATM vol is close to alpha / F^(1-beta)."""
        vol = hagan_black_vol(F, F, T, ALPHA, BETA, RHO, NU)
        leading = ALPHA / F ** (1 - BETA)
        assert 0.9 * leading < vol < 1.1 * leading

    def test_skew_sign(self):
        """Negative rho gives higher vols at low strikes."""
        low = hagan_black_vol(F, 0.02, T, ALPHA, BETA, RHO, NU)
        high = hagan_black_vol(F, 0.04, T, ALPHA, BETA, RHO, NU)
        assert low > high

    def test_lognormal_limit(self):
        """With beta = 1 and no vol of vol the Black vol is alpha."""
        vol = hagan_black_vol(F, 0.045, T, 0.2, 1.0, 0.0, 0.0)
        assert vol == pytest.approx(0.2, abs=1e-12)

    def test_shift_applies_to_forward_and_strike(self):
        """Shifted SABR equals unshifted SABR on shifted rates."""
        shifted = hagan_black_vol(-0.002, 0.001, T, ALPHA, BETA, RHO, NU, 0.01)
        direct = hagan_black_vol(0.008, 0.011, T, ALPHA, BETA, RHO, NU)
        assert shifted == pytest.approx(direct)

    def test_negative_shifted_rate_rejected(self):
        """Non-positive shifted forward raises."""
        with pytest.raises(ValueError):
            hagan_black_vol(-0.01, 0.02, T, ALPHA, BETA, RHO, NU)

    @pytest.mark.parametrize("K", [0.01, 0.025, 0.03, 0.045, 0.08])
    @pytest.mark.parametrize("shift", [0.0, 0.02])
    def test_adjoint_matches_finite_differences(self, K, shift):
        """Derivatives to forward, strike and parameters match central differences."""
        result = hagan_black_vol_adjoint(F, K, T, ALPHA, BETA, RHO, NU, shift)
        assert result.value == pytest.approx(hagan_black_vol(F, K, T, ALPHA, BETA, RHO, NU, shift))
        h = 1e-6
        numeric = np.array([
            (_bumped(i, h, F, K, shift) - _bumped(i, -h, F, K, shift)) / (2 * h) for i in range(6)
        ])
        np.testing.assert_allclose(result.derivatives, numeric, rtol=1e-5, atol=1e-6)

    def test_formula_enum(self):
        """Formula enum delegates to the Hagan approximation."""
        formula = SabrVolatilityFormula.HAGAN
        assert formula.volatility(F, 0.02, T, ALPHA, BETA, RHO, NU) == hagan_black_vol(
            F, 0.02, T, ALPHA, BETA, RHO, NU
        )
        assert SabrVolatilityFormula("Hagan") is formula


class TestSabrParameters:
    """Tests for SABR parameter term structures."""

    @pytest.fixture
    def parameters(self):
        dc = DayCount.ACT_365
        alpha = InterpolatedNodalCurve.of(
            CurveMetadata.sabr_parameter_by_expiry("Alpha", dc, SabrParameterType.ALPHA),
            [1.0, 3.0], [0.04, 0.05]
        )
        beta = ConstantCurve.of(CurveMetadata.sabr_parameter_by_expiry("Beta", dc, SabrParameterType.BETA), 0.5)
        rho = InterpolatedNodalCurve.of(
            CurveMetadata.sabr_parameter_by_expiry("Rho", dc, SabrParameterType.RHO),
            [1.0, 3.0], [-0.2, -0.3]
        )
        nu = ConstantCurve.of(CurveMetadata.sabr_parameter_by_expiry("Nu", dc, SabrParameterType.NU), 0.4)
        return SabrParameters(alpha, beta, rho, nu, day_count=dc)

    def test_values(self, parameters):
        """Parameter curves are interpolated in expiry."""
        assert parameters.alpha(2.0) == pytest.approx(0.045)
        assert parameters.beta(2.0) == 0.5
        assert parameters.rho(0.5) == pytest.approx(-0.2)
        assert parameters.shift(2.0) == 0.0

    def test_volatility(self, parameters):
        """Volatility uses the parameters at the expiry."""
        expected = hagan_black_vol(F, 0.025, 2.0, 0.045, 0.5, -0.25, 0.4)
        assert parameters.volatility(2.0, 0.025, F) == pytest.approx(expected)

    def test_parameter_order(self, parameters):
        """Parameters run through alpha, beta, rho, nu and shift curves."""
        assert parameters.parameter_count == 2 + 1 + 2 + 1 + 1
        assert parameters.parameter(1) == 0.05
        assert parameters.parameter(2) == 0.5
        assert parameters.parameter(4) == -0.3
        assert parameters.parameter(5) == 0.4
        bumped = parameters.with_parameter(3, -0.1)
        assert bumped.rho_curve.y_values == (-0.1, -0.3)
        assert bumped.alpha_curve == parameters.alpha_curve

    def test_out_of_range(self, parameters):
        """Indices past the last curve raise."""
        with pytest.raises(IndexError):
            parameters.parameter(7)

    def test_distinct_names(self, parameters):
        """Two curves with the same name are rejected."""
        with pytest.raises(ValueError):
            SabrParameters(
                parameters.alpha_curve, parameters.beta_curve,
                parameters.rho_curve, ConstantCurve.of("Alpha", 0.4)
            )

    def test_round_trip(self, parameters):
        """Serialization gives equal parameters."""
        assert SabrParameters.from_dict(parameters.to_dict()) == parameters
