"""
Tests for interpolated volatility surfaces.
"""

import pytest
import numpy as np

from capvol.conventions import DayCount
from capvol.curves import SurfaceMetadata, TIME_SQUARE, LINEAR, FLAT
from capvol.vol.surface import GridSurfaceInterpolator, InterpolatedNodalSurface
from capvol.risk.bumping import FiniteDifferenceCalculator


def _grid():
    # Irregular grid: the first expiry has only two strikes
    x = [0.5, 0.5, 1.0, 1.0, 1.0, 2.0, 2.0, 2.0]
    y = [0.02, 0.04, 0.01, 0.03, 0.05, 0.01, 0.03, 0.05]
    z = [0.30, 0.26, 0.32, 0.25, 0.22, 0.28, 0.22, 0.20]
    return x, y, z


class TestInterpolatedNodalSurface:
    """Tests for expiry-strike surfaces."""

    @pytest.fixture
    def surface(self):
        metadata = SurfaceMetadata.black_volatility_by_expiry_strike("Test surface", DayCount.ACT_365)
        x, y, z = _grid()
        return InterpolatedNodalSurface.of(
            metadata, x, y, z, GridSurfaceInterpolator.of(TIME_SQUARE, LINEAR, FLAT, FLAT)
        )

    def test_reproduces_nodes(self, surface):
        """Surface passes through every node."""
        for x, y, z in zip(*_grid()):
            assert abs(surface.z_value(x, y) - z) < 1e-10

    def test_flat_strike_extrapolation(self, surface):
        """Beyond the last strike of an expiry the end value is held."""
        assert surface.z_value(1.0, 0.08) == pytest.approx(0.22)
        assert surface.z_value(1.0, 0.0) == pytest.approx(0.32)

    def test_parameter_metadata(self, surface):
        """One label per node with both coordinates."""
        meta = surface.metadata.parameter_metadata
        assert len(meta) == surface.parameter_count
        assert meta[3].x == 1.0
        assert meta[3].y == 0.03

    def test_sensitivity_matches_bumps(self, surface):
        """Node sensitivity agrees with bump and reinterpolate."""
        fd = FiniteDifferenceCalculator()
        for x, y in [(0.25, 0.03), (0.75, 0.025), (1.5, 0.045), (3.0, 0.015), (1.0, 0.03)]:
            analytic = surface.z_value_parameter_sensitivity(x, y).sensitivity
            numeric = fd.parameter_sensitivity(surface, lambda s: s.z_value(x, y))
            np.testing.assert_allclose(analytic, numeric, atol=1e-7)

    def test_sensitivity_sums_to_one_for_linear(self):
        """With linear interpolation the node weights sum to one."""
        metadata = SurfaceMetadata("Linear")
        x, y, z = _grid()
        surface = InterpolatedNodalSurface.of(metadata, x, y, z)
        sens = surface.z_value_parameter_sensitivity(0.8, 0.035).sensitivity
        assert abs(sens.sum() - 1.0) < 1e-12

    def test_unsorted_nodes_rejected(self):
        """Nodes must be sorted by expiry then strike."""
        metadata = SurfaceMetadata("Bad")
        with pytest.raises(ValueError):
            InterpolatedNodalSurface.of(metadata, [1.0, 0.5], [0.01, 0.01], [0.2, 0.2])
        with pytest.raises(ValueError):
            InterpolatedNodalSurface.of(metadata, [1.0, 1.0], [0.02, 0.01], [0.2, 0.2])

    def test_with_parameter(self, surface):
        """Bumping one node changes only that node."""
        bumped = surface.with_parameter(4, 0.5)
        assert bumped.z_values[4] == 0.5
        assert bumped.z_values[:4] == surface.z_values[:4]

    def test_round_trip(self, surface):
        """Serialization gives an equal surface."""
        restored = InterpolatedNodalSurface.from_dict(surface.to_dict())
        assert restored == surface
        assert restored.z_value(1.3, 0.027) == surface.z_value(1.3, 0.027)
