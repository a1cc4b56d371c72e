"""Tests for the simulation grid: padding, cropping, coordinates and the
Hermitian edge fix."""

from __future__ import annotations

import numpy as np
import pytest

from anysim.grid.sim_grid import SimGrid


def _mirror(data, axes):
    """data[-k] along the given axes (FFT ordering)."""
    for ax in axes:
        data = np.roll(np.flip(data, axis=ax), 1, axis=ax)
    return data


@pytest.fixture
def grid():
    return SimGrid(N=[10, 6, 1, 1], pixel_size=[0.5, 1.0, 1.0, 1.0], periodic=[False, True, False, True], width=[4, 4, 4, 4])


class TestPadding:
    def test_padding_per_axis(self, grid):
        # y periodic, z a single grid point, t periodic
        assert grid.padding == (4, 0, 0, 0)
        assert grid.N == (18, 6, 1, 1)
        assert grid.N_roi == (10, 6, 1, 1)
        np.testing.assert_array_equal(grid.active, [True, True, False, False])

    def test_pad_crop_round_trip(self, grid, rng):
        roi = rng.standard_normal(grid.N_roi + (4,))
        padded = grid.pad(roi, mode="constant")
        assert padded.shape == grid.N + (4,)
        np.testing.assert_array_equal(grid.crop(padded), roi)
        np.testing.assert_array_equal(padded[:4], 0.0)
        np.testing.assert_array_equal(padded[-4:], 0.0)

    def test_pad_edge_continues_values(self, grid):
        roi = np.arange(10.0).reshape(10, 1, 1, 1)
        padded = grid.pad(roi, mode="edge")
        np.testing.assert_array_equal(padded[:4, 0, 0, 0], 0.0)
        np.testing.assert_array_equal(padded[-4:, 3, 0, 0], 9.0)

    def test_pad_broadcasts_singleton_axes(self, grid):
        padded = grid.pad(np.ones((1, 1, 1, 1, 2, 2)))
        assert padded.shape == grid.N + (2, 2)

    def test_boundary_depth(self, grid):
        depth = grid.boundary_depth(0).ravel()
        assert depth[0] == pytest.approx(1.0)
        assert depth[-1] == pytest.approx(1.0)
        assert depth[3] == pytest.approx(0.25)
        np.testing.assert_array_equal(depth[4:14], 0.0)
        np.testing.assert_array_equal(grid.boundary_depth(1), 0.0)


class TestCoordinates:
    def test_roi_starts_at_zero(self, grid):
        x = grid.coordinates(0).ravel()
        assert x[4] == 0.0
        assert x[0] == pytest.approx(-2.0)
        assert grid.coordinates(0).shape == (18, 1, 1, 1)

    def test_wavenumbers(self, grid):
        kx = grid.coordinates_f(0).ravel()
        assert kx[0] == 0.0
        assert kx[1] == pytest.approx(2 * np.pi / (18 * 0.5))
        np.testing.assert_allclose(kx[1:9], -kx[:9:-1])
        assert grid.coordinates_f(1).shape == (1, 6, 1, 1)

    def test_dimensions(self, grid):
        np.testing.assert_allclose(grid.dimensions(), [9.0, 6.0, 1.0, 1.0])


class TestHermitianEdges:
    """An operator mapping real fields to real fields must satisfy
    data[-k] == conj(data[k]), also on the Nyquist planes of even axes."""

    @staticmethod
    def _operator(shape):
        k = [2 * np.pi * np.fft.fftfreq(n) for n in shape]
        kx, ky = np.meshgrid(k[0], k[1], indexing="ij")
        return 1.0 / (1.0 + 1j * kx + 1j * ky + 0.3 * kx**2)

    def test_even_axes_become_hermitian(self):
        data = self._operator((8, 6)).reshape(8, 6, 1, 1)
        mirror = _mirror(data, range(4))
        assert not np.allclose(mirror, np.conj(data))

        fixed = SimGrid.fix_edges_hermitian(data, axes=range(4))
        np.testing.assert_allclose(_mirror(fixed, range(4)), np.conj(fixed), rtol=1e-12, atol=1e-14)

    def test_only_nyquist_planes_change(self):
        data = self._operator((8, 6)).reshape(8, 6, 1, 1)
        fixed = SimGrid.fix_edges_hermitian(data, axes=range(4))
        changed = ~np.isclose(fixed, data, rtol=0, atol=0)
        changed[4] = False
        changed[:, 3] = False
        assert not changed.any()

    def test_odd_axes_untouched(self):
        data = self._operator((7, 5)).reshape(7, 5, 1, 1)
        np.testing.assert_array_equal(SimGrid.fix_edges_hermitian(data, axes=range(4)), data)

    def test_trailing_matrix_axes(self):
        data = self._operator((8, 6)).reshape(8, 6, 1, 1, 1, 1) * np.array([[1.0, 2.0], [3.0, 4.0]])
        fixed = SimGrid.fix_edges_hermitian(data, axes=range(4))
        np.testing.assert_allclose(_mirror(fixed, range(4)), np.conj(fixed), rtol=1e-12, atol=1e-14)

    def test_input_not_modified(self):
        data = self._operator((8, 6)).reshape(8, 6, 1, 1)
        before = data.copy()
        SimGrid.fix_edges_hermitian(data, axes=range(4))
        np.testing.assert_array_equal(data, before)
