"""Tests for potential centering/scaling and the medium operator."""

from __future__ import annotations

import numpy as np
import pytest

from anysim.core.bases import ConfigurationError
from anysim.core.linalg import voxel_norms
from anysim.diffusion import diffusion_potential
from anysim.operators.medium import Medium, center_scale


def _random_spd(rng, shape, n=3):
    A = rng.standard_normal(shape + (n, n))
    return A @ np.swapaxes(A, -1, -2) + 0.1 * np.eye(n)


class TestCenterScale:
    """Splitting a raw potential into background and scaled scattering part."""

    def test_contraction_random_tensors(self, rng):
        """The scaled potential has norm below one on every voxel."""
        shape = (6, 5, 3, 1)
        D = _random_spd(rng, shape)
        a = rng.uniform(0.0, 2.0, shape)
        V_raw = diffusion_potential(D, a, "tensor", shape)
        V, Tl, V0, Tr = center_scale(V_raw, V_max=0.95)
        norms = voxel_norms(V)
        assert np.all(norms < 1.0)
        assert norms.max() == pytest.approx(0.95, rel=1e-10)

    @pytest.mark.parametrize("V_max", [0.5, 0.9, 0.99])
    def test_V_max_respected(self, rng, V_max):  # noqa: N803
        V_raw = diffusion_potential(rng.uniform(0.1, 10.0, (8, 4)), rng.uniform(0.0, 1.0, (8, 4)), "scalar", (8, 4, 1, 1))
        V, _, _, _ = center_scale(V_raw, V_max=V_max)
        assert voxel_norms(V).max() == pytest.approx(V_max, rel=1e-10)

    def test_reconstructs_raw_potential(self, rng):
        shape = (4, 3, 1, 1)
        V_raw = diffusion_potential(_random_spd(rng, shape), rng.uniform(0.0, 1.0, shape), "tensor", shape)
        V, Tl, V0, Tr = center_scale(V_raw)
        restored = np.linalg.inv(Tl) @ V @ np.linalg.inv(Tr) + V0
        np.testing.assert_allclose(restored, V_raw, rtol=1e-10, atol=1e-12)

    def test_background_at_least_V_min(self):  # noqa: N802
        V_raw = np.zeros((5, 1, 1, 1, 2, 2))
        V_raw[..., 0, 0] = np.linspace(0.0, 1.0, 5).reshape(5, 1, 1, 1)
        V_min = np.array([0.0, 0.3])
        _, _, V0, _ = center_scale(V_raw, V_min=V_min)
        np.testing.assert_allclose(np.diag(V0), [0.5, 0.3])

    def test_homogeneous_potential(self):
        V_raw = np.broadcast_to(np.diag([2.0, 0.5]), (4, 1, 1, 1, 2, 2))
        V, Tl, V0, Tr = center_scale(V_raw)
        np.testing.assert_array_equal(V, 0.0)
        np.testing.assert_allclose(np.diag(V0), [2.0, 0.5])
        np.testing.assert_allclose(np.diag(Tl), 1.0 / np.sqrt([2.0, 0.5]))
        np.testing.assert_array_equal(Tl, Tr)

    @pytest.mark.parametrize("V_max", [0.0, 1.0])
    def test_invalid_V_max(self, V_max):  # noqa: N803
        with pytest.raises(ConfigurationError, match="V_max"):
            center_scale(np.zeros((2, 1, 1, 1, 2, 2)), V_max=V_max)

    def test_non_finite_potential(self):
        V_raw = np.zeros((2, 1, 1, 1, 2, 2))
        V_raw[0, 0, 0, 0, 1, 1] = np.nan
        with pytest.raises(ConfigurationError, match="non-finite"):
            center_scale(V_raw)


class TestMedium:
    """The medium operator G = 1 - V."""

    @pytest.fixture
    def medium(self, rng):
        shape = (4, 3, 1, 1)
        V_raw = diffusion_potential(_random_spd(rng, shape), rng.uniform(0.0, 1.0, shape), "tensor", shape)
        return Medium.from_potential(V_raw, dtype=np.float64)

    def test_norm(self, medium):
        assert medium.max_norm == pytest.approx(0.95, rel=1e-10)

    def test_mix_source(self, medium, rng):
        u = rng.standard_normal((4, 3, 1, 1, 4))
        s = rng.standard_normal(u.shape)
        expected = u - np.einsum("...ij,...j->...i", medium.potential, u) + s
        np.testing.assert_allclose(medium.mix_source(u, s), expected, rtol=1e-12, atol=1e-12)

    def test_mix_field(self, medium, rng):
        u = rng.standard_normal((4, 3, 1, 1, 4))
        t1 = rng.standard_normal(u.shape)
        expected = u + medium.multiply_G(t1 - u)
        np.testing.assert_allclose(medium.mix_field(u, t1), expected, rtol=1e-12, atol=1e-12)

    def test_G_plus_V_is_identity(self, medium, rng):  # noqa: N802
        u = rng.standard_normal((4, 3, 1, 1, 4))
        np.testing.assert_allclose(medium.multiply_G(u) + medium.multiply_V(u), u, rtol=1e-12, atol=1e-12)

    def test_inputs_not_modified(self, medium, rng):
        u = rng.standard_normal((4, 3, 1, 1, 4))
        s = rng.standard_normal(u.shape)
        u0, s0 = u.copy(), s.copy()
        medium.mix_source(u, s)
        medium.mix_field(u, s)
        np.testing.assert_array_equal(u, u0)
        np.testing.assert_array_equal(s, s0)

    def test_working_dtype(self, rng):
        V_raw = np.broadcast_to(np.diag([1.0, 0.2]), (3, 1, 1, 1, 2, 2)).copy()
        V_raw[0, ..., 1, 1] = 0.8
        medium = Medium.from_potential(V_raw, dtype=np.float32)
        assert medium.G.dtype == np.float32
        assert medium.potential.dtype == np.float32
