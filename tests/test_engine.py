"""Tests for the split-Richardson engine on a scalar toy problem.

The toy problem has one component per voxel, an identity transform and a
constant scaled operator L' = l, so the exact solution is u = s / (l + V).
"""

from __future__ import annotations

import numpy as np
import pytest

from anysim.config import SimulationConfig
from anysim.core.bases import ConfigurationError, TransformBase
from anysim.core.state import State
from anysim.diagnostics.termination import FixedIterationCount, RelativeResidual
from anysim.engine import AnySim
from anysim.operators.medium import Medium
from anysim.operators.propagator import MatrixPropagator

N_VOXELS = 16
L_SCALED = 0.5


class IdentityTransform(TransformBase):
    def r2k(self, u, state=None):
        return u.astype(np.complex128)

    def k2r(self, u, state=None):
        return np.ascontiguousarray(u.real)


class ToySim(AnySim):
    def __init__(self, potential, termination, forward_operator=False):
        super().__init__(SimulationConfig(precision="double", forward_operator=forward_operator))
        eye = np.eye(1)
        self.medium = Medium(potential.reshape(-1, 1, 1), eye, 0.0 * eye, eye, dtype=np.float64)
        self.transform = IdentityTransform()
        self.propagator = MatrixPropagator(
            np.full((N_VOXELS, 1, 1), 1.0 / (L_SCALED + 1.0)), dtype=np.complex128
        )
        if forward_operator:
            self.L = MatrixPropagator(np.full((N_VOXELS, 1, 1), L_SCALED), dtype=np.complex128)
        self.termination = termination
        self.finalized = False

    def start(self):
        u = np.zeros((N_VOXELS, 1))
        return u, State(termination_condition=self.termination, termination_interval=1)

    def finalize(self, u, state):
        self.finalized = True
        return u


@pytest.fixture
def potential(rng):
    return rng.uniform(0.0, 0.9, N_VOXELS)


@pytest.fixture
def source(rng):
    return rng.standard_normal((N_VOXELS, 1))


class TestExec:
    def test_converges_to_exact_solution(self, potential, source):
        sim = ToySim(potential, RelativeResidual(tolerance=1e-12, iteration_count=2000))
        u, state = sim.exec(source)
        exact = source[:, 0] / (L_SCALED + potential)
        np.testing.assert_allclose(u[:, 0], exact, rtol=1e-9, atol=1e-9)
        assert not state.running
        assert state.run_time is not None
        assert sim.finalized

    def test_residual_history(self, potential, source):
        sim = ToySim(potential, RelativeResidual(tolerance=1e-6, iteration_count=2000))
        _, state = sim.exec(source)
        assert len(state.residuals) == state.iterations
        assert state.residuals[0] == pytest.approx(1.0)
        assert np.all(np.diff(state.residuals) < 0)
        assert state.residual < 1e-6

    def test_fixed_iteration_count(self, potential, source):
        sim = ToySim(potential, FixedIterationCount(12))
        _, state = sim.exec(source)
        assert state.iterations == 12
        assert not state.running

    def test_source_not_modified(self, potential, source):
        before = source.copy()
        ToySim(potential, FixedIterationCount(3)).exec(source)
        np.testing.assert_array_equal(source, before)

    def test_exec_logs(self, potential, source, caplog):
        caplog.set_level("INFO")
        ToySim(potential, FixedIterationCount(2)).exec(source)
        assert "Starting ToySim iteration" in caplog.text
        assert "ToySim finished: 2 iterations" in caplog.text


class TestDiagnosticOperators:
    def test_operator_requires_forward_operator(self, potential, source):
        sim = ToySim(potential, FixedIterationCount(1))
        with pytest.raises(ConfigurationError, match="forward_operator"):
            sim.operator(source)

    def test_operator(self, potential, source):
        sim = ToySim(potential, FixedIterationCount(1), forward_operator=True)
        np.testing.assert_allclose(sim.operator(source)[:, 0], (L_SCALED + potential) * source[:, 0])

    def test_preconditioner(self, potential, source):
        sim = ToySim(potential, FixedIterationCount(1))
        expected = (1.0 - potential) * source[:, 0] / (L_SCALED + 1.0)
        np.testing.assert_allclose(sim.preconditioner(source)[:, 0], expected)

    def test_preconditioned_equals_preconditioner_of_operator(self, potential, source):
        sim = ToySim(potential, FixedIterationCount(1), forward_operator=True)
        np.testing.assert_allclose(
            sim.preconditioned(source),
            sim.preconditioner(sim.operator(source)),
            rtol=1e-12,
            atol=1e-14,
        )
