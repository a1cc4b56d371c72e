"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from anysim.config import DiffusionConfig


@pytest.fixture
def rng():
    """Seeded random generator for reproducible coefficient fields."""
    return np.random.default_rng(1234)


@pytest.fixture
def quiet_callback():
    """Callback options that disable progress logging."""
    return {"handle": None}


@pytest.fixture
def odd_grid_config(quiet_callback):
    """Small 2D double-precision grid with odd sizes and the forward operator.

    Odd sizes (including the absorbing layers) avoid Nyquist samples, so the
    propagator is the exact inverse of L'+1.
    """
    return DiffusionConfig(
        N=[15, 9, 1, 1],
        precision="double",
        forward_operator=True,
        boundaries={"periodic": [False, True, True, True], "width": 4},
        callback=quiet_callback,
    )


@pytest.fixture
def line_config(quiet_callback):
    """Homogeneous 1D static problem with absorbing layers along x."""
    return DiffusionConfig(
        N=[256, 1, 1, 1],
        precision="double",
        boundaries={"periodic": [False, True, True, True], "width": 64, "quality": 4.0},
        termination_condition={"tolerance": 1e-7, "iteration_count": 50000, "interval": 32},
        callback=quiet_callback,
    )
