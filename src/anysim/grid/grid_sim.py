"""Base class for simulations on a padded Cartesian grid.

``GridSim`` implements the two ``AnySim`` extension points for grid-based
equations: the initial field is zero on the padded grid, and finalizing
applies the right scaling matrix Tr and crops the absorbing layers. It also
turns user sources on the region of interest into scaled grid sources.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np

from anysim.config import GridConfig
from anysim.core.bases import ConfigurationError
from anysim.core.linalg import apply_shared
from anysim.core.state import State
from anysim.engine import AnySim
from anysim.grid.sim_grid import SimGrid
from anysim.operators.medium import Medium

logger = logging.getLogger(__name__)


class GridSim(AnySim):
    """Grid-based simulation with ``n_components`` field components per voxel.

    Args:
        config: Grid options with ``N`` resolved.
        n_components: Number of physical components per voxel.
    """

    medium: Medium

    def __init__(self, config: GridConfig, n_components: int) -> None:
        super().__init__(config)
        if config.N is None:
            raise ConfigurationError("grid size N must be set before constructing a grid simulation")
        self.n_components = n_components
        bc = config.boundaries
        self.grid = SimGrid(config.N, config.pixel_size, bc.periodic, bc.width)
        self.dtype = config.real_dtype if config.real_signal else config.complex_dtype
        logger.info(
            "Grid: ROI %s, padded %s, pixel size %s %s",
            self.grid.N_roi,
            self.grid.N,
            self.grid.pixel_size.tolist(),
            config.pixel_unit,
        )

    @property
    def field_shape(self) -> tuple[int, ...]:
        return self.grid.N + (self.n_components,)

    def make_medium(self, V_raw: np.ndarray, V_min: np.ndarray | None = None) -> Medium:  # noqa: N803
        """Center and scale a raw potential on the padded grid so that ||V|| < 1."""
        medium = Medium.from_potential(V_raw, V_min, self.config.V_max, dtype=self.dtype)
        logger.info("Medium: scaled potential norm %.3f", medium.max_norm)
        return medium

    # --- sources ---

    def define_source(self, values: np.ndarray) -> np.ndarray:
        """Turn a source on the region of interest into a scaled grid source.

        Args:
            values: Source with shape broadcastable to ``N + (n_components,)``.

        Returns:
            Source on the padded grid, multiplied by Tl, in the working dtype.
        """
        values = np.asarray(values)
        if values.ndim != 5 or values.shape[-1] != self.n_components:
            raise ConfigurationError(
                f"source must have shape (Nx, Ny, Nz, Nt, {self.n_components}), "
                f"got {values.shape}"
            )
        if self.config.real_signal and np.iscomplexobj(values) and np.any(values.imag):
            raise ConfigurationError("complex source values require real_signal=False")
        try:
            source = self.grid.pad(values, mode="constant")
        except ValueError as exc:
            raise ConfigurationError(
                f"source shape {values.shape} does not fit the grid {self.grid.N_roi}"
            ) from exc
        return np.ascontiguousarray(apply_shared(self.medium.Tl, source), dtype=self.dtype)

    def point_source(
        self,
        position: Sequence[int],
        component: int = -1,
        amplitude: complex = 1.0,
    ) -> np.ndarray:
        """Scaled grid source with a single non-zero sample.

        Args:
            position: ROI index (ix, iy, iz, it).
            component: Field component of the source (default: last).
            amplitude: Source value. Complex values require ``real_signal=False``.
        """
        values = np.zeros(self.grid.N_roi + (self.n_components,), dtype=np.asarray(amplitude).dtype)
        values[tuple(position) + (component,)] = amplitude
        return self.define_source(values)

    # --- AnySim extension points ---

    def start(self) -> tuple[np.ndarray, State]:
        u = np.zeros(self.field_shape, dtype=self.dtype)
        return u, State.from_config(self.config)

    def finalize(self, u: np.ndarray, state: State) -> np.ndarray:
        u = apply_shared(self.medium.Tr, u)
        return np.ascontiguousarray(self.grid.crop(u), dtype=self.dtype)
