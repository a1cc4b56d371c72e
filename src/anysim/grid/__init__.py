"""Cartesian simulation grid and the grid-based simulation base class."""

from anysim.grid.grid_sim import GridSim
from anysim.grid.sim_grid import SimGrid

__all__ = ["GridSim", "SimGrid"]
