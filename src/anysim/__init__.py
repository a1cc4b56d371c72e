"""anysim: split-Richardson solver for linear operator equations (L+V)u = s."""

from anysim.config import (
    BoundaryConfig,
    CallbackConfig,
    DiffusionConfig,
    GridConfig,
    SimulationConfig,
    TerminationConfig,
)
from anysim.core.bases import ConfigurationError
from anysim.core.state import State
from anysim.diffusion import DiffuseSim
from anysim.engine import AnySim

__version__ = "0.1.0"

__all__ = [
    "AnySim",
    "BoundaryConfig",
    "CallbackConfig",
    "ConfigurationError",
    "DiffuseSim",
    "DiffusionConfig",
    "GridConfig",
    "SimulationConfig",
    "State",
    "TerminationConfig",
]
