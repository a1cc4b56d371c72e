"""Progress callbacks for the split-Richardson loop.

A callback is any callable ``callback(u, r, state)``. Its return value is
ignored. ``State.next`` calls it every ``callback.interval`` iterations.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from anysim.config import CallbackConfig
    from anysim.core.state import ProgressCallback, State

logger = logging.getLogger(__name__)


class PrintIterationCallback:
    """Log the iteration number and the latest normalized residual."""

    def __call__(self, u: np.ndarray, r: np.ndarray, state: State) -> None:
        if state.residual is None:
            logger.info("Iteration %d", state.iteration)
        else:
            logger.info(
                "Iteration %d: residual %.3e (sampled at %d)",
                state.iteration,
                state.residual,
                state.residual_iterations[-1],
            )


class ResidualHistoryCallback:
    """Collect the full (unsampled) update norm at every call.

    Useful when the termination interval is coarse but a finer convergence
    curve is wanted. Norms are stored in ``state.extras['update_norms']``.
    """

    def __call__(self, u: np.ndarray, r: np.ndarray, state: State) -> None:
        state.extras.setdefault("update_norms", []).append(
            (state.iteration, float(np.linalg.norm(r)))
        )


def make_callback(config: CallbackConfig) -> ProgressCallback | None:
    """Resolve the configured handle to a callback (or None)."""
    handle = config.handle
    if handle is None:
        return None
    if callable(handle):
        return handle
    if handle == "print_iteration":
        return PrintIterationCallback()
    if handle == "residual_history":
        return ResidualHistoryCallback()
    raise ValueError(f"Unknown callback handle '{handle}'")
