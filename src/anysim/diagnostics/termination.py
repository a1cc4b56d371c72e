"""Termination predicates for the split-Richardson loop.

A termination predicate is any callable ``predicate(state) -> bool`` that
returns True when iteration should stop. ``State.next`` calls it at sampled
iterations, i.e. every ``termination_condition.interval`` iterations, and at
the configured ``iteration_count``, right after appending the latest
normalized residual.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from anysim.config import TerminationConfig
    from anysim.core.state import State, TerminationPredicate

logger = logging.getLogger(__name__)


class RelativeResidual:
    """Stop when the normalized residual drops below ``tolerance``, or when
    ``iteration_count`` iterations have been performed."""

    def __init__(self, tolerance: float = 1e-3, iteration_count: int = 10000) -> None:
        self.tolerance = tolerance
        self.iteration_count = iteration_count

    def __call__(self, state: State) -> bool:
        if state.residual is not None and state.residual < self.tolerance:
            return True
        if state.iteration >= self.iteration_count:
            logger.warning(
                "Relative residual %.3e did not reach tolerance %.1e after %d iterations",
                state.residual if state.residual is not None else float("nan"),
                self.tolerance,
                state.iteration,
            )
            return True
        return False


class FixedIterationCount:
    """Stop after exactly ``iteration_count`` iterations.

    Only exact when the predicate is sampled at the last iteration, which the
    configuration guarantees by requiring ``(iteration_count - 1)`` to be a
    multiple of the sampling interval.
    """

    def __init__(self, iteration_count: int) -> None:
        self.iteration_count = iteration_count

    def __call__(self, state: State) -> bool:
        return state.iteration >= self.iteration_count


class TimeLimit:
    """Stop once ``max_time`` seconds have elapsed since the state was created,
    or at ``iteration_count`` iterations."""

    def __init__(self, max_time: float, iteration_count: int = 10000) -> None:
        self.max_time = max_time
        self.iteration_count = iteration_count

    def __call__(self, state: State) -> bool:
        elapsed = time.perf_counter() - state.start_time
        return elapsed >= self.max_time or state.iteration >= self.iteration_count


def make_termination_condition(config: TerminationConfig) -> TerminationPredicate:
    """Resolve the configured handle to a predicate."""
    handle = config.handle
    if callable(handle):
        return handle
    if handle == "relative_residual":
        return RelativeResidual(config.tolerance, config.iteration_count)
    if handle == "fixed_iteration_count":
        return FixedIterationCount(config.iteration_count)
    if handle == "time_limit":
        return TimeLimit(config.max_time, config.iteration_count)
    raise ValueError(f"Unknown termination handle '{handle}'")
