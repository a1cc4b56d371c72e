"""Convergence state of one ``exec`` call.

``State`` is created by ``start()`` at the beginning of ``AnySim.exec``,
advanced once per iteration by ``next()`` and closed by ``finalize()``.
It is owned by a single ``exec`` call and must not be shared.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

if TYPE_CHECKING:
    from anysim.config import SimulationConfig

TerminationPredicate = Callable[["State"], bool]
ProgressCallback = Callable[[np.ndarray, np.ndarray, "State"], None]


@dataclass
class State:
    """Iteration bookkeeping for the split-Richardson loop.

    Attributes:
        termination_condition: Predicate called with this state at every
            sampled iteration; returns True to stop.
        termination_interval: Sampling cadence for residuals and termination.
        callback: Progress callback ``callback(u, r, state)`` or None.
        callback_interval: Cadence of the progress callback.
        max_iterations: Iteration cap of the termination condition, if any.
            The predicate is also called at this iteration so that the cap
            holds whatever the sampling interval.
        iteration: Index of the current iteration (starts at 1). After the
            loop exits it is one past the last iteration performed.
        running: False once the termination predicate fired.
        residuals: Normalized residuals ``||r|| / normb`` at sampled iterations.
        residual_iterations: Iteration indices the residuals were sampled at.
        normb: Norm of the first sampled residual, used for normalization.
        start_time: ``time.perf_counter()`` at construction [s].
        end_time: ``time.perf_counter()`` at ``finalize()`` [s].
        run_time: ``end_time - start_time`` [s].
        extras: Equation-specific diagnostics.
    """

    termination_condition: TerminationPredicate
    termination_interval: int = 16
    callback: ProgressCallback | None = None
    callback_interval: int = 16
    max_iterations: int | None = None
    iteration: int = 1
    running: bool = True
    residuals: list[float] = field(default_factory=list)
    residual_iterations: list[int] = field(default_factory=list)
    normb: float | None = None
    start_time: float = field(default_factory=time.perf_counter)
    end_time: float | None = None
    run_time: float | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: SimulationConfig) -> State:
        """Build a fresh state with the termination condition and callback
        selected in ``config``."""
        from anysim.diagnostics.callbacks import make_callback
        from anysim.diagnostics.termination import make_termination_condition

        tc = config.termination_condition
        cb = config.callback
        return cls(
            termination_condition=make_termination_condition(tc),
            termination_interval=tc.interval,
            callback=make_callback(cb),
            callback_interval=cb.interval,
            max_iterations=tc.iteration_count if isinstance(tc.handle, str) else None,
        )

    @property
    def iterations(self) -> int:
        """Number of loop iterations performed so far."""
        return self.iteration - 1

    @property
    def residual(self) -> float | None:
        """Most recently sampled normalized residual."""
        return self.residuals[-1] if self.residuals else None

    def next(self, u: np.ndarray, r: np.ndarray) -> None:
        """Advance the state after one iteration.

        Args:
            u: Field estimate after this iteration.
            r: Residual estimate of this iteration.
        """
        sampled = (self.iteration - 1) % self.termination_interval == 0
        if sampled or self.iteration == self.max_iterations:
            norm_r = float(np.linalg.norm(r))
            if self.normb is None:
                # a zero first residual means u already solves the system
                self.normb = norm_r if norm_r > 0.0 else 1.0
            self.residuals.append(norm_r / self.normb)
            self.residual_iterations.append(self.iteration)
            self.running = not self.termination_condition(self)

        if self.callback is not None and (self.iteration - 1) % self.callback_interval == 0:
            self.callback(u, r, self)

        self.iteration += 1

    def finalize(self) -> None:
        """Record end time and run time. Later calls leave both unchanged."""
        if self.end_time is not None:
            return
        self.end_time = time.perf_counter()
        self.run_time = self.end_time - self.start_time
