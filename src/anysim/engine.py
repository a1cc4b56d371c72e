"""Simulation engine for the split-Richardson iteration for (L+V)u = s.

``AnySim`` is the abstract base of every simulation. A concrete simulation
builds three operators in its constructor and implements two methods:

- ``medium``: G = 1 - V in the real domain (``MediumBase``)
- ``propagator``: (L'+1)^-1 in the transformed domain (``PropagatorBase``)
- ``transform``: real <-> transformed domain (``TransformBase``)
- ``start()``: initial field and a fresh ``State``
- ``finalize()``: undo the scaling, crop to the region of interest

One iteration computes

    t1 = G u + s                 medium.mix_source
    t1 = (L'+1)^-1 t1            transform + propagator
    u  = u + G (t1 - u)          medium.mix_field

whose fixed point satisfies (L'+V) u = s. The update u_{k+1} - u_k equals
G (L'+1)^-1 (s - (L'+V) u_k), the preconditioned residual, and is what the
state samples for convergence.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np

from anysim.config import SimulationConfig
from anysim.core.bases import ConfigurationError, MediumBase, PropagatorBase, TransformBase
from anysim.core.state import State

logger = logging.getLogger(__name__)


class AnySim(ABC):
    """Abstract simulation running the split-Richardson iteration.

    Args:
        config: Validated simulation options.

    Attributes:
        medium: Medium operator, set by the subclass constructor.
        propagator: Propagator, set by the subclass constructor.
        transform: Domain transform, set by the subclass constructor.
        L: Scaled forward operator L' in the transformed domain, or None when
            ``config.forward_operator`` is False.
    """

    medium: MediumBase
    propagator: PropagatorBase
    transform: TransformBase

    def __init__(self, config: SimulationConfig) -> None:
        self.config = config
        self.L: PropagatorBase | None = None

    # --- extension points ---

    @abstractmethod
    def start(self) -> tuple[np.ndarray, State]:
        """Return the initial field estimate and a fresh convergence state."""

    @abstractmethod
    def finalize(self, u: np.ndarray, state: State) -> np.ndarray:
        """Convert the internal (scaled) solution to the user-facing field."""

    # --- main loop ---

    def exec(self, source: np.ndarray) -> tuple[np.ndarray, State]:
        """Solve (L+V)u = s for the given (scaled, grid-shaped) source.

        Args:
            source: Source array, as produced by the simulation's
                ``define_source``.

        Returns:
            Tuple (u, state) with the finalized field and the closed state.
        """
        u, state = self.start()
        logger.info("Starting %s iteration", type(self).__name__)

        while state.running:
            t1 = self.medium.mix_source(u, source, state)
            t1 = self.transform.r2k(t1, state)
            t1 = self.propagator.apply(t1, state)
            t1 = self.transform.k2r(t1, state)

            u = self.transform.r2r(u, state)
            u_next = self.medium.mix_field(u, t1, state)
            state.next(u_next, u_next - u)
            u = u_next

        u = self.finalize(u, state)
        state.finalize()
        logger.info(
            "%s finished: %d iterations in %.2f s, residual %.3e",
            type(self).__name__,
            state.iterations,
            state.run_time,
            state.residual if state.residual is not None else float("nan"),
        )
        return u, state

    # --- diagnostic operators (not used by the iteration) ---

    def preconditioner(self, b: np.ndarray) -> np.ndarray:
        """Return (1-V)(L'+1)^-1 b."""
        b = self.transform.r2k(b)
        b = self.propagator.apply(b)
        b = self.transform.k2r(b)
        return self.medium.multiply_G(b)

    def preconditioned(self, u: np.ndarray) -> np.ndarray:
        """Return the preconditioned operator (1-V)(L'+1)^-1 (L'+V) u.

        Uses (L'+1)^-1 L' = 1 - (L'+1)^-1, so that
        (1-V)(L'+1)^-1 (L'+V) = (1-V)[1 - (L'+1)^-1 (1-V)]
        and L' itself is never needed.
        """
        t1 = self.medium.multiply_G(u)
        t1 = self.transform.r2k(t1)
        t1 = self.propagator.apply(t1)
        t1 = self.transform.k2r(t1)
        return self.medium.multiply_G(u - t1)

    def operator(self, u: np.ndarray) -> np.ndarray:
        """Return the scaled forward operator (L'+V) u, without preconditioner.

        Raises:
            ConfigurationError: If the simulation was constructed without
                ``forward_operator=True``.
        """
        if self.L is None:
            raise ConfigurationError(
                "No forward operator was generated: construct the simulation with "
                "forward_operator=True to use operator()"
            )
        Vu = self.medium.multiply_V(u)
        u = self.transform.r2k(u)
        u = self.L.apply(u)
        return self.transform.k2r(u) + Vu
