"""Core abstract base classes and the configuration error type.

Defines the interface contracts the solver engine relies on:
- ``MediumBase``: the medium operator G = 1 - V (real domain)
- ``PropagatorBase``: the propagator (L'+1)^-1 (transformed domain)
- ``TransformBase``: mapping between the real and transformed domains

The engine itself (``anysim.engine.AnySim``) only talks to these contracts;
all equation-specific math lives in the concrete implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from anysim.core.state import State


class ConfigurationError(ValueError):
    """A simulation was set up with options or coefficients it cannot use.

    Raised before or during construction (never from inside the iteration
    loop), and by diagnostic operators that were not enabled at construction.
    """


class MediumBase(ABC):
    """Abstract medium operator G = 1 - V, with V the scaled potential."""

    @abstractmethod
    def mix_source(
        self,
        u: np.ndarray,
        source: np.ndarray,
        state: State | None = None,
    ) -> np.ndarray:
        """Return G u + s, the field to be propagated.

        Args:
            u: Current field estimate (real domain).
            source: Scaled source array, same shape as ``u``.
            state: Convergence state of the running ``exec`` call.

        Returns:
            New array; neither input is modified.
        """

    @abstractmethod
    def mix_field(
        self,
        u: np.ndarray,
        t1: np.ndarray,
        state: State | None = None,
    ) -> np.ndarray:
        """Return the updated field u + G (t1 - u).

        Args:
            u: Current field estimate (real domain).
            t1: Propagated field, transformed back to the real domain.
            state: Convergence state of the running ``exec`` call.
        """

    @abstractmethod
    def multiply_G(self, u: np.ndarray) -> np.ndarray:  # noqa: N802
        """Return G u = (1 - V) u."""

    @abstractmethod
    def multiply_V(self, u: np.ndarray) -> np.ndarray:  # noqa: N802
        """Return V u."""


class PropagatorBase(ABC):
    """Abstract propagator (L'+1)^-1, applied in the transformed domain."""

    @abstractmethod
    def apply(self, t: np.ndarray, state: State | None = None) -> np.ndarray:
        """Apply the propagator to a transformed-domain field."""


class TransformBase(ABC):
    """Abstract transform between the real and the transformed domain."""

    @abstractmethod
    def r2k(self, u: np.ndarray, state: State | None = None) -> np.ndarray:
        """Real domain -> transformed domain."""

    @abstractmethod
    def k2r(self, u: np.ndarray, state: State | None = None) -> np.ndarray:
        """Transformed domain -> real domain (exact inverse of ``r2k``)."""

    def r2r(self, u: np.ndarray, state: State | None = None) -> np.ndarray:
        """Map a real-domain field onto the current real domain.

        Identity for stationary domains. Reserved for domains whose transform
        depends on the iteration state.
        """
        return u
