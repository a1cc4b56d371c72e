"""Medium operator G = 1 - V for the split-Richardson iteration.

The raw potential V_raw of an equation (L + V_raw) u = s is split into a
homogeneous background V0 and a scattering part, and both sides are scaled
with diagonal matrices Tl and Tr:

    L' = Tl (L + V0) Tr
    V  = Tl (V_raw - V0) Tr
    u  = Tr u',   s' = Tl s

so that (L' + V) u' = s'. The scaling is chosen such that the induced norm
of V is at most ``V_max < 1`` on every voxel, which makes the iteration a
contraction. The propagator is built from Tl, V0 and Tr; the medium only
keeps the scaled V and G = 1 - V.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from anysim.core.bases import ConfigurationError, MediumBase
from anysim.core.linalg import batched_matvec, diag_matrix, voxel_norms

if TYPE_CHECKING:
    from anysim.core.state import State

logger = logging.getLogger(__name__)


def center_scale(
    V_raw: np.ndarray,  # noqa: N803
    V_min: np.ndarray | None = None,  # noqa: N803
    V_max: float = 0.95,  # noqa: N803
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Split a per-voxel potential into background and scaled scattering part.

    For each component j the background V0_jj is the midpoint of the range
    of V_raw[..., j, j] over all voxels, raised to at least ``V_min[j]`` (the
    decay the propagator needs to suppress wrap-around). Each component gets
    a base scaling 1/sqrt(max(r_j, V0_jj)), with r_j the largest deviation of
    V_raw[..., j, j] from the background; one global factor then brings the
    largest per-voxel induced norm to exactly ``V_max``.

    Args:
        V_raw: Raw potential, shape ``grid_shape + (n, n)``.
        V_min: Minimum background per component, shape (n,). Defaults to 0.
        V_max: Bound on the induced 2-norm of the scaled potential, < 1.

    Returns:
        Tuple (V, Tl, V0, Tr) with V the scaled potential (same shape as
        V_raw) and Tl, V0, Tr diagonal (n, n) matrices.

    Raises:
        ConfigurationError: If V_raw is not finite or V_max is not in (0, 1).
    """
    if not 0.0 < V_max < 1.0:
        raise ConfigurationError(f"V_max must be in (0, 1), got {V_max}")
    V_raw = np.asarray(V_raw, dtype=np.float64)
    if not np.all(np.isfinite(V_raw)):
        raise ConfigurationError("potential contains non-finite values")
    n = V_raw.shape[-1]
    if V_min is None:
        V_min = np.zeros(n)

    diag = np.diagonal(V_raw, axis1=-2, axis2=-1).reshape(-1, n)
    lo = diag.min(axis=0)
    hi = diag.max(axis=0)
    v0 = np.maximum(0.5 * (lo + hi), np.asarray(V_min, dtype=np.float64))
    radius = np.maximum(hi - v0, v0 - lo)

    reference = np.maximum(radius, v0)
    t = np.where(reference > 0.0, 1.0 / np.sqrt(np.where(reference > 0.0, reference, 1.0)), 1.0)

    V0 = diag_matrix(v0)
    W = (V_raw - V0) * t[:, None] * t[None, :]
    max_norm = float(voxel_norms(W).max())
    scale = np.sqrt(V_max / max_norm) if max_norm > 0.0 else 1.0

    T = diag_matrix(scale * t)
    V = W * scale**2
    logger.debug(
        "Potential scaling: V0=%s, T=%s, max ||V||=%.3f",
        np.array2string(v0, precision=4),
        np.array2string(scale * t, precision=4),
        max_norm * scale**2,
    )
    return V, T, V0, T.copy()


class Medium(MediumBase):
    """Medium operator G = 1 - V with a scaled per-voxel potential V.

    Args:
        potential: Scaled potential V, shape ``grid_shape + (n, n)``.
        Tl: Left scaling matrix (n, n).
        V0: Background potential (n, n).
        Tr: Right scaling matrix (n, n).
        dtype: Working dtype of the iteration.
    """

    def __init__(
        self,
        potential: np.ndarray,
        Tl: np.ndarray,  # noqa: N803
        V0: np.ndarray,  # noqa: N803
        Tr: np.ndarray,  # noqa: N803
        dtype: type = np.float32,
    ) -> None:
        n = potential.shape[-1]
        self.Tl = Tl
        self.V0 = V0
        self.Tr = Tr
        self.potential = np.ascontiguousarray(potential, dtype=dtype)
        self.G = np.ascontiguousarray(np.eye(n) - potential, dtype=dtype)
        self.max_norm = float(voxel_norms(potential).max())

    @classmethod
    def from_potential(
        cls,
        V_raw: np.ndarray,  # noqa: N803
        V_min: np.ndarray | None = None,  # noqa: N803
        V_max: float = 0.95,  # noqa: N803
        dtype: type = np.float32,
    ) -> Medium:
        """Center and scale a raw potential and wrap it in a medium."""
        V, Tl, V0, Tr = center_scale(V_raw, V_min, V_max)
        return cls(V, Tl, V0, Tr, dtype=dtype)

    def mix_source(
        self,
        u: np.ndarray,
        source: np.ndarray,
        state: State | None = None,
    ) -> np.ndarray:
        return batched_matvec(self.G, u) + source

    def mix_field(
        self,
        u: np.ndarray,
        t1: np.ndarray,
        state: State | None = None,
    ) -> np.ndarray:
        return u + batched_matvec(self.G, t1 - u)

    def multiply_G(self, u: np.ndarray) -> np.ndarray:  # noqa: N802
        return batched_matvec(self.G, u)

    def multiply_V(self, u: np.ndarray) -> np.ndarray:  # noqa: N802
        return batched_matvec(self.potential, u)
