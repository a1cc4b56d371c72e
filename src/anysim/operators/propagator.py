"""Per-voxel matrix operators applied in k-space.

``MatrixPropagator`` holds one precomputed (n, n) matrix per k-space voxel
and applies it with a batched matrix-vector product. The same class is used
for the propagator (L'+1)^-1 and for the optional scaled forward operator L'.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from anysim.core.bases import PropagatorBase
from anysim.core.linalg import batched_matvec

if TYPE_CHECKING:
    from anysim.core.state import State


class MatrixPropagator(PropagatorBase):
    """Multiply a k-space field by a precomputed matrix field.

    Args:
        matrices: Operator matrices, shape ``grid_shape + (n, n)``.
        dtype: Working complex dtype.
    """

    def __init__(self, matrices: np.ndarray, dtype: type = np.complex64) -> None:
        self.matrices = np.ascontiguousarray(matrices, dtype=dtype)

    def apply(self, t: np.ndarray, state: State | None = None) -> np.ndarray:
        return batched_matvec(self.matrices, t)
