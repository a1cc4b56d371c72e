"""Batched small-matrix linear algebra over the voxel index space.

Operators in this package are stored as one small dense matrix per voxel,
with shape ``grid_shape + (n, n)``; fields are stored as one small vector
per voxel, with shape ``grid_shape + (n,)``. Every routine here works voxel
by voxel without any cross-voxel coupling, so the voxel loop is data
parallel.

The matrix-vector product runs in the iteration loop and is compiled with
``@njit(cache=True, parallel=True)``. Inversion and norms only run at
construction time and use NumPy's stacked ``linalg`` routines.
"""

from __future__ import annotations

import numpy as np
from numba import njit, prange

from anysim.core.bases import ConfigurationError

# ============================================================
# Matrix-vector product (hot path)
# ============================================================


@njit(cache=True, parallel=True)
def _matvec_kernel(mats: np.ndarray, vecs: np.ndarray, out: np.ndarray) -> None:
    """Compute out[v] = mats[v] @ vecs[v] for every voxel v.

    Args:
        mats: Matrices, shape (n_vox, n, n).
        vecs: Vectors, shape (n_vox, n).
        out:  Output, shape (n_vox, n). Written in place.
    """
    n_vox = vecs.shape[0]
    n = vecs.shape[1]
    for v in prange(n_vox):
        for i in range(n):
            acc = mats[v, i, 0] * vecs[v, 0]
            for j in range(1, n):
                acc += mats[v, i, j] * vecs[v, j]
            out[v, i] = acc


def batched_matvec(mats: np.ndarray, vecs: np.ndarray) -> np.ndarray:
    """Multiply a field of vectors by a field of matrices, voxel by voxel.

    Args:
        mats: Array of shape ``grid_shape + (n, n)``, or ``(n, n)`` for a
              matrix shared by all voxels.
        vecs: Array of shape ``grid_shape + (n,)``.

    Returns:
        New array of shape ``grid_shape + (n,)`` with dtype
        ``result_type(mats, vecs)``.
    """
    n = vecs.shape[-1]
    if mats.shape[-2:] != (n, n):
        raise ValueError(
            f"matrix shape {mats.shape[-2:]} does not match vector length {n}"
        )
    dtype = np.result_type(mats.dtype, vecs.dtype)
    if mats.ndim == 2:
        return apply_shared(mats, vecs).astype(dtype, copy=False)
    if mats.shape[:-2] != vecs.shape[:-1]:
        raise ValueError(
            f"matrix grid {mats.shape[:-2]} does not match field grid {vecs.shape[:-1]}"
        )
    flat_mats = np.ascontiguousarray(mats.reshape(-1, n, n), dtype=dtype)
    flat_vecs = np.ascontiguousarray(vecs.reshape(-1, n), dtype=dtype)

    out = np.empty_like(flat_vecs)
    _matvec_kernel(flat_mats, flat_vecs, out)
    return out.reshape(vecs.shape)


def apply_shared(mat: np.ndarray, vecs: np.ndarray) -> np.ndarray:
    """Multiply every voxel vector by the same (n, n) matrix."""
    return np.einsum("ij,...j->...i", mat, vecs)


# ============================================================
# Construction-time routines
# ============================================================


def batched_inv(mats: np.ndarray) -> np.ndarray:
    """Invert a field of small dense matrices, voxel by voxel.

    Raises:
        ConfigurationError: If the matrix at any voxel is singular or the
            inverse is not finite.
    """
    try:
        inv = np.linalg.inv(mats)
    except np.linalg.LinAlgError as exc:
        raise ConfigurationError(
            "operator matrix is singular at one or more voxels and cannot be inverted"
        ) from exc
    if not np.all(np.isfinite(inv)):
        raise ConfigurationError(
            "operator matrix inverse is not finite at one or more voxels"
        )
    return inv


def voxel_norms(mats: np.ndarray) -> np.ndarray:
    """Induced 2-norm (largest singular value) of each voxel matrix."""
    return np.linalg.norm(mats, ord=2, axis=(-2, -1))


def diag_matrix(values: np.ndarray) -> np.ndarray:
    """Build an (n, n) diagonal matrix from a length-n vector."""
    return np.diag(np.asarray(values))
