"""Fourier transform between the real domain and k-space.

Fields have shape ``grid_shape + (n_components,)``; the transform acts on
the grid axes only. ``scipy.fft`` keeps single precision input in single
precision and caches its plans internally.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import scipy.fft

from anysim.core.bases import TransformBase

if TYPE_CHECKING:
    from anysim.core.state import State


class FourierTransform(TransformBase):
    """Discrete Fourier transform over the grid axes of a field.

    Args:
        axes: Grid axes to transform (components are never transformed).
        real_signal: Drop the imaginary part after the inverse transform.
        workers: Worker threads for ``scipy.fft`` (-1 = all cores).
    """

    def __init__(
        self,
        axes: tuple[int, ...] = (0, 1, 2, 3),
        real_signal: bool = True,
        workers: int = -1,
    ) -> None:
        self.axes = tuple(axes)
        self.real_signal = real_signal
        self.workers = workers

    def r2k(self, u: np.ndarray, state: State | None = None) -> np.ndarray:
        return scipy.fft.fftn(u, axes=self.axes, workers=self.workers)

    def k2r(self, u: np.ndarray, state: State | None = None) -> np.ndarray:
        u = scipy.fft.ifftn(u, axes=self.axes, workers=self.workers)
        if self.real_signal:
            return np.ascontiguousarray(u.real)
        return u
