"""Cartesian x, y, z, t simulation grid with absorbing boundary padding.

The user specifies the region of interest (ROI). Each non-periodic axis is
extended by an absorbing layer of ``width`` pixels on both sides; periodic
axes are not padded. All arrays handled here have the four grid axes first,
followed by any number of trailing (component / matrix) axes. Axes with a
single grid point are never padded.

Coordinates in k-space follow the unshifted FFT ordering of
``numpy.fft.fftfreq``, so the Nyquist sample of an even axis of length N
sits at index N/2.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

N_AXES = 4


class SimGrid:
    """Grid geometry: sizes, pixel sizes, coordinates, padding and cropping.

    Args:
        N: ROI size per axis (Nx, Ny, Nz, Nt).
        pixel_size: Grid spacing per axis.
        periodic: Periodic flag per axis.
        width: Absorbing layer width per axis [pixels]; ignored on periodic
            axes and on axes with a single grid point.
    """

    def __init__(
        self,
        N: Sequence[int],  # noqa: N803
        pixel_size: Sequence[float],
        periodic: Sequence[bool],
        width: Sequence[int],
    ) -> None:
        self.N_roi = tuple(int(n) for n in N)
        self.pixel_size = np.asarray(pixel_size, dtype=np.float64)
        self.periodic = tuple(bool(p) for p in periodic)
        self.padding = tuple(
            0 if p or n == 1 else int(w)
            for n, p, w in zip(self.N_roi, self.periodic, width, strict=True)
        )
        self.N = tuple(n + 2 * w for n, w in zip(self.N_roi, self.padding, strict=True))

    @property
    def active(self) -> np.ndarray:
        """Axes with more than one grid point."""
        return np.array([n > 1 for n in self.N])

    def dimensions(self) -> np.ndarray:
        """Physical extent of the padded grid per axis."""
        return np.asarray(self.N) * self.pixel_size

    def _along(self, values: np.ndarray, d: int) -> np.ndarray:
        shape = [1] * N_AXES
        shape[d] = -1
        return values.reshape(shape)

    def coordinates(self, d: int) -> np.ndarray:
        """Real-space coordinates along axis d (ROI starts at 0), broadcastable."""
        idx = np.arange(self.N[d]) - self.padding[d]
        return self._along(idx * self.pixel_size[d], d)

    def coordinates_f(self, d: int) -> np.ndarray:
        """Angular wavenumbers along axis d in FFT order, broadcastable."""
        k = 2.0 * np.pi * np.fft.fftfreq(self.N[d], d=self.pixel_size[d])
        return self._along(k, d)

    def boundary_depth(self, d: int) -> np.ndarray:
        """Normalized depth into the absorbing layer along axis d.

        0 inside the ROI, rising linearly to 1 at the outer edge of the layer.
        All zeros for unpadded axes.
        """
        w = self.padding[d]
        if w == 0:
            return self._along(np.zeros(self.N[d]), d)
        idx = np.arange(self.N[d])
        depth = np.maximum.reduce([w - idx, idx - (w + self.N_roi[d] - 1), np.zeros_like(idx)])
        return self._along(depth / w, d)

    @property
    def roi(self) -> tuple[slice, ...]:
        return tuple(slice(w, w + n) for w, n in zip(self.padding, self.N_roi, strict=True))

    def pad(self, array: np.ndarray, mode: str = "edge") -> np.ndarray:
        """Broadcast an ROI array onto the ROI and pad it to the full grid.

        Args:
            array: Array whose first four axes broadcast onto the ROI shape.
            mode: ``numpy.pad`` mode: 'edge' continues the medium into the
                boundary layers, 'constant' pads with zeros.
        """
        trailing = array.shape[N_AXES:]
        array = np.broadcast_to(array, self.N_roi + trailing)
        pad_width = [(w, w) for w in self.padding] + [(0, 0)] * len(trailing)
        return np.pad(array, pad_width, mode=mode)

    def crop(self, array: np.ndarray) -> np.ndarray:
        """Remove the boundary layers."""
        return array[self.roi]

    @staticmethod
    def fix_edges_hermitian(data: np.ndarray, axes: Sequence[int]) -> np.ndarray:
        """Make a k-space operator Hermitian symmetric on even-length axes.

        An operator that maps real fields to real fields satisfies
        ``data[-k] == conj(data[k])`` elementwise. Sampled on an even-length
        axis the Nyquist index N/2 is its own mirror image, so that identity
        does not hold automatically there. For every even axis the Nyquist
        slice is replaced by the average of itself and the conjugate of its
        mirror image (k -> -k on all other given axes). Other samples are
        left untouched.

        Args:
            data: Operator samples, the given axes in FFT order.
            axes: Transformed axes.

        Returns:
            New array with the corrected Nyquist slices.
        """
        data = np.array(data, copy=True)
        for ax in axes:
            n = data.shape[ax]
            if n % 2:
                continue
            index = [slice(None)] * data.ndim
            index[ax] = slice(n // 2, n // 2 + 1)
            index = tuple(index)
            edge = data[index]
            mirror = edge
            for other in axes:
                if other != ax:
                    mirror = np.roll(np.flip(mirror, axis=other), 1, axis=other)
            data[index] = 0.5 * (edge + np.conj(mirror))
        return data
