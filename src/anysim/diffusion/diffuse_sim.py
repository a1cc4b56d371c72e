"""Diffusion equation on the anysim framework.

Solves the static or dynamic diffusion equation with a position-dependent
diffusion coefficient (scalar, diagonal or full tensor) and absorption,
written as a first-order system in the flux F and intensity I:

    D^-1 F + grad I          = 0
    dI/dt + div F + a I      = s

With u = (Fx, Fy, Fz, I) this is (L + V) u = s where, per voxel,

        [           0 ]               [             i kx ]
    V = [  D^-1     0 ]      L(k) =   [             i ky ]
        [           0 ]               [             i kz ]
        [ 0  0  0   a ]               [ i kx i ky i kz  i w ]

L has a zero diagonal (apart from i w) and is anti-Hermitian in k-space, so
L + V0 is accretive for any non-negative background V0.
Time is measured in units of length (t -> c t), as are D and a.
"""

from __future__ import annotations

import logging
import warnings

import numpy as np

from anysim.config import N_AXES, DiffusionConfig
from anysim.core.bases import ConfigurationError
from anysim.core.linalg import batched_inv
from anysim.grid.grid_sim import GridSim
from anysim.operators.medium import Medium
from anysim.operators.propagator import MatrixPropagator
from anysim.operators.transform import FourierTransform

logger = logging.getLogger(__name__)

N_COMPONENTS = 4  # Fx, Fy, Fz, I
INTENSITY = 3

# Decay length of the background must be at most this fraction of the domain
DECAY_FRACTION = 0.1


def diffusion_potential(
    D: np.ndarray,  # noqa: N803
    a: np.ndarray,
    potential_type: str,
    shape: tuple[int, ...],
) -> np.ndarray:
    """Assemble the raw per-voxel potential V from D and a.

    The top-left 3x3 block is the inverse diffusion tensor, the bottom-right
    entry is the absorption coefficient. Scalar and diagonal coefficients are
    inverted elementwise, so D = inf describes a region without scattering.

    Args:
        D: Diffusion coefficient; grid shape for 'scalar', grid + (3,) for
           'diagonal', grid + (3, 3) for 'tensor'. Grid axes may be singleton
           or missing at the end (broadcast).
        a: Absorption coefficient, grid shape (broadcast).
        potential_type: 'scalar', 'diagonal' or 'tensor'.
        shape: ROI grid shape (Nx, Ny, Nz, Nt).

    Returns:
        Raw potential, shape ``shape + (4, 4)``, float64.

    Raises:
        ConfigurationError: Unknown potential type, coefficient not positive
            definite, negative or non-finite absorption.
    """
    D = np.asarray(D, dtype=np.float64)
    a = np.asarray(a, dtype=np.float64)
    if potential_type not in ("scalar", "diagonal", "tensor"):
        raise ConfigurationError(f"Incorrect option for potential_type: '{potential_type}'")
    if not np.all(np.isfinite(a)) or np.any(a < 0):
        raise ConfigurationError("absorption coefficient a must be finite and non-negative")

    n_trailing = {"scalar": 0, "diagonal": 1, "tensor": 2}[potential_type]
    grid_ndim = D.ndim - n_trailing
    D = D.reshape(D.shape[:grid_ndim] + (1,) * (N_AXES - grid_ndim) + D.shape[grid_ndim:])
    a = a.reshape(a.shape + (1,) * (N_AXES - a.ndim))

    V = np.zeros(tuple(shape) + (N_COMPONENTS, N_COMPONENTS))
    if potential_type == "tensor":
        if not np.all(np.isfinite(D)):
            raise ConfigurationError("diffusion tensor must be finite")
        sym = 0.5 * (D + np.swapaxes(D, -1, -2))
        if np.any(np.linalg.eigvalsh(sym) <= 0):
            raise ConfigurationError("diffusion tensor D must be positive definite at every voxel")
        V[..., :3, :3] = batched_inv(D)
    else:
        if np.any(np.isnan(D)) or np.any(D <= 0):
            raise ConfigurationError("diffusion coefficient D must be positive at every voxel")
        inv_D = np.broadcast_to(1.0 / D[..., None] if potential_type == "scalar" else 1.0 / D, tuple(shape) + (3,))
        idx = np.arange(3)
        V[..., idx, idx] = inv_D
    V[..., INTENSITY, INTENSITY] = a
    return V


class DiffuseSim(GridSim):
    """Diffusion equation simulation.

    Args:
        D: Diffusion coefficient, interpreted according to
           ``config.potential_type`` (see ``diffusion_potential``).
        a: Absorption coefficient.
        config: Diffusion options; ``N`` is derived from D and a when unset.

    Example::

        config = DiffusionConfig(N=[256, 1, 1, 1], boundaries={"periodic": [False, True, True, True]})
        sim = DiffuseSim(25.0, 0.0, config)
        u, state = sim.exec(sim.point_source((0, 0, 0, 0)))
        intensity = u[:, 0, 0, 0, 3]
    """

    def __init__(
        self,
        D: np.ndarray | float,  # noqa: N803
        a: np.ndarray | float,
        config: DiffusionConfig | None = None,
    ) -> None:
        config = config if config is not None else DiffusionConfig()
        D = np.asarray(D, dtype=np.float64)
        a = np.asarray(a, dtype=np.float64)
        config = config.with_coefficient_shapes(D.shape, a.shape)
        super().__init__(config, N_COMPONENTS)

        self.medium = self.make_diffusion_medium(D, a)
        self.transform = FourierTransform(axes=tuple(range(N_AXES)), real_signal=config.real_signal)
        self.propagator = self.make_propagator()
        if config.forward_operator:
            self.L = MatrixPropagator(self._fix_edges(self._scaled_L()), dtype=config.complex_dtype)

    # --- medium ---

    def make_diffusion_medium(self, D: np.ndarray, a: np.ndarray) -> Medium:  # noqa: N803
        """Construct the medium operator G = 1 - V from D and a.

        The raw potential is continued into the boundary layers, where the
        absorption is ramped up quadratically so that the field decays by
        ``boundaries.quality`` decay lengths across each layer.
        """
        V_roi = diffusion_potential(D, a, self.config.potential_type, self.grid.N_roi)
        V_roi_max = np.diagonal(V_roi, axis1=-2, axis2=-1).reshape(-1, N_COMPONENTS).max(axis=0)
        V_min = self.analyze_dimensions(V_roi_max)

        V_raw = self.grid.pad(V_roi, mode="edge")
        quality = self.config.boundaries.quality
        for d in range(N_AXES):
            w = self.grid.padding[d]
            if w == 0:
                continue
            extent = w * self.grid.pixel_size[d]
            if d == INTENSITY:
                # decay exp(-a t): integral of A (t/w)**2 over the layer is A w / 3
                A = 3.0 * quality / extent
            else:
                # decay exp(-sqrt(a V_dd) x): integral over the layer is sqrt(A V_dd) w / 2
                V_ref = float(np.mean(V_roi[..., d, d]))
                V_ref = V_ref if V_ref > 0.0 else 1.0
                A = (2.0 * quality / extent) ** 2 / V_ref
            V_raw[..., INTENSITY, INTENSITY] += A * self.grid.boundary_depth(d) ** 2
            logger.debug("Absorbing layer axis %d: width %d px, peak absorption %.3g", d, w, A)

        return self.make_medium(V_raw, V_min)

    def analyze_dimensions(self, V_max: np.ndarray) -> np.ndarray:  # noqa: N803
        """Minimum background potential needed to suppress wrap-around.

        The scaled Green's function decays with mu_eff = sqrt(V_t V_j) along
        axis j. Its decay length must be at most ``DECAY_FRACTION`` of the
        domain extent along every axis. Periodic and inactive axes use the
        largest extent of all axes. For a static simulation the t axis takes
        the largest required mu_eff. Then V_min_j = mu_eff_j**2 / mu_eff_t.

        Also checks that the pixel size resolves the smallest feature size
        1/sqrt(V_t V_j) and warns (without changing anything) when it is far
        too coarse or unnecessarily fine.

        Args:
            V_max: Largest raw potential per component (diagonal entries).

        Returns:
            V_min per component, shape (4,).
        """
        active = self.grid.active
        limiting_size = self.grid.dimensions()
        relaxed = np.asarray(self.grid.periodic) | ~active
        limiting_size[relaxed] = limiting_size.max()
        mu_eff_min = (1.0 / DECAY_FRACTION) / limiting_size
        if not active[INTENSITY]:
            mu_eff_min[INTENSITY] = mu_eff_min.max()
        V_min = mu_eff_min**2 / mu_eff_min[INTENSITY]

        V_max = np.maximum(V_min, V_max)
        feature_size = 1.0 / np.sqrt(V_max[INTENSITY] * V_max[active])
        pixel_size = self.grid.pixel_size[active]
        if np.any(feature_size / 2 < pixel_size):
            warnings.warn(
                "Resolution is too low to resolve the smallest features in the simulation. "
                f"Minimum pixel size: {np.array2string(feature_size / 2, precision=4)} "
                f"Current pixel size: {np.array2string(pixel_size, precision=4)}",
                UserWarning,
                stacklevel=2,
            )
        if np.any(feature_size / 8 > pixel_size):
            warnings.warn(
                "Resolution seems to be on the high side. "
                f"Minimum pixel size: {np.array2string(feature_size / 2, precision=4)} "
                f"Current pixel size: {np.array2string(pixel_size, precision=4)}",
                UserWarning,
                stacklevel=2,
            )
        return V_min

    # --- propagator ---

    def _scaled_L(self) -> np.ndarray:  # noqa: N802
        """Tl (L + V0) Tr on the k-space grid, shape N + (4, 4), complex128."""
        L = np.zeros(self.grid.N + (N_COMPONENTS, N_COMPONENTS), dtype=np.complex128)
        for d in range(N_AXES):
            ik = 1j * self.grid.coordinates_f(d)
            L[..., INTENSITY, d] = ik
            L[..., d, INTENSITY] = ik
        m = self.medium
        return m.Tl @ (L + m.V0) @ m.Tr

    def _fix_edges(self, matrices: np.ndarray) -> np.ndarray:
        return self.grid.fix_edges_hermitian(matrices, axes=tuple(range(N_AXES)))

    def make_propagator(self) -> MatrixPropagator:
        """Construct the propagator (L'+1)^-1 with L' = Tl (L + V0) Tr.

        The matrices are inverted per voxel and then made Hermitian symmetric
        along x, y, z, t so that even-length axes do not create artefacts.
        """
        Lr = self._scaled_L()
        Lr += np.eye(N_COMPONENTS)
        Lr = batched_inv(Lr)
        Lr = self._fix_edges(Lr)
        return MatrixPropagator(Lr, dtype=self.config.complex_dtype)
