"""Pydantic v2 configuration system for anysim simulations.

Options are layered the same way the simulations are:

- ``SimulationConfig``: options every simulation understands (precision,
  termination condition, progress callback, forward operator).
- ``GridConfig``: adds the Cartesian grid (size, pixel size, boundaries)
  and the potential scaling bound.
- ``DiffusionConfig``: adds the interpretation of the diffusion
  coefficient, plus a narrowing pass that derives the grid size from the
  coefficient arrays.

A configuration is validated once, when it is built, and is read-only
afterwards. Supports JSON I/O for string-valued handles.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from anysim.core.bases import ConfigurationError

TERMINATION_HANDLES = ("relative_residual", "fixed_iteration_count", "time_limit")
CALLBACK_HANDLES = ("print_iteration", "residual_history")
POTENTIAL_TYPES = ("scalar", "diagonal", "tensor")

# Grid axes are always x, y, z, t
N_AXES = 4


def _per_axis(value: Any, name: str) -> list[Any]:
    """Broadcast a scalar option to one value per grid axis."""
    if isinstance(value, (list, tuple)):
        if len(value) != N_AXES:
            raise ValueError(f"{name} must have {N_AXES} entries (x, y, z, t), got {len(value)}")
        return list(value)
    return [value] * N_AXES


class TerminationConfig(BaseModel):
    """Termination predicate and residual sampling cadence."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    handle: str | Callable[..., bool] = Field(
        "relative_residual",
        description=(
            "'relative_residual' (stop below tolerance or at iteration_count), "
            "'fixed_iteration_count', 'time_limit', or a predicate(state) -> bool"
        ),
    )
    interval: int = Field(16, ge=1, description="Iterations between residual samples")
    tolerance: float = Field(1e-3, gt=0, description="Relative residual to stop at")
    iteration_count: int = Field(10000, ge=1, description="Maximum number of iterations (any interval)")
    max_time: float | None = Field(None, gt=0, description="Wall-clock budget [s] for 'time_limit'")

    @model_validator(mode="before")
    @classmethod
    def fixed_count_samples_every_iteration(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("handle") == "fixed_iteration_count":
            data = {"interval": 1, **data}
        return data

    @model_validator(mode="after")
    def validate_handle(self) -> TerminationConfig:
        if isinstance(self.handle, str):
            if self.handle not in TERMINATION_HANDLES:
                raise ValueError(
                    f"termination handle must be one of {TERMINATION_HANDLES} "
                    f"or a callable, got '{self.handle}'"
                )
            if self.handle == "fixed_iteration_count" and (self.iteration_count - 1) % self.interval:
                raise ValueError(
                    "fixed_iteration_count requires (iteration_count - 1) to be a "
                    f"multiple of interval, got iteration_count={self.iteration_count}, "
                    f"interval={self.interval}"
                )
            if self.handle == "time_limit" and self.max_time is None:
                raise ValueError("termination handle 'time_limit' requires max_time")
        elif not callable(self.handle):
            raise ValueError("termination handle must be a string or a callable")
        return self


class CallbackConfig(BaseModel):
    """Progress callback and its cadence."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    handle: str | Callable[..., Any] | None = Field(
        "print_iteration",
        description="'print_iteration', 'residual_history', None, or a callable(u, r, state)",
    )
    interval: int = Field(16, ge=1, description="Iterations between callback calls")

    @model_validator(mode="after")
    def validate_handle(self) -> CallbackConfig:
        if isinstance(self.handle, str) and self.handle not in CALLBACK_HANDLES:
            raise ValueError(
                f"callback handle must be one of {CALLBACK_HANDLES}, None or a callable, "
                f"got '{self.handle}'"
            )
        return self


class SimulationConfig(BaseModel):
    """Options shared by every simulation."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    precision: str = Field(
        "single",
        description="Floating-point precision: 'single' (float32) or 'double' (float64)",
    )
    gpu_enabled: bool = Field(False, description="Offload array operations to a GPU")
    forward_operator: bool = Field(
        False,
        description="Build the (scaled) forward operator L+V for diagnostics (expensive)",
    )
    termination_condition: TerminationConfig = Field(default_factory=TerminationConfig)
    callback: CallbackConfig = Field(default_factory=CallbackConfig)

    @model_validator(mode="after")
    def validate_precision(self) -> SimulationConfig:
        if self.precision not in ("single", "double"):
            raise ValueError(f"precision must be 'single' or 'double', got '{self.precision}'")
        if self.gpu_enabled:
            raise ValueError(
                "gpu_enabled=True is not supported: this build only has a CPU "
                "(NumPy/Numba) array backend"
            )
        return self

    @property
    def real_dtype(self) -> type:
        return np.float32 if self.precision == "single" else np.float64

    @property
    def complex_dtype(self) -> type:
        return np.complex64 if self.precision == "single" else np.complex128

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out


class BoundaryConfig(BaseModel):
    """Periodicity and absorbing boundary layers per grid axis."""

    model_config = ConfigDict(frozen=True)

    periodic: list[bool] = Field(
        default_factory=lambda: [True] * N_AXES,
        description="Periodic flag per axis (x, y, z, t); a single bool applies to all",
    )
    width: list[int] = Field(
        default_factory=lambda: [32] * N_AXES,
        description="Absorbing layer width [pixels] added on both sides of non-periodic axes",
    )
    quality: float = Field(
        4.0, gt=0,
        description="Attenuation (in decay lengths) of the field across one absorbing layer",
    )

    @model_validator(mode="before")
    @classmethod
    def broadcast_axes(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if "periodic" in data:
                data["periodic"] = _per_axis(data["periodic"], "periodic")
            if "width" in data:
                data["width"] = _per_axis(data["width"], "width")
        return data

    @model_validator(mode="after")
    def validate_width(self) -> BoundaryConfig:
        if any(w < 0 for w in self.width):
            raise ValueError("boundary width must be non-negative")
        return self

    @property
    def padding(self) -> list[int]:
        """Layer width actually added per axis (0 on periodic axes)."""
        return [0 if p else w for p, w in zip(self.periodic, self.width, strict=True)]


class GridConfig(SimulationConfig):
    """Options for simulations on a Cartesian x, y, z, t grid."""

    N: list[int] | None = Field(
        None,
        description="Grid size (Nx, Ny, Nz, Nt) of the region of interest; None = derive",
    )
    pixel_size: list[float] = Field(
        default_factory=lambda: [1.0] * N_AXES,
        description="Grid spacing per axis; a single value applies to all",
    )
    pixel_unit: str = Field("-", description="Unit of pixel_size (for reporting only)")
    boundaries: BoundaryConfig = Field(default_factory=BoundaryConfig)
    V_max: float = Field(
        0.95, gt=0, lt=1,
        description="Bound on the induced norm of the scaled potential",
    )
    real_signal: bool = Field(True, description="Fields are real-valued in the real domain")

    @model_validator(mode="before")
    @classmethod
    def broadcast_pixel_size(cls, data: Any) -> Any:
        if isinstance(data, dict) and "pixel_size" in data:
            data = dict(data)
            data["pixel_size"] = _per_axis(data["pixel_size"], "pixel_size")
        return data

    @model_validator(mode="after")
    def validate_grid(self) -> GridConfig:
        if self.N is not None:
            if len(self.N) != N_AXES:
                raise ValueError(f"N must have {N_AXES} entries (Nx, Ny, Nz, Nt), got {len(self.N)}")
            if any(n <= 0 for n in self.N):
                raise ValueError("N values must be positive integers")
        if any(p <= 0 for p in self.pixel_size):
            raise ValueError("pixel_size values must be positive")
        return self


class DiffusionConfig(GridConfig):
    """Options for the diffusion equation."""

    potential_type: str = Field(
        "scalar",
        description=(
            "Interpretation of D: 'scalar' (grid shape), 'diagonal' "
            "(grid + (3,)) or 'tensor' (grid + (3, 3))"
        ),
    )

    @model_validator(mode="after")
    def validate_potential_type(self) -> DiffusionConfig:
        if self.potential_type not in POTENTIAL_TYPES:
            raise ValueError(
                f"potential_type must be one of {POTENTIAL_TYPES}, got '{self.potential_type}'"
            )
        return self

    def with_coefficient_shapes(
        self,
        D_shape: tuple[int, ...],  # noqa: N803
        a_shape: tuple[int, ...],
    ) -> DiffusionConfig:
        """Narrow the configuration to the given coefficient arrays.

        Derives ``N`` from the coefficient shapes when it is unset, and checks
        that the coefficients broadcast onto the grid otherwise.

        Args:
            D_shape: Shape of the diffusion coefficient array.
            a_shape: Shape of the absorption coefficient array.

        Returns:
            A validated copy with ``N`` set.

        Raises:
            ConfigurationError: If the shapes do not match the potential type
                or cannot be broadcast onto the grid.
        """
        trailing = {"scalar": (), "diagonal": (3,), "tensor": (3, 3)}[self.potential_type]
        n_trailing = len(trailing)
        if n_trailing and tuple(D_shape[-n_trailing:]) != trailing:
            raise ConfigurationError(
                f"potential_type '{self.potential_type}' requires D to end in "
                f"{trailing}, got shape {tuple(D_shape)}"
            )
        grid_D = tuple(D_shape[: len(D_shape) - n_trailing])
        for name, shape in (("D", grid_D), ("a", tuple(a_shape))):
            if len(shape) > N_AXES:
                raise ConfigurationError(
                    f"{name} has {len(shape)} grid dimensions, at most {N_AXES} (x, y, z, t) allowed"
                )
        grid_D = grid_D + (1,) * (N_AXES - len(grid_D))
        grid_a = tuple(a_shape) + (1,) * (N_AXES - len(a_shape))

        if self.N is None:
            try:
                N = list(_broadcast_shape(grid_D, grid_a))
            except ValueError as exc:
                raise ConfigurationError(
                    f"D grid shape {grid_D} and a shape {grid_a} are not compatible"
                ) from exc
        else:
            N = list(self.N)
            for name, shape in (("D", grid_D), ("a", grid_a)):
                for d, (s, n) in enumerate(zip(shape, N, strict=True)):
                    if s not in (1, n):
                        raise ConfigurationError(
                            f"{name} has size {s} along axis {d}, expected 1 or N[{d}]={n}"
                        )
        return self.model_copy(update={"N": N})


def _broadcast_shape(*shapes: tuple[int, ...]) -> tuple[int, ...]:
    out = []
    for sizes in zip(*shapes, strict=True):
        non_unit = {s for s in sizes if s != 1}
        if len(non_unit) > 1:
            raise ValueError(f"incompatible sizes {sizes}")
        out.append(non_unit.pop() if non_unit else 1)
    return tuple(out)
