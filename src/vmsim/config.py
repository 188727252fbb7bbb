"""Pydantic v2 configuration for Vlasov-Maxwell runs.

Provides validated, typed configuration with one submodel per concern
(grid, species, Maxwell solver, time integration, initial conditions,
diagnostics) and JSON I/O. Derived quantities (thermal speeds, velocity
extents, CFL numbers, light speed) are exposed as properties so the raw
file stays minimal.
"""

from __future__ import annotations

import json
import math
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

from vmsim import constants


class GridConfig(BaseModel):
    """Configuration-space grid."""

    lower: float = Field(-70.0, description="Lower edge of the x domain")
    upper: float = Field(70.0, description="Upper edge of the x domain")
    cells: int = Field(128, gt=0, description="Number of cells in x")
    boundary: str = Field(
        "copy",
        description="Ghost-cell fill on both x ends: 'copy' (zero-gradient) or 'periodic'",
    )
    ghost: list[int] = Field(
        default_factory=lambda: [1, 1],
        min_length=2,
        max_length=2,
        description="Ghost cells (lower, upper) on the x axis",
    )

    @model_validator(mode="after")
    def check_grid(self) -> GridConfig:
        if self.upper <= self.lower:
            raise ValueError(f"upper ({self.upper}) must exceed lower ({self.lower})")
        if self.boundary not in ("copy", "periodic"):
            raise ValueError(f"boundary must be 'copy' or 'periodic', got '{self.boundary}'")
        if any(g < 1 for g in self.ghost):
            raise ValueError(f"ghost widths must be at least 1, got {self.ghost}")
        return self

    @property
    def dx(self) -> float:
        return (self.upper - self.lower) / self.cells


class SpeciesConfig(BaseModel):
    """One kinetic species and its velocity grid."""

    name: str = Field(..., min_length=1, description="Short identifier, e.g. 'Elc'")
    charge: float = Field(..., description="Species charge")
    mass: float = Field(..., gt=0, description="Species mass")
    temperature: float = Field(..., ge=0, description="Species temperature")
    velocity_cells: list[int] = Field(
        default_factory=lambda: [32, 32, 32],
        min_length=3,
        max_length=3,
        description="Velocity cells (vx, vy, vz)",
    )
    velocity_extent: float = Field(
        8.0, gt=0, description="Velocity half-width in thermal speeds when bounds are unset",
    )
    velocity_lower: list[float] | None = Field(
        None, min_length=3, max_length=3, description="Explicit lower velocity bounds",
    )
    velocity_upper: list[float] | None = Field(
        None, min_length=3, max_length=3, description="Explicit upper velocity bounds",
    )
    drift_profile: str = Field(
        "none",
        description="Initial drift: 'none' (at rest) or 'weibel' (counter-streaming in vy)",
    )

    @model_validator(mode="after")
    def check_velocity(self) -> SpeciesConfig:
        if any(n <= 0 for n in self.velocity_cells):
            raise ValueError("velocity_cells values must be positive integers")
        if self.drift_profile not in ("none", "weibel"):
            raise ValueError(
                f"drift_profile must be 'none' or 'weibel', got '{self.drift_profile}'"
            )
        if (self.velocity_lower is None) != (self.velocity_upper is None):
            raise ValueError("velocity_lower and velocity_upper must be given together")
        if self.velocity_lower is None and self.temperature == 0.0:
            raise ValueError(
                f"species '{self.name}': explicit velocity bounds are required "
                f"for zero temperature"
            )
        lo, hi = self.velocity_bounds()
        if any(b <= a for a, b in zip(lo, hi)):
            raise ValueError(f"species '{self.name}': velocity upper must exceed lower")
        return self

    @property
    def thermal_speed(self) -> float:
        return math.sqrt(self.temperature / self.mass)

    def velocity_bounds(self) -> tuple[list[float], list[float]]:
        """Return ``(lower, upper)`` velocity bounds for the three axes."""
        if self.velocity_lower is not None and self.velocity_upper is not None:
            return list(self.velocity_lower), list(self.velocity_upper)
        vmax = self.velocity_extent * self.thermal_speed
        return [-vmax] * 3, [vmax] * 3


def _default_species() -> list[SpeciesConfig]:
    elc_temp = 0.01
    return [
        SpeciesConfig(
            name="Elc", charge=-1.0, mass=1.0, temperature=elc_temp, drift_profile="weibel",
        ),
        SpeciesConfig(
            name="Ion", charge=1.0, mass=constants.PROTON_ELECTRON_MASS_RATIO,
            temperature=elc_temp,
        ),
    ]


class MaxwellConfig(BaseModel):
    """Perfectly hyperbolic Maxwell solver parameters."""

    units: str = Field(
        "normalized",
        description="'normalized' (eps0 = mu0 = 1) or 'si' (scipy.constants values)",
    )
    epsilon0: float | None = Field(None, gt=0, description="Override vacuum permittivity")
    mu0: float | None = Field(None, gt=0, description="Override vacuum permeability")
    elc_error_speed_factor: float = Field(
        0.0, ge=0, description="Speed factor of electric divergence cleaning",
    )
    mgn_error_speed_factor: float = Field(
        1.0, ge=0, description="Speed factor of magnetic divergence cleaning",
    )
    numerical_flux: str = Field("upwind", description="'upwind' or 'central'")

    @model_validator(mode="after")
    def check_maxwell(self) -> MaxwellConfig:
        if self.units not in ("normalized", "si"):
            raise ValueError(f"units must be 'normalized' or 'si', got '{self.units}'")
        if self.numerical_flux not in ("upwind", "central"):
            raise ValueError(
                f"numerical_flux must be 'upwind' or 'central', got '{self.numerical_flux}'"
            )
        return self

    @property
    def eps0(self) -> float:
        if self.epsilon0 is not None:
            return self.epsilon0
        return constants.epsilon_0 if self.units == "si" else constants.EPSILON_0_NORMALIZED

    @property
    def mu(self) -> float:
        if self.mu0 is not None:
            return self.mu0
        return constants.mu_0 if self.units == "si" else constants.MU_0_NORMALIZED

    @property
    def light_speed(self) -> float:
        return 1.0 / math.sqrt(self.eps0 * self.mu)


class TimeConfig(BaseModel):
    """Time integration and output cadence."""

    t_start: float = Field(0.0, description="Start time")
    t_end: float = Field(50.0, description="Terminal time")
    n_frames: int = Field(50, gt=0, description="Output frames after the initial one")
    dt_init: float | None = Field(None, gt=0, description="First attempted dt (default: t_end)")
    cfl: float | None = Field(
        None, gt=0, lt=1, description="Target CFL number (default: 0.25/(2*poly_order+1))",
    )
    cflm: float | None = Field(None, gt=0, description="Largest accepted CFL (default: 1.1*cfl)")
    max_retries: int = Field(20, ge=0, description="Consecutive rejections before giving up")
    dt_floor: float | None = Field(
        None, ge=0, description="Smallest acceptable dt (default: 1e-12*(t_end - t_start))",
    )

    @model_validator(mode="after")
    def check_times(self) -> TimeConfig:
        if self.t_end <= self.t_start:
            raise ValueError(f"t_end ({self.t_end}) must exceed t_start ({self.t_start})")
        if self.cfl is not None and self.cflm is not None and self.cflm < self.cfl:
            raise ValueError(f"cflm ({self.cflm}) must not be below cfl ({self.cfl})")
        return self


class InitialConditionConfig(BaseModel):
    """Initial distribution functions and EM field."""

    kind: str = Field(
        "weibel",
        description="'weibel' (counter-streaming + Bz seed), 'maxwellian' (rest, no field) or 'zero'",
    )
    n0: float = Field(1.0, ge=0, description="Reference number density")
    perturb: float = Field(1e-10, description="Amplitude of the Bz seed")
    delta: float = Field(0.25, description="Drift jump across the shear layer")
    uinf: float = Field(0.25, description="Asymptotic drift speed")
    k0: float = Field(0.2, description="Wavenumber of the Bz seed")
    length: float = Field(1.0, gt=0, description="Shear-layer width")

    @model_validator(mode="after")
    def check_kind(self) -> InitialConditionConfig:
        if self.kind not in ("weibel", "maxwellian", "zero"):
            raise ValueError(
                f"kind must be 'weibel', 'maxwellian' or 'zero', got '{self.kind}'"
            )
        return self


class DiagnosticsConfig(BaseModel):
    """Frame output and checkpoint parameters."""

    output_dir: str = Field("output", description="Directory for frame files")
    prefix: str = Field("", description="File-name prefix for frame files")
    write_moments: bool = Field(True, description="Write density/momentum/energy moments")
    checkpoint_interval: int = Field(
        0, ge=0, description="Accepted steps between checkpoints (0 = off)",
    )
    checkpoint_filename: str = Field("checkpoint.h5", description="Checkpoint file name")
    final_checkpoint: bool = Field(False, description="Write a checkpoint at the end of the run")


class SimulationConfig(BaseModel):
    """Top-level simulation configuration."""

    poly_order: int = Field(2, ge=0, description="Polynomial order (sets the default CFL)")
    grid: GridConfig = Field(default_factory=GridConfig)
    species: list[SpeciesConfig] = Field(default_factory=_default_species, min_length=1)
    maxwell: MaxwellConfig = Field(default_factory=MaxwellConfig)
    time: TimeConfig = Field(default_factory=TimeConfig)
    initial: InitialConditionConfig = Field(default_factory=InitialConditionConfig)
    diagnostics: DiagnosticsConfig = Field(default_factory=DiagnosticsConfig)

    @model_validator(mode="after")
    def check_species(self) -> SimulationConfig:
        names = [s.name for s in self.species]
        if len(set(names)) != len(names):
            raise ValueError(f"species names must be unique, got {names}")
        if self.time.cflm is not None and self.time.cflm < self.cfl:
            raise ValueError(f"cflm ({self.time.cflm}) must not be below cfl ({self.cfl})")
        return self

    # --- Derived values ---

    @property
    def cfl(self) -> float:
        if self.time.cfl is not None:
            return self.time.cfl
        return 0.25 / (2 * self.poly_order + 1)

    @property
    def cflm(self) -> float:
        return self.time.cflm if self.time.cflm is not None else 1.1 * self.cfl

    @property
    def dt_init(self) -> float:
        if self.time.dt_init is not None:
            return self.time.dt_init
        return self.time.t_end

    @property
    def dt_floor(self) -> float:
        if self.time.dt_floor is not None:
            return self.time.dt_floor
        return 1e-12 * (self.time.t_end - self.time.t_start)

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
