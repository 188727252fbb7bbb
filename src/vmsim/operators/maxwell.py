"""Perfectly hyperbolic Maxwell equations in one spatial dimension.

Component layout (8 per cell): ``Ex, Ey, Ez, Bx, By, Bz, phi, psi``. The
correction potentials ``phi`` and ``psi`` clean divergence errors at
speeds ``chi*c`` and ``gamma*c``:

    dEx/dt + chi c^2 dphi/dx  = 0      dBx/dt + gamma dpsi/dx      = 0
    dEy/dt + c^2 dBz/dx       = 0      dBy/dt - dEz/dx             = 0
    dEz/dt - c^2 dBy/dx       = 0      dBz/dt + dEy/dx             = 0
    dphi/dt + chi dEx/dx      = 0      dpsi/dt + gamma c^2 dBx/dx  = 0

Current sources are added by the caller. The update is first-order
finite volume, ``q_out = q_in - dt/dx (F_{i+1/2} - F_{i-1/2})``, with a
Lax-Friedrichs flux (``"upwind"``, dissipation at the fastest wave speed)
or a plain ``"central"`` average.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from vmsim.core.bases import StageResult, UpdateOperator
from vmsim.core.grid import RectGrid
from vmsim.errors import FieldContractError

NUM_EM_COMPONENTS = 8
EX, EY, EZ, BX, BY, BZ, PHI, PSI = range(NUM_EM_COMPONENTS)

_FLUXES = ("upwind", "central")


class MaxwellOperator(UpdateOperator):
    """Advance the EM field by one forward-Euler stage.

    Args:
        grid: 1D configuration grid.
        light_speed: Speed of light ``c``.
        elc_error_speed_factor: ``chi``, speed factor of ``phi`` cleaning.
        mgn_error_speed_factor: ``gamma``, speed factor of ``psi`` cleaning.
        cfl: Target CFL number used for the suggested dt.
        cflm: Largest CFL number accepted (default ``1.1*cfl``).
        numerical_flux: ``"upwind"`` or ``"central"``.
    """

    num_inputs = 1
    num_outputs = 1

    def __init__(
        self,
        grid: RectGrid,
        light_speed: float,
        elc_error_speed_factor: float = 0.0,
        mgn_error_speed_factor: float = 1.0,
        cfl: float = 0.05,
        cflm: float | None = None,
        numerical_flux: str = "upwind",
        name: str | None = None,
    ) -> None:
        if grid.ndim != 1:
            raise ValueError(f"Maxwell operator needs a 1D grid, got {grid.ndim}D")
        if light_speed <= 0:
            raise ValueError(f"light_speed must be positive, got {light_speed}")
        if numerical_flux not in _FLUXES:
            raise ValueError(f"numerical_flux must be one of {_FLUXES}, got {numerical_flux!r}")
        super().__init__(name or "maxwell")
        self.grid = grid
        self.c = float(light_speed)
        self.chi = float(elc_error_speed_factor)
        self.gamma = float(mgn_error_speed_factor)
        self.cfl = float(cfl)
        self.cflm = float(cflm) if cflm is not None else 1.1 * self.cfl
        self.numerical_flux = numerical_flux

    @property
    def max_speed(self) -> float:
        return self.c * max(1.0, self.chi, self.gamma)

    def validate_inputs(self, fields: tuple[Any, ...]) -> None:
        self._check_em(fields[0])

    def validate_outputs(self, fields: tuple[Any, ...]) -> None:
        self._check_em(fields[0])

    def _check_em(self, fld: Any) -> None:
        if fld.grid != self.grid or fld.num_components != NUM_EM_COMPONENTS:
            raise FieldContractError(
                f"{self.name}: '{fld.name}' must have {NUM_EM_COMPONENTS} components "
                f"on the configuration grid"
            )
        if min(fld.ghost) < 1:
            raise FieldContractError(f"{self.name}: '{fld.name}' needs one ghost cell per side")

    def flux(self, q: np.ndarray) -> np.ndarray:
        """Physical flux ``F(q)`` along x for an array of states ``(..., 8)``."""
        c2 = self.c**2
        F = np.empty_like(q)
        F[..., EX] = self.chi * c2 * q[..., PHI]
        F[..., EY] = c2 * q[..., BZ]
        F[..., EZ] = -c2 * q[..., BY]
        F[..., BX] = self.gamma * q[..., PSI]
        F[..., BY] = -q[..., EZ]
        F[..., BZ] = q[..., EY]
        F[..., PHI] = self.chi * q[..., EX]
        F[..., PSI] = self.gamma * c2 * q[..., BX]
        return F

    def suggested_dt(self) -> float:
        return self.cfl * self.grid.dx[0] / self.max_speed

    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        em_in, em_out = inputs[0], outputs[0]
        dx = self.grid.dx[0]
        cfla = dt * self.max_speed / dx

        q = em_in.data
        lo = em_in.ghost[0]
        nx = self.grid.cells[0]
        qL = q[lo - 1 : lo + nx]
        qR = q[lo : lo + nx + 1]
        Fhat = 0.5 * (self.flux(qL) + self.flux(qR))
        if self.numerical_flux == "upwind":
            Fhat -= 0.5 * self.max_speed * (qR - qL)

        em_out.interior[...] = q[lo : lo + nx] - (dt / dx) * (Fhat[1:] - Fhat[:-1])
        return StageResult(accepted=cfla <= self.cflm, dt_suggested=self.suggested_dt())
