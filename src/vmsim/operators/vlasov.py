"""Vlasov update for one kinetic species in 1X3V phase space.

Solves ``df/dt + vx df/dx + (q/m)(E + v x B) . grad_v f = 0`` with a
first-order upwind finite-volume scheme and a forward-Euler stage:

    f_out = f_in + dt * L(f_in, E, B)

Configuration-space fluxes read the ghost cells of ``f_in``; velocity-space
fluxes vanish at the velocity-domain edges, so particle number is conserved
up to the spatial boundary fluxes.

The stage is accepted when ``dt * freq <= cflm`` with
``freq = max|vx|/dx + sum_j max|a_j|/dv_j``; the suggested dt is
``cfl / freq``.
"""

from __future__ import annotations

import math
from typing import Any

import numpy as np
from numba import njit

from vmsim.core.bases import StageResult, UpdateOperator
from vmsim.core.grid import RectGrid
from vmsim.errors import FieldContractError
from vmsim.operators.maxwell import BX, BY, BZ, EX, EY, EZ, NUM_EM_COMPONENTS

# =====================================================================
# Numba-accelerated kernels
# =====================================================================

@njit(cache=True)
def _acceleration_rhs(
    f: np.ndarray,
    ex: np.ndarray,
    ey: np.ndarray,
    ez: np.ndarray,
    bx: np.ndarray,
    by: np.ndarray,
    bz: np.ndarray,
    vx: np.ndarray,
    vy: np.ndarray,
    vz: np.ndarray,
    dvx: float,
    dvy: float,
    dvz: float,
    qm: float,
    rhs: np.ndarray,
) -> None:
    """Accumulate the upwind velocity-space flux divergence into ``rhs``.

    Each acceleration component is independent of its own velocity
    coordinate, so it is evaluated once per face.
    """
    nx, nvx, nvy, nvz = f.shape
    for i in range(nx):
        for j in range(nvx):
            for k in range(nvy):
                for m in range(nvz):
                    if j < nvx - 1:
                        a = qm * (ex[i] + vy[k] * bz[i] - vz[m] * by[i])
                        if a > 0.0:
                            flux = a * f[i, j, k, m]
                        else:
                            flux = a * f[i, j + 1, k, m]
                        rhs[i, j, k, m] -= flux / dvx
                        rhs[i, j + 1, k, m] += flux / dvx
                    if k < nvy - 1:
                        a = qm * (ey[i] + vz[m] * bx[i] - vx[j] * bz[i])
                        if a > 0.0:
                            flux = a * f[i, j, k, m]
                        else:
                            flux = a * f[i, j, k + 1, m]
                        rhs[i, j, k, m] -= flux / dvy
                        rhs[i, j, k + 1, m] += flux / dvy
                    if m < nvz - 1:
                        a = qm * (ez[i] + vx[j] * by[i] - vy[k] * bx[i])
                        if a > 0.0:
                            flux = a * f[i, j, k, m]
                        else:
                            flux = a * f[i, j, k, m + 1]
                        rhs[i, j, k, m] -= flux / dvz
                        rhs[i, j, k, m + 1] += flux / dvz


def _max_abs_linear(base: np.ndarray, u: np.ndarray, cu: np.ndarray, w: np.ndarray, cw: np.ndarray) -> float:
    """``max |base + u*cu - w*cw|`` over all cells and velocity centers.

    The expression is linear in ``u`` and ``w``, so the extremes sit at the
    ends of the velocity ranges.
    """
    ue = np.array([u[0], u[-1]])
    we = np.array([w[0], w[-1]])
    val = (
        base[:, None, None]
        + ue[None, :, None] * cu[:, None, None]
        - we[None, None, :] * cw[:, None, None]
    )
    return float(np.max(np.abs(val)))


class VlasovOperator(UpdateOperator):
    """Advance one species' distribution function by a forward-Euler stage.

    Inputs: ``(distf, em)``. Output: ``(distf_out,)``.

    Args:
        phase_grid: 4D phase-space grid ``(x, vx, vy, vz)``.
        charge: Species charge.
        mass: Species mass.
        cfl: Target CFL number for the suggested dt.
        cflm: Largest CFL number accepted (default ``1.1*cfl``).
    """

    num_inputs = 2
    num_outputs = 1

    def __init__(
        self,
        phase_grid: RectGrid,
        charge: float,
        mass: float,
        cfl: float = 0.05,
        cflm: float | None = None,
        name: str | None = None,
    ) -> None:
        if phase_grid.ndim != 4:
            raise ValueError(f"Vlasov operator needs a 1X3V phase grid, got {phase_grid.ndim}D")
        if mass <= 0:
            raise ValueError(f"mass must be positive, got {mass}")
        super().__init__(name or "vlasov")
        self.phase_grid = phase_grid
        self.conf_grid = phase_grid.configuration()
        self.charge = float(charge)
        self.mass = float(mass)
        self.cfl = float(cfl)
        self.cflm = float(cflm) if cflm is not None else 1.1 * self.cfl
        self._v = [np.ascontiguousarray(phase_grid.cell_centers(a)) for a in (1, 2, 3)]

    @property
    def charge_to_mass(self) -> float:
        return self.charge / self.mass

    def validate_inputs(self, fields: tuple[Any, ...]) -> None:
        distf, em = fields
        if distf.grid != self.phase_grid or distf.num_components != 1:
            raise FieldContractError(
                f"{self.name}: '{distf.name}' is not a scalar field on the phase grid"
            )
        if min(distf.ghost) < 1:
            raise FieldContractError(f"{self.name}: '{distf.name}' needs one ghost cell per side")
        if em.grid != self.conf_grid or em.num_components != NUM_EM_COMPONENTS:
            raise FieldContractError(
                f"{self.name}: '{em.name}' must be an {NUM_EM_COMPONENTS}-component "
                f"EM field on the configuration grid"
            )

    def validate_outputs(self, fields: tuple[Any, ...]) -> None:
        out = fields[0]
        if out.grid != self.phase_grid or out.num_components != 1:
            raise FieldContractError(
                f"{self.name}: '{out.name}' is not a scalar field on the phase grid"
            )

    def frequency(self, em: np.ndarray) -> float:
        """Largest inverse crossing time of any phase-space cell."""
        dx, dvx, dvy, dvz = self.phase_grid.dx
        vx, vy, vz = self._v
        qm = abs(self.charge_to_mass)
        ax = qm * _max_abs_linear(em[:, EX], vy, em[:, BZ], vz, em[:, BY])
        ay = qm * _max_abs_linear(em[:, EY], vz, em[:, BX], vx, em[:, BZ])
        az = qm * _max_abs_linear(em[:, EZ], vx, em[:, BY], vy, em[:, BX])
        return float(np.max(np.abs(vx))) / dx + ax / dvx + ay / dvy + az / dvz

    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        distf, em_fld = inputs
        out = outputs[0]
        em = em_fld.interior
        dx, dvx, dvy, dvz = self.phase_grid.dx
        vx, vy, vz = self._v

        freq = self.frequency(em)
        cfla = dt * freq
        dt_suggested = self.cfl / freq if freq > 0 else math.inf

        f = distf.data[..., 0]
        lo = distf.ghost[0]
        nx = self.phase_grid.cells[0]
        f_int = np.ascontiguousarray(f[lo : lo + nx])

        # Streaming in x: upwind on the sign of vx
        vxb = vx[None, :, None, None]
        fl = f[lo - 1 : lo + nx]
        fr = f[lo : lo + nx + 1]
        F = np.where(vxb > 0.0, vxb * fl, vxb * fr)
        rhs = -(F[1:] - F[:-1]) / dx

        if self.charge != 0.0:
            _acceleration_rhs(
                f_int,
                np.ascontiguousarray(em[:, EX]),
                np.ascontiguousarray(em[:, EY]),
                np.ascontiguousarray(em[:, EZ]),
                np.ascontiguousarray(em[:, BX]),
                np.ascontiguousarray(em[:, BY]),
                np.ascontiguousarray(em[:, BZ]),
                vx, vy, vz,
                dvx, dvy, dvz,
                self.charge_to_mass,
                rhs,
            )

        out.interior[..., 0] = f_int + dt * rhs
        return StageResult(accepted=cfla <= self.cflm, dt_suggested=dt_suggested)
