"""Velocity moments of a 1X3V distribution function.

Moment order 0 gives the number density (1 component), order 1 the
particle flux ``n*u`` (3 components) and order 2 the particle kinetic
energy per unit mass ``0.5*sum |v|^2 f`` (1 component). Output fields live
on the configuration grid; only their interior cells are written.
"""

from __future__ import annotations

from typing import Any

import numpy as np

from vmsim.core.bases import StageResult, UpdateOperator
from vmsim.core.grid import RectGrid
from vmsim.errors import FieldContractError

MOMENT_COMPONENTS = {0: 1, 1: 3, 2: 1}


class MomentOperator(UpdateOperator):
    """Reduce a distribution function to one velocity moment.

    Args:
        phase_grid: 4D phase-space grid ``(x, vx, vy, vz)``.
        moment: Moment order, 0, 1 or 2.
    """

    num_inputs = 1
    num_outputs = 1

    def __init__(self, phase_grid: RectGrid, moment: int, name: str | None = None) -> None:
        if phase_grid.ndim != 4:
            raise ValueError(f"moment reduction needs a 1X3V phase grid, got {phase_grid.ndim}D")
        if moment not in MOMENT_COMPONENTS:
            raise ValueError(f"moment must be 0, 1 or 2, got {moment}")
        super().__init__(name or f"moment{moment}")
        self.phase_grid = phase_grid
        self.conf_grid = phase_grid.configuration()
        self.moment = moment
        self._velocities = [phase_grid.cell_centers(a) for a in (1, 2, 3)]
        self._dv3 = float(np.prod(phase_grid.dx[1:]))

    @property
    def num_components(self) -> int:
        return MOMENT_COMPONENTS[self.moment]

    def validate_inputs(self, fields: tuple[Any, ...]) -> None:
        distf = fields[0]
        if distf.grid != self.phase_grid or distf.num_components != 1:
            raise FieldContractError(
                f"{self.name}: input '{distf.name}' is not a scalar field on the phase grid"
            )

    def validate_outputs(self, fields: tuple[Any, ...]) -> None:
        out = fields[0]
        if out.grid != self.conf_grid or out.num_components != self.num_components:
            raise FieldContractError(
                f"{self.name}: output '{out.name}' must have {self.num_components} "
                f"component(s) on the configuration grid"
            )

    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        f = inputs[0].interior[..., 0]
        out = outputs[0].interior
        vx, vy, vz = self._velocities

        if self.moment == 0:
            out[:, 0] = f.sum(axis=(1, 2, 3)) * self._dv3
        elif self.moment == 1:
            out[:, 0] = np.einsum("ijkl,j->i", f, vx) * self._dv3
            out[:, 1] = np.einsum("ijkl,k->i", f, vy) * self._dv3
            out[:, 2] = np.einsum("ijkl,l->i", f, vz) * self._dv3
        else:
            v2 = (
                vx[:, None, None] ** 2
                + vy[None, :, None] ** 2
                + vz[None, None, :] ** 2
            )
            out[:, 0] = 0.5 * np.einsum("ijkl,jkl->i", f, v2) * self._dv3
        return StageResult()
