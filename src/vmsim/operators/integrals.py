"""Volume integrals of field quantities, appended to a time series."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np

from vmsim.core.bases import StageResult, UpdateOperator
from vmsim.core.grid import RectGrid
from vmsim.diagnostics.timeseries import TimeSeries
from vmsim.errors import FieldContractError

Integrand = Callable[..., np.ndarray]


class FieldIntegralOperator(UpdateOperator):
    """Integrate ``integrand(*components)`` over the interior cells.

    The result is appended to the output :class:`TimeSeries` at the
    target time of the advance.

    Args:
        grid: Grid of the integrated field.
        integrand: Called with one array per component; returns the
            pointwise density to integrate.
    """

    num_inputs = 1
    num_outputs = 1

    def __init__(self, grid: RectGrid, integrand: Integrand, name: str | None = None) -> None:
        super().__init__(name)
        self.grid = grid
        self.integrand = integrand

    def validate_inputs(self, fields: tuple[Any, ...]) -> None:
        if fields[0].grid != self.grid:
            raise FieldContractError(f"{self.name}: '{fields[0].name}' is on a different grid")

    def validate_outputs(self, fields: tuple[Any, ...]) -> None:
        if not isinstance(fields[0], TimeSeries):
            raise FieldContractError(f"{self.name}: output must be a TimeSeries")

    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        fld = inputs[0]
        comps = [fld.component(i) for i in range(fld.num_components)]
        value = float(np.sum(self.integrand(*comps))) * self.grid.cell_volume
        outputs[0].append(t + dt, value)
        return StageResult()


def em_energy_integrand(epsilon0: float, mu0: float) -> Integrand:
    """Electromagnetic energy density ``eps0/2 |E|^2 + |B|^2 / (2 mu0)``."""

    def integrand(ex, ey, ez, bx, by, bz, phi, psi):
        return 0.5 * epsilon0 * (ex**2 + ey**2 + ez**2) + 0.5 / mu0 * (bx**2 + by**2 + bz**2)

    return integrand


def magnetic_energy_integrand(mu0: float) -> Integrand:
    """Magnetic energy density ``|B|^2 / (2 mu0)``."""

    def integrand(ex, ey, ez, bx, by, bz, phi, psi):
        return 0.5 / mu0 * (bx**2 + by**2 + bz**2)

    return integrand
