"""Initial-condition projection onto cell centers."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np

from vmsim.core.bases import StageResult, UpdateOperator
from vmsim.core.grid import RectGrid
from vmsim.errors import FieldContractError


class ProjectionOperator(UpdateOperator):
    """Evaluate ``evaluate(*coords, t)`` at every interior cell center.

    ``evaluate`` receives one broadcastable coordinate array per grid axis
    plus the current time and returns either one array (single component)
    or a tuple with one entry per component. Scalars are broadcast.
    """

    num_inputs = 0
    num_outputs = 1

    def __init__(
        self,
        grid: RectGrid,
        evaluate: Callable[..., Any],
        name: str | None = None,
    ) -> None:
        super().__init__(name)
        self.grid = grid
        self.evaluate = evaluate

    def validate_outputs(self, fields: tuple[Any, ...]) -> None:
        if fields[0].grid != self.grid:
            raise FieldContractError(f"{self.name}: '{fields[0].name}' is on a different grid")

    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        out = outputs[0]
        values = self.evaluate(*self.grid.mesh(), t)
        if not isinstance(values, tuple):
            values = (values,)
        if len(values) != out.num_components:
            raise FieldContractError(
                f"{self.name}: evaluate returned {len(values)} component(s), "
                f"'{out.name}' has {out.num_components}"
            )
        interior = out.interior
        cell_shape = interior.shape[:-1]
        for i, v in enumerate(values):
            interior[..., i] = np.broadcast_to(np.asarray(v, dtype=float), cell_shape)
        return StageResult()
