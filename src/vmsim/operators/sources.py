"""Component copy between fields on the same grid.

Used to project the 3-component net current into the current slots of the
8-component EM source layout ``(Ex, Ey, Ez, Bx, By, Bz, phi, psi)``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from vmsim.core.bases import StageResult, UpdateOperator
from vmsim.errors import FieldContractError

# Slots of the EM layout driven by the current density
EM_CURRENT_SLOTS = (0, 1, 2)


class ComponentCopyOperator(UpdateOperator):
    """Copy selected components of the input into selected output slots.

    Args:
        source_components: Component indices read from the input.
        target_components: Component indices written in the output.
        clear_target: Zero the output before copying, so untouched slots
            carry no stale data.
    """

    num_inputs = 1
    num_outputs = 1

    def __init__(
        self,
        source_components: Sequence[int],
        target_components: Sequence[int],
        clear_target: bool = True,
        name: str | None = None,
    ) -> None:
        if len(source_components) != len(target_components):
            raise ValueError(
                f"source and target component lists differ in length: "
                f"{len(source_components)} vs {len(target_components)}"
            )
        super().__init__(name)
        self.source_components = list(source_components)
        self.target_components = list(target_components)
        self.clear_target = clear_target

    def validate_inputs(self, fields: tuple[Any, ...]) -> None:
        src = fields[0]
        if max(self.source_components) >= src.num_components:
            raise FieldContractError(
                f"{self.name}: '{src.name}' has only {src.num_components} components"
            )

    def validate_outputs(self, fields: tuple[Any, ...]) -> None:
        dst = fields[0]
        if max(self.target_components) >= dst.num_components:
            raise FieldContractError(
                f"{self.name}: '{dst.name}' has only {dst.num_components} components"
            )

    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        src, dst = inputs[0], outputs[0]
        if src.grid != dst.grid or src.ghost != dst.ghost:
            raise FieldContractError(
                f"{self.name}: '{src.name}' and '{dst.name}' live on different grids"
            )
        if self.clear_target:
            dst.clear()
        dst.data[..., self.target_components] = src.data[..., self.source_components]
        return StageResult()


def current_source_projection(name: str = "copyToEmSource") -> ComponentCopyOperator:
    """Operator mapping a 3-component current into the EM source layout."""
    return ComponentCopyOperator((0, 1, 2), EM_CURRENT_SLOTS, clear_target=True, name=name)
