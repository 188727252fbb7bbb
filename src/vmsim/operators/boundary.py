"""Boundary operators and the per-stage boundary pass.

Each field of a group gets a list of :class:`BoundaryOperator` that fill
its ghost layers; after they run the field is synchronized. The pass must
complete for the whole group before the next RK stage reads it.
"""

from __future__ import annotations

import logging
import time as wall_time
from collections.abc import Mapping, Sequence
from typing import Any

from vmsim.core.bases import StageResult, UpdateOperator, run_operator
from vmsim.core.state import FieldGroup

logger = logging.getLogger(__name__)

_KINDS = ("copy", "periodic")


class BoundaryOperator(UpdateOperator):
    """Fill ghost cells of every output field.

    Args:
        kind: ``"copy"`` (zero-gradient: skin copied into ghosts) or
            ``"periodic"``.
        axis: Padded axis (the configuration axis, 0).
        sides: Sides to fill for ``"copy"``.
    """

    num_inputs = None
    num_outputs = None

    def __init__(
        self,
        kind: str = "copy",
        axis: int = 0,
        sides: Sequence[str] = ("lower", "upper"),
        name: str | None = None,
    ) -> None:
        if kind not in _KINDS:
            raise ValueError(f"boundary kind must be one of {_KINDS}, got {kind!r}")
        super().__init__(name or f"{kind}Bc")
        self.kind = kind
        self.axis = axis
        self.sides = tuple(sides)

    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        for fld in outputs:
            if self.kind == "periodic":
                fld.apply_periodic_bc(self.axis)
            else:
                for side in self.sides:
                    fld.apply_copy_bc(self.axis, side)
        return StageResult()


class BoundaryPass:
    """Apply per-field boundary operators to a whole group, then synchronize.

    Args:
        conditions: Mapping of field name to the operators applied to it,
            in order. Fields without an entry are only synchronized.
    """

    def __init__(self, conditions: Mapping[str, Sequence[UpdateOperator]] | None = None) -> None:
        self.conditions: dict[str, tuple[UpdateOperator, ...]] = {
            name: tuple(ops) for name, ops in (conditions or {}).items()
        }
        self.elapsed = 0.0

    @classmethod
    def uniform(cls, names: Sequence[str], kind: str = "copy") -> BoundaryPass:
        """Same boundary kind on every named field."""
        return cls({name: [BoundaryOperator(kind, name=f"{name}:{kind}Bc")] for name in names})

    def apply(self, group: FieldGroup, t: float, dt: float) -> None:
        t0 = wall_time.perf_counter()
        for name, fld in group.items():
            for op in self.conditions.get(name, ()):
                run_operator(op, t, dt, [], [fld])
            fld.synchronize()
        self.elapsed += wall_time.perf_counter() - t0
        logger.debug("Boundary pass applied to %s at t=%g", list(group.names), t)
