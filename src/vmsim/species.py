"""Kinetic species: physical parameters plus the operators that evolve them.

Each species owns a distribution-function field in the evolving
:class:`~vmsim.core.state.FieldGroup` (named ``distf<name>``), a kinetic
advance operator ``(distf, em) -> distf_out`` and a first-moment operator
used to build the coupling current.

Units follow the run configuration (normalized by default).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from vmsim.core.bases import UpdateOperator


@dataclass
class KineticSpecies:
    """One kinetic species as seen by the stage executor.

    Attributes:
        name: Short identifier, e.g. ``"Elc"`` or ``"Ion"``.
        charge: Species charge.
        mass: Species mass.
        kinetic: Operator advancing the distribution function.
        momentum: Operator reducing the distribution to its first moment.
        temperature: Species temperature (for logging and initial data).
        field_name: Name of the distribution field in the evolving group.
    """

    name: str
    charge: float
    mass: float
    kinetic: UpdateOperator
    momentum: UpdateOperator
    temperature: float = 0.0
    field_name: str = ""

    def __post_init__(self) -> None:
        if self.mass <= 0.0:
            raise ValueError(f"mass must be positive, got {self.mass}")
        if self.temperature < 0.0:
            raise ValueError(f"temperature must be non-negative, got {self.temperature}")
        if not self.field_name:
            self.field_name = f"distf{self.name}"

    @property
    def thermal_speed(self) -> float:
        """``sqrt(T/m)``."""
        return math.sqrt(self.temperature / self.mass)
