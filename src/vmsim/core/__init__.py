"""Core data structures: grids, fields, field groups and operator contracts."""

from vmsim.core.bases import StageResult, StepResult, UpdateOperator, run_operator
from vmsim.core.context import SimulationClock, SimulationContext, TimingCounters
from vmsim.core.field import Field
from vmsim.core.grid import RectGrid
from vmsim.core.state import FieldGroup, Snapshot

__all__ = [
    "Field",
    "FieldGroup",
    "RectGrid",
    "SimulationClock",
    "SimulationContext",
    "Snapshot",
    "StageResult",
    "StepResult",
    "TimingCounters",
    "UpdateOperator",
    "run_operator",
]
