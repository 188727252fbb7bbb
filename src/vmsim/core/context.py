"""Simulation context: the explicit owner of run-wide mutable state.

Holds the evolving :class:`FieldGroup`, the simulation clock, the rollback
snapshot and the timing counters. Components receive the context (or the
parts they need) explicitly; there are no module-level accumulators.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from vmsim.core.state import FieldGroup, Snapshot


def time_tolerance(t_start: float, t_end: float) -> float:
    """Absolute tolerance used when comparing simulation times near ``t_end``."""
    return 1e-12 * max(1.0, abs(t_start), abs(t_end))


@dataclass
class SimulationClock:
    """Simulation time and accepted-step counter.

    Attributes:
        time: Current simulation time.
        step: Number of accepted steps.
        t_end: Terminal time; an advance landing within tolerance of it
            snaps to it exactly.
    """

    time: float
    t_end: float
    step: int = 0

    @property
    def tolerance(self) -> float:
        return time_tolerance(self.time, self.t_end)

    @property
    def finished(self) -> bool:
        return self.time >= self.t_end - self.tolerance

    def remaining(self) -> float:
        return max(self.t_end - self.time, 0.0)

    def advance(self, dt: float) -> float:
        """Advance by an accepted ``dt`` and return the new time."""
        if not dt > 0.0 or not math.isfinite(dt):
            raise ValueError(f"clock can only advance by a positive finite dt, got {dt}")
        new_time = self.time + dt
        if abs(self.t_end - new_time) <= self.tolerance or new_time > self.t_end:
            new_time = self.t_end
        self.time = new_time
        self.step += 1
        return new_time


@dataclass
class TimingCounters:
    """Cumulative wall-clock seconds spent in each driver phase."""

    stage: float = 0.0
    step: float = 0.0
    combine: float = 0.0
    copy: float = 0.0
    boundary: float = 0.0
    diagnostics: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {
            "stage": self.stage,
            "step": self.step,
            "combine": self.combine,
            "copy": self.copy,
            "boundary": self.boundary,
            "diagnostics": self.diagnostics,
        }


@dataclass
class SimulationContext:
    """Run-wide state passed explicitly into every driver component.

    Attributes:
        state: Field group advanced by the stepper.
        clock: Simulation clock.
        snapshot: Rollback copy of ``state``.
        timers: Driver timing counters.
    """

    state: FieldGroup
    clock: SimulationClock
    snapshot: Snapshot = field(init=False)
    timers: TimingCounters = field(default_factory=TimingCounters)

    def __post_init__(self) -> None:
        self.snapshot = Snapshot(self.state)

    @classmethod
    def create(cls, state: FieldGroup, t_start: float, t_end: float) -> SimulationContext:
        if t_end <= t_start:
            raise ValueError(f"t_end ({t_end}) must exceed t_start ({t_start})")
        return cls(state=state, clock=SimulationClock(time=t_start, t_end=t_end))
