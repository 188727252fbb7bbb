"""Core abstract base classes and shared result types.

Defines the interface contracts the time-integration driver depends on:
- ``StageResult``: (accepted, suggested dt) pair returned by operators,
  stages and whole steps
- ``StepResult``: outcome of one attempted step of the time loop
- ``UpdateOperator``: ABC for every numerical sub-step (kinetic advance,
  field advance, moment reduction, boundary fill, diagnostic integral)
"""

from __future__ import annotations

import math
import time as wall_time
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from vmsim.errors import FieldContractError


@dataclass(frozen=True)
class StageResult:
    """Outcome of an operator call, an RK stage or a full step.

    Attributes:
        accepted: False if the attempted dt violated a stability bound.
        dt_suggested: Largest dt the producer considers safe. Meaningful
            even when ``accepted`` is False; ``inf`` means unconstrained.
    """

    accepted: bool = True
    dt_suggested: float = math.inf

    def __iter__(self) -> Iterator[Any]:
        yield self.accepted
        yield self.dt_suggested

    @classmethod
    def merge(cls, results: Iterable[StageResult]) -> StageResult:
        """Logical AND of acceptances and minimum of suggested dts."""
        accepted = True
        dt = math.inf
        for r in results:
            accepted = accepted and r.accepted
            dt = min(dt, r.dt_suggested)
        return cls(accepted=accepted, dt_suggested=dt)


@dataclass
class StepResult:
    """Result of a single attempted step of the adaptive loop.

    Attributes:
        time: Simulation time after the attempt (unchanged on rejection).
        step: Accepted-step count after the attempt.
        dt: Timestep that was attempted.
        dt_next: Timestep the next attempt will use.
        accepted: Whether the attempt was committed.
        retries: Consecutive rejections at the current time so far.
        frame_written: Index of the frame written by this step, or None.
        finished: True once the terminal time has been reached.
    """

    time: float = 0.0
    step: int = 0
    dt: float = 0.0
    dt_next: float = 0.0
    accepted: bool = True
    retries: int = 0
    frame_written: int | None = None
    finished: bool = False


class UpdateOperator(ABC):
    """Abstract base for a unit that performs one numerical sub-step.

    Call protocol::

        op.set_current_time(t)
        op.set_inputs([...])
        op.set_outputs([...])
        ok, dt_next = op.advance(t + dt)

    Subclasses implement :meth:`_advance`. They must write only to their
    outputs and must be deterministic for identical inputs.

    Attributes:
        num_inputs: Required number of input bindings (None = any).
        num_outputs: Required number of output bindings (None = any).
    """

    num_inputs: int | None = None
    num_outputs: int | None = None

    def __init__(self, name: str | None = None) -> None:
        self.name = name or type(self).__name__
        self._current_time = 0.0
        self._inputs: tuple[Any, ...] = ()
        self._outputs: tuple[Any, ...] = ()
        self._inputs_bound = False
        self._outputs_bound = False
        self._total_advance_time = 0.0
        self._num_advances = 0

    # --- Bindings ---

    @property
    def current_time(self) -> float:
        return self._current_time

    def set_current_time(self, t: float) -> None:
        self._current_time = float(t)

    def set_inputs(self, fields: Sequence[Any]) -> None:
        fields = tuple(fields)
        self._check_arity("inputs", fields, self.num_inputs)
        self.validate_inputs(fields)
        self._inputs = fields
        self._inputs_bound = True

    def set_outputs(self, fields: Sequence[Any]) -> None:
        fields = tuple(fields)
        self._check_arity("outputs", fields, self.num_outputs)
        self.validate_outputs(fields)
        self._outputs = fields
        self._outputs_bound = True

    def _check_arity(self, kind: str, fields: tuple[Any, ...], expected: int | None) -> None:
        if expected is not None and len(fields) != expected:
            raise FieldContractError(
                f"{self.name}: expected {expected} {kind}, got {len(fields)}"
            )

    def validate_inputs(self, fields: tuple[Any, ...]) -> None:
        """Hook to check input layouts; raise FieldContractError on mismatch."""

    def validate_outputs(self, fields: tuple[Any, ...]) -> None:
        """Hook to check output layouts; raise FieldContractError on mismatch."""

    # --- Execution ---

    def advance(self, target_time: float) -> StageResult:
        """Advance from the current time to ``target_time``.

        Returns:
            StageResult with the acceptance flag and suggested next dt.

        Raises:
            FieldContractError: If required bindings were never set.
        """
        if self.num_inputs and not self._inputs_bound:
            raise FieldContractError(f"{self.name}: inputs not bound")
        if self.num_outputs and not self._outputs_bound:
            raise FieldContractError(f"{self.name}: outputs not bound")

        t = self._current_time
        dt = float(target_time) - t
        t0 = wall_time.perf_counter()
        try:
            result = self._advance(t, dt, self._inputs, self._outputs)
        finally:
            self._total_advance_time += wall_time.perf_counter() - t0
            self._num_advances += 1
        return result

    @abstractmethod
    def _advance(
        self,
        t: float,
        dt: float,
        inputs: tuple[Any, ...],
        outputs: tuple[Any, ...],
    ) -> StageResult:
        """Perform the update from ``t`` over ``dt``."""

    def total_advance_time(self) -> float:
        """Cumulative wall-clock seconds spent in :meth:`advance`."""
        return self._total_advance_time

    @property
    def num_advances(self) -> int:
        return self._num_advances


def run_operator(
    operator: UpdateOperator,
    t: float,
    dt: float,
    inputs: Sequence[Any] | None = None,
    outputs: Sequence[Any] | None = None,
) -> StageResult:
    """Bind time and fields on ``operator`` and advance it to ``t + dt``."""
    operator.set_current_time(t)
    if inputs is not None:
        operator.set_inputs(inputs)
    if outputs is not None:
        operator.set_outputs(outputs)
    return operator.advance(t + dt)
