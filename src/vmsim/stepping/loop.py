"""Adaptive time loop with snapshot rollback.

State machine per attempt::

    RUNNING -> STEP_ATTEMPT -> ACCEPTED -> RUNNING | DONE
                            -> REJECTED -> STEP_ATTEMPT (same t, smaller dt)

Before every attempt the whole field group is captured in the context's
snapshot and dt is clamped so the step does not overshoot ``t_end``. On
rejection the group is restored bit-for-bit and the attempt is retried
with the suggested dt. Retries are bounded: too many consecutive
rejections, or a suggested dt that is non-positive or below the floor (or,
after a rejection, non-finite or not smaller than the rejected dt), end
the run with :class:`~vmsim.errors.NonConvergentStepError`.
"""

from __future__ import annotations

import enum
import logging
import math
from typing import Protocol

from vmsim.core.bases import StageResult, StepResult
from vmsim.core.context import SimulationContext
from vmsim.diagnostics.frames import FrameScheduler
from vmsim.errors import NonConvergentStepError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 20


class Stepper(Protocol):
    def step(self, t: float, dt: float) -> StageResult: ...


class LoopState(enum.Enum):
    RUNNING = "running"
    STEP_ATTEMPT = "step_attempt"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DONE = "done"


class AdaptiveTimeLoop:
    """Drive a stepper from the context clock's time to its ``t_end``.

    Args:
        context: Owner of state, clock and snapshot.
        stepper: Step controller; must leave the state untouched on rejection
            or have it restored by this loop.
        frames: Frame scheduler notified after each accepted step.
        max_retries: Largest number of consecutive rejections tolerated.
        dt_floor: Smallest acceptable suggested dt.
    """

    def __init__(
        self,
        context: SimulationContext,
        stepper: Stepper,
        frames: FrameScheduler | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        dt_floor: float = 0.0,
    ) -> None:
        if max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {max_retries}")
        if dt_floor < 0:
            raise ValueError(f"dt_floor must be non-negative, got {dt_floor}")
        self.context = context
        self.stepper = stepper
        self.frames = frames
        self.max_retries = max_retries
        self.dt_floor = dt_floor

        self.state = LoopState.DONE if context.clock.finished else LoopState.RUNNING
        self.dt_next = math.inf
        self.retries = 0
        self.attempts = 0
        self.rejections = 0

    @property
    def done(self) -> bool:
        return self.state is LoopState.DONE

    def _check_dt(self, dt_suggested: float, dt_attempted: float, rejected: bool = False) -> None:
        """Validate an operator's dt suggestion.

        After a rejection the suggestion must be finite and strictly below
        the rejected dt; ``inf`` (unconstrained) is only valid on acceptance.
        """
        clock = self.context.clock
        if math.isnan(dt_suggested) or dt_suggested <= 0.0:
            raise NonConvergentStepError(
                f"operator suggested invalid dt={dt_suggested} at t={clock.time:g}",
                time=clock.time, dt=dt_attempted, retries=self.retries,
            )
        if rejected and not (math.isfinite(dt_suggested) and dt_suggested < dt_attempted):
            raise NonConvergentStepError(
                f"rejected dt={dt_attempted:g} at t={clock.time:g} but the retry "
                f"dt={dt_suggested:g} is not smaller",
                time=clock.time, dt=dt_attempted, retries=self.retries,
            )
        if dt_suggested < self.dt_floor:
            raise NonConvergentStepError(
                f"suggested dt={dt_suggested:g} fell below the floor {self.dt_floor:g} "
                f"at t={clock.time:g}",
                time=clock.time, dt=dt_attempted, retries=self.retries,
            )

    def attempt(self, dt: float) -> StepResult:
        """Attempt one step of size ``dt`` (clamped to ``t_end``)."""
        ctx = self.context
        clock = ctx.clock
        if clock.finished:
            self.state = LoopState.DONE
            return StepResult(time=clock.time, step=clock.step, finished=True)
        if not dt > 0.0:
            raise ValueError(f"dt must be positive, got {dt}")

        self.state = LoopState.STEP_ATTEMPT
        ctx.snapshot.capture(ctx.state, clock.time)
        if clock.time + dt > clock.t_end:
            dt = clock.t_end - clock.time

        self.attempts += 1
        logger.info("Taking step %5d at time %6g with dt %g", clock.step + 1, clock.time, dt)
        status, dt_suggested = self.stepper.step(clock.time, dt)

        if not status:
            self.state = LoopState.REJECTED
            ctx.snapshot.restore(ctx.state)
            self.retries += 1
            self.rejections += 1
            logger.warning(
                "** Time step %g too large! Will retake with dt %g", dt, dt_suggested,
            )
            self._check_dt(dt_suggested, dt, rejected=True)
            if self.retries > self.max_retries:
                raise NonConvergentStepError(
                    f"step at t={clock.time:g} rejected {self.retries} times in a row "
                    f"(limit {self.max_retries}); last dt={dt:g}",
                    time=clock.time, dt=dt, retries=self.retries,
                )
            self.dt_next = dt_suggested
            self.state = LoopState.STEP_ATTEMPT
            return StepResult(
                time=clock.time, step=clock.step, dt=dt, dt_next=dt_suggested,
                accepted=False, retries=self.retries,
            )

        self.state = LoopState.ACCEPTED
        ctx.snapshot.discard()
        t_prev = clock.time
        new_time = clock.advance(dt)
        frame = None
        if self.frames is not None:
            frame = self.frames.on_step_accepted(t_prev, dt, new_time)
        self._check_dt(dt_suggested, dt)
        self.retries = 0
        self.dt_next = dt_suggested
        finished = clock.finished
        self.state = LoopState.DONE if finished else LoopState.RUNNING
        return StepResult(
            time=new_time, step=clock.step, dt=dt, dt_next=dt_suggested,
            accepted=True, retries=0, frame_written=frame, finished=finished,
        )

    def resume(self, dt_next: float) -> None:
        """Re-arm the loop after the clock or state was replaced (restart)."""
        self.context.snapshot.discard()
        self.retries = 0
        self.dt_next = dt_next
        self.state = LoopState.DONE if self.context.clock.finished else LoopState.RUNNING

    def run(self, dt_init: float | None = None) -> float:
        """Loop until ``t_end``; return the last suggested dt."""
        if dt_init is not None:
            self.dt_next = dt_init
        while not self.done:
            self.attempt(self.dt_next)
        return self.dt_next
