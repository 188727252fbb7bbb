"""Three-stage strong-stability-preserving Runge-Kutta step (Shu-Osher).

    S1 = L(S0)                         ; boundary pass
    S1 = 3/4 S0 + 1/4 L(S1)            ; boundary pass
    S1 = 1/3 S0 + 2/3 L(S1)            ; boundary pass
    S0 := S1

where ``L`` is one forward-Euler :class:`StageExecutor` stage. The convex
weights fix the stability order of the scheme and are not parameters.
A rejection in any stage aborts the step before ``S0`` is touched.
"""

from __future__ import annotations

import logging
import time as wall_time

from vmsim.core.bases import StageResult
from vmsim.core.context import TimingCounters
from vmsim.core.state import FieldGroup
from vmsim.operators.boundary import BoundaryPass
from vmsim.stepping.stage import StageExecutor

logger = logging.getLogger(__name__)

# Convex-combination weights (w_S0, w_stage) after stages B and C
STAGE_B_WEIGHTS = (3.0 / 4.0, 1.0 / 4.0)
STAGE_C_WEIGHTS = (1.0 / 3.0, 2.0 / 3.0)


class SSPRK3Stepper:
    """Step controller advancing a field group by one SSP-RK3 step.

    The stepper owns two scratch groups, ``S1`` and ``S2raw``, with the
    layout of ``state``. ``state`` itself is only written on commit.

    Args:
        state: Evolving field group ``S0``.
        stage: Executor for one forward-Euler stage.
        boundary: Boundary pass applied after every stage.
        timers: Counters receiving step/combine/copy/boundary times.
    """

    def __init__(
        self,
        state: FieldGroup,
        stage: StageExecutor,
        boundary: BoundaryPass,
        timers: TimingCounters | None = None,
    ) -> None:
        stage.validate(state)
        self.state = state
        self.stage = stage
        self.boundary = boundary
        self.timers = timers if timers is not None else TimingCounters()
        self._s1 = state.duplicate(suffix="1")
        self._s2 = state.duplicate(suffix="New")

    def _apply_boundary(self, group: FieldGroup, t: float, dt: float) -> None:
        t0 = wall_time.perf_counter()
        self.boundary.apply(group, t, dt)
        self.timers.boundary += wall_time.perf_counter() - t0

    def _combine(self, weights: tuple[float, float]) -> None:
        t0 = wall_time.perf_counter()
        self._s1.combine(weights[0], self.state, weights[1], self._s2)
        self.timers.combine += wall_time.perf_counter() - t0

    def step(self, t: float, dt: float) -> StageResult:
        """Attempt one step of size ``dt`` from time ``t``.

        Returns:
            ``(True, dt from the last stage)`` after committing into
            ``state``, or ``(False, dt)`` from the first rejecting stage
            with ``state`` untouched.
        """
        t0 = wall_time.perf_counter()
        s0, s1, s2 = self.state, self._s1, self._s2

        # Stage A
        result = self.stage.run(t, dt, s0, s1)
        if not result.accepted:
            return self._abort(t0, result)
        self._apply_boundary(s1, t, dt)

        # Stage B
        result = self.stage.run(t, dt, s1, s2)
        if not result.accepted:
            return self._abort(t0, result)
        self._combine(STAGE_B_WEIGHTS)
        self._apply_boundary(s1, t, dt)

        # Stage C
        result = self.stage.run(t, dt, s1, s2)
        if not result.accepted:
            return self._abort(t0, result)
        self._combine(STAGE_C_WEIGHTS)
        self._apply_boundary(s1, t, dt)

        t_copy = wall_time.perf_counter()
        s0.copy(s1)
        self.timers.copy += wall_time.perf_counter() - t_copy

        self.timers.step += wall_time.perf_counter() - t0
        return StageResult(accepted=True, dt_suggested=result.dt_suggested)

    def _abort(self, t0: float, result: StageResult) -> StageResult:
        self.timers.step += wall_time.perf_counter() - t0
        return StageResult(accepted=False, dt_suggested=result.dt_suggested)
