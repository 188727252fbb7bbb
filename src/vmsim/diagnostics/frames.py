"""Output-frame scheduling.

Frames are due at fixed simulation times ``t_start + k*period`` with
``period = (t_end - t_start)/n_frames``, independent of the adaptive
step size. A frame fires on the accepted step whose end time meets or
crosses the next threshold, or reaches ``t_end``. The last threshold is
``t_end`` itself, so rounding in ``k*period`` cannot produce an extra
frame just before the end.
"""

from __future__ import annotations

import logging
import time as wall_time
from collections.abc import Sequence
from dataclasses import dataclass

from vmsim.core.bases import UpdateOperator
from vmsim.core.context import TimingCounters, time_tolerance
from vmsim.diagnostics.hdf5_writer import FrameWriter

logger = logging.getLogger(__name__)


@dataclass
class FrameSchedule:
    """Next output threshold and frame index.

    Attributes:
        t_start: Start time of the run.
        t_end: Terminal time.
        n_frames: Number of frames after the initial one.
        frame: Index of the next frame to write (frame 0 is the initial state).
    """

    t_start: float
    t_end: float
    n_frames: int
    frame: int = 1

    def __post_init__(self) -> None:
        if self.n_frames <= 0:
            raise ValueError(f"n_frames must be positive, got {self.n_frames}")
        if self.t_end <= self.t_start:
            raise ValueError(f"t_end ({self.t_end}) must exceed t_start ({self.t_start})")

    @property
    def period(self) -> float:
        return (self.t_end - self.t_start) / self.n_frames

    @property
    def tolerance(self) -> float:
        return time_tolerance(self.t_start, self.t_end)

    def frame_time(self, k: int) -> float:
        """Nominal time of frame ``k``."""
        if k >= self.n_frames:
            return self.t_end
        return self.t_start + k * self.period

    @property
    def next_time(self) -> float:
        return self.frame_time(self.frame)

    def due(self, t: float, dt: float) -> bool:
        """True if a step from ``t`` of size ``dt`` should write a frame."""
        t_new = t + dt
        tol = self.tolerance
        return t_new >= self.next_time - tol or t_new >= self.t_end - tol

    def advance(self) -> int:
        """Consume the current frame index and move the threshold one period."""
        current = self.frame
        self.frame += 1
        return current


class FrameScheduler:
    """Run per-step diagnostics and write frames when they are due.

    Args:
        schedule: Frame thresholds.
        writer: Frame writer.
        diagnostics: Operators with bound inputs/outputs, advanced after
            every accepted step (e.g. field-energy integrals).
        timers: Counters receiving diagnostic time.
    """

    def __init__(
        self,
        schedule: FrameSchedule,
        writer: FrameWriter,
        diagnostics: Sequence[UpdateOperator] = (),
        timers: TimingCounters | None = None,
    ) -> None:
        self.schedule = schedule
        self.writer = writer
        self.diagnostics = list(diagnostics)
        self.timers = timers if timers is not None else TimingCounters()
        self.steps_since_frame = 0

    def calc_diagnostics(self, t: float, dt: float) -> None:
        for op in self.diagnostics:
            op.set_current_time(t)
            op.advance(t + dt)

    def write_initial(self, t: float) -> None:
        """Record diagnostics and write frame 0 at the start time."""
        t0 = wall_time.perf_counter()
        self.calc_diagnostics(t, 0.0)
        self.writer.write_frame(0, t)
        self.timers.diagnostics += wall_time.perf_counter() - t0

    def on_step_accepted(self, t: float, dt: float, new_time: float | None = None) -> int | None:
        """Handle an accepted step from ``t`` of size ``dt``.

        Args:
            t: Time at the start of the step.
            dt: Accepted step size.
            new_time: Clock time after the step (defaults to ``t + dt``).

        Returns:
            Index of the frame written, or None.
        """
        t0 = wall_time.perf_counter()
        self.steps_since_frame += 1
        self.calc_diagnostics(t, dt)
        written = None
        if self.schedule.due(t, dt):
            written = self.schedule.advance()
            self.writer.write_frame(written, t + dt if new_time is None else new_time)
            self.steps_since_frame = 0
        self.timers.diagnostics += wall_time.perf_counter() - t0
        return written
