"""Exception taxonomy for simulation runs.

Stability rejections are *not* errors: operators report them through
:class:`vmsim.core.bases.StageResult` and the time loop retries. The
classes below are the fatal conditions that end a run.
"""

from __future__ import annotations


class SimulationError(RuntimeError):
    """Base class for unrecoverable run failures."""


class NonConvergentStepError(SimulationError):
    """The adaptive loop cannot find an acceptable time-step.

    Raised when consecutive rejections exceed the retry cap or when an
    operator suggests a dt that is non-finite, non-positive or below the
    configured floor.
    """

    def __init__(self, message: str, *, time: float, dt: float, retries: int) -> None:
        super().__init__(message)
        self.time = time
        self.dt = dt
        self.retries = retries


class FieldContractError(ValueError):
    """A field does not match the layout an operation or operator expects."""


class OutputError(SimulationError):
    """A frame, time series or checkpoint could not be persisted."""
