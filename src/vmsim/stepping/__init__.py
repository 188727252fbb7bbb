"""Time integration: coupled RK stage, SSP-RK3 step and the adaptive loop."""

from vmsim.stepping.loop import AdaptiveTimeLoop, LoopState
from vmsim.stepping.rk3 import STAGE_B_WEIGHTS, STAGE_C_WEIGHTS, SSPRK3Stepper
from vmsim.stepping.stage import StageExecutor

__all__ = [
    "STAGE_B_WEIGHTS",
    "STAGE_C_WEIGHTS",
    "AdaptiveTimeLoop",
    "LoopState",
    "SSPRK3Stepper",
    "StageExecutor",
]
