"""Simulation engine: builds the Vlasov-Maxwell deck and drives it to t_end.

Wires together: config -> grids -> fields -> operators -> stage -> SSP-RK3
stepper -> adaptive loop -> frame output, and owns checkpoint/restart.

Run sequence:
1. Project the initial distribution functions and EM field
2. Boundary pass, diagnostics and frame 0 at ``t_start``
3. Adaptive loop: attempt, reject and retry, or accept and maybe write a frame
4. Optional final checkpoint and a timing report per operator
"""

from __future__ import annotations

import logging
import time as wall_time
from pathlib import Path
from typing import Any

from vmsim.config import SimulationConfig
from vmsim.core.bases import StepResult, UpdateOperator, run_operator
from vmsim.core.context import SimulationClock, SimulationContext, TimingCounters
from vmsim.core.field import Field
from vmsim.core.grid import RectGrid
from vmsim.core.state import FieldGroup
from vmsim.diagnostics.checkpoint import load_checkpoint, restore_fields, save_checkpoint
from vmsim.diagnostics.frames import FrameSchedule, FrameScheduler
from vmsim.diagnostics.hdf5_writer import DerivedMoment, FrameWriter
from vmsim.diagnostics.timeseries import TimeSeries
from vmsim.initial import distribution_projection, em_projection
from vmsim.operators.boundary import BoundaryPass
from vmsim.operators.integrals import (
    FieldIntegralOperator,
    em_energy_integrand,
    magnetic_energy_integrand,
)
from vmsim.operators.maxwell import NUM_EM_COMPONENTS, MaxwellOperator
from vmsim.operators.moments import MOMENT_COMPONENTS, MomentOperator
from vmsim.operators.sources import current_source_projection
from vmsim.operators.vlasov import VlasovOperator
from vmsim.species import KineticSpecies
from vmsim.stepping.loop import AdaptiveTimeLoop
from vmsim.stepping.rk3 import SSPRK3Stepper
from vmsim.stepping.stage import StageExecutor

logger = logging.getLogger(__name__)

EM_FIELD_NAME = "em"

# Per-frame moment outputs: (order, file-name stem)
_FRAME_MOMENTS = ((0, "numDensity"), (1, "momentum"), (2, "ptclEnergy"))


class SimulationEngine:
    """Vlasov-Maxwell simulation engine.

    Args:
        config: Validated SimulationConfig.
        output_dir: Override of ``config.diagnostics.output_dir``.
    """

    def __init__(self, config: SimulationConfig, output_dir: str | Path | None = None) -> None:
        self.config = config
        gc = config.grid
        tc = config.time
        mc = config.maxwell
        ghost = (gc.ghost[0], gc.ghost[1])

        self.output_dir = Path(output_dir or config.diagnostics.output_dir)
        self.checkpoint_interval = config.diagnostics.checkpoint_interval
        self.checkpoint_filename = str(self.output_dir / config.diagnostics.checkpoint_filename)
        self.timers = TimingCounters()

        self.epsilon0 = mc.eps0
        self.mu0 = mc.mu
        self.light_speed = mc.light_speed
        cfl, cflm = config.cfl, config.cflm

        # Grids and evolving fields
        self.conf_grid = RectGrid((gc.lower,), (gc.upper,), (gc.cells,))
        self.phase_grids: dict[str, RectGrid] = {}
        self.species: list[KineticSpecies] = []
        fields: list[Field] = []
        for sc in config.species:
            vlo, vhi = sc.velocity_bounds()
            grid = RectGrid((gc.lower, *vlo), (gc.upper, *vhi), (gc.cells, *sc.velocity_cells))
            self.phase_grids[sc.name] = grid
            sp = KineticSpecies(
                name=sc.name,
                charge=sc.charge,
                mass=sc.mass,
                kinetic=VlasovOperator(grid, sc.charge, sc.mass, cfl, cflm, name=f"vlasov{sc.name}"),
                momentum=MomentOperator(grid, 1, name=f"momentumCalc{sc.name}"),
                temperature=sc.temperature,
            )
            self.species.append(sp)
            fields.append(Field(sp.field_name, grid, 1, ghost))
        fields.append(Field(EM_FIELD_NAME, self.conf_grid, NUM_EM_COMPONENTS, ghost))
        self.state = FieldGroup(fields)

        # Solvers
        self.field_solver = MaxwellOperator(
            self.conf_grid,
            self.light_speed,
            elc_error_speed_factor=mc.elc_error_speed_factor,
            mgn_error_speed_factor=mc.mgn_error_speed_factor,
            cfl=cfl,
            cflm=cflm,
            numerical_flux=mc.numerical_flux,
            name="maxwellSlvr",
        )
        self.source_projection = current_source_projection()
        self.stage = StageExecutor(
            self.species,
            self.field_solver,
            self.source_projection,
            self.conf_grid,
            self.epsilon0,
            em_name=EM_FIELD_NAME,
            ghost=ghost,
            timers=self.timers,
        )
        self.boundary = BoundaryPass.uniform(self.state.names, gc.boundary)
        self.stepper = SSPRK3Stepper(self.state, self.stage, self.boundary, self.timers)

        self.context = SimulationContext(
            state=self.state,
            clock=SimulationClock(time=tc.t_start, t_end=tc.t_end),
            timers=self.timers,
        )

        # Diagnostics
        em = self.state[EM_FIELD_NAME]
        self.em_energy = TimeSeries("emEnergy")
        self.magnetic_energy = TimeSeries("mEnergy")
        self.integrals: list[UpdateOperator] = []
        for series, integrand, name in (
            (self.em_energy, em_energy_integrand(self.epsilon0, self.mu0), "emEnergyCalc"),
            (self.magnetic_energy, magnetic_energy_integrand(self.mu0), "mEnergyCalc"),
        ):
            op = FieldIntegralOperator(self.conf_grid, integrand, name=name)
            op.set_inputs([em])
            op.set_outputs([series])
            self.integrals.append(op)

        moments: list[DerivedMoment] = []
        if config.diagnostics.write_moments:
            for sp in self.species:
                grid = self.phase_grids[sp.name]
                for order, stem in _FRAME_MOMENTS:
                    moments.append(DerivedMoment(
                        operator=MomentOperator(grid, order, name=f"{stem}Calc{sp.name}"),
                        source=sp.field_name,
                        output=Field(f"{stem}{sp.name}", self.conf_grid, MOMENT_COMPONENTS[order], ghost),
                    ))

        self.writer = FrameWriter(
            self.output_dir,
            self.state,
            moments=moments,
            series=[self.em_energy, self.magnetic_energy],
            prefix=config.diagnostics.prefix,
        )
        self.schedule = FrameSchedule(tc.t_start, tc.t_end, tc.n_frames)
        self.frames = FrameScheduler(self.schedule, self.writer, self.integrals, self.timers)
        self.loop = AdaptiveTimeLoop(
            self.context,
            self.stepper,
            self.frames,
            max_retries=tc.max_retries,
            dt_floor=config.dt_floor,
        )
        self.loop.dt_next = config.dt_init
        self._initialized = False

        self._log_setup()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def time(self) -> float:
        return self.context.clock.time

    @property
    def step_count(self) -> int:
        return self.context.clock.step

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _log_setup(self) -> None:
        tc = self.config.time
        dx = self.conf_grid.dx[0]
        logger.info("tEnd = %g, nFrames = %d", tc.t_end, tc.n_frames)
        logger.info("Domain = [%g, %g] with %d cells", self.conf_grid.lower[0],
                    self.conf_grid.upper[0], self.conf_grid.cells[0])
        logger.info("Cell size = %g", dx)
        logger.info("Light speed = %g", self.light_speed)
        logger.info("Light speed dt = %g", dx / self.light_speed)
        logger.info("CFL = %g (max %g), poly order %d", self.config.cfl, self.config.cflm,
                    self.config.poly_order)
        for sc in self.config.species:
            vlo, vhi = sc.velocity_bounds()
            logger.info("%s thermal speed = %g", sc.name, sc.thermal_speed)
            logger.info("%s velocity extents = [%g, %g] x [%g, %g] x [%g, %g]",
                        sc.name, vlo[0], vhi[0], vlo[1], vhi[1], vlo[2], vhi[2])

    def initialize(self) -> None:
        """Project initial data, fill ghosts and write frame 0."""
        t0 = self.time
        ic = self.config.initial
        for sc, sp in zip(self.config.species, self.species):
            op = distribution_projection(self.phase_grids[sc.name], sc, ic)
            run_operator(op, t0, 0.0, [], [self.state[sp.field_name]])
        run_operator(em_projection(self.conf_grid, ic), t0, 0.0, [], [self.state[EM_FIELD_NAME]])
        self.boundary.apply(self.state, t0, 0.0)
        self.frames.write_initial(t0)
        self._initialized = True

    # ------------------------------------------------------------------
    # Checkpoint / restart
    # ------------------------------------------------------------------

    def save_checkpoint(self, filename: str | Path | None = None) -> Path:
        """Save current run state to an HDF5 checkpoint file.

        Args:
            filename: Output file path (default: self.checkpoint_filename).
        """
        fname = filename or self.checkpoint_filename
        return save_checkpoint(
            fname,
            self.state,
            self.time,
            self.step_count,
            self.schedule.frame,
            self.loop.dt_next,
            config_json=self.config.model_dump_json(),
            series=[self.em_energy, self.magnetic_energy],
        )

    def load_from_checkpoint(self, filename: str | Path) -> None:
        """Restore run state from an HDF5 checkpoint file.

        Args:
            filename: Input checkpoint file path.
        """
        data = load_checkpoint(filename)
        restore_fields(self.state, data["fields"])
        self.context.clock.time = data["time"]
        self.context.clock.step = data["step"]
        self.schedule.frame = data["frame"]

        for series in (self.em_energy, self.magnetic_energy):
            series.clear()
            times, values = data["series"].get(series.name, ((), ()))
            for t, row in zip(times, values):
                series.append(t, row)

        self.loop.resume(data["dt_next"])
        self._initialized = True

        logger.info(
            "Restored from checkpoint: t=%g, step=%d, next frame %d",
            self.time, self.step_count, self.schedule.frame,
        )

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def step(self) -> StepResult:
        """Attempt one step with the loop's current dt."""
        if not self._initialized:
            self.initialize()
        result = self.loop.attempt(self.loop.dt_next)
        if (
            result.accepted
            and not result.finished
            and self.checkpoint_interval > 0
            and self.step_count % self.checkpoint_interval == 0
        ):
            self.save_checkpoint()
        return result

    def timing_report(self) -> dict[str, float]:
        """Cumulative wall-clock seconds per operator and driver phase."""
        report: dict[str, float] = {}
        ops: list[UpdateOperator] = []
        for sp in self.species:
            ops.extend([sp.kinetic, sp.momentum])
        ops.extend([self.field_solver, self.source_projection, *self.integrals])
        for m in self.writer.moments:
            ops.append(m.operator)
        for op in ops:
            report[op.name] = op.total_advance_time()
        report["boundaryPass"] = self.boundary.elapsed
        for key, val in self.timers.as_dict().items():
            report[f"driver.{key}"] = val
        return report

    def run(self) -> dict[str, Any]:
        """Execute the simulation loop to ``t_end``.

        Returns:
            Dictionary with summary statistics.
        """
        t_wall_start = wall_time.monotonic()
        logger.info("Starting simulation: t_end=%g", self.config.time.t_end)

        if not self._initialized:
            self.initialize()
        while not self.loop.done:
            self.step()

        if self.config.diagnostics.final_checkpoint:
            self.save_checkpoint()

        t_wall = wall_time.monotonic() - t_wall_start
        timing = self.timing_report()
        for name, seconds in timing.items():
            logger.info("%s took %g sec", name, seconds)

        summary = {
            "steps": self.step_count,
            "attempts": self.loop.attempts,
            "rejections": self.loop.rejections,
            "sim_time": self.time,
            "frames_written": len(self.writer.frames_written),
            "dt_next": self.loop.dt_next,
            "wall_time_s": t_wall,
        }

        logger.info(
            "Simulation complete: %d steps (%d rejected attempts) in %.2f s",
            self.step_count, self.loop.rejections, t_wall,
        )
        return summary
