"""One Runge-Kutta sub-stage of the coupled Vlasov-Maxwell system.

A stage advances every species and the EM field from ``state_in`` to
``state_out`` by one forward-Euler step of size ``dt`` and injects the
plasma current into the EM output:

1. kinetic advance per species ``(distf_in, em_in) -> distf_out``
2. field advance ``em_in -> em_out``
3. net current ``J = sum_s q_s * M1(distf_in_s)`` from the *input*
   distributions
4. ``em_out += -(dt/epsilon0) * P(J)`` where ``P`` places ``J`` into the
   electric-field slots of the EM source layout

The stage result is the AND of all acceptances and the minimum suggested
dt. Outputs are always written in full; rollback is the caller's job.
"""

from __future__ import annotations

import logging
import time as wall_time
from collections.abc import Sequence

from vmsim.core.bases import StageResult, UpdateOperator, run_operator
from vmsim.core.context import TimingCounters
from vmsim.core.field import Field
from vmsim.core.grid import RectGrid
from vmsim.core.state import FieldGroup
from vmsim.errors import FieldContractError
from vmsim.operators.maxwell import NUM_EM_COMPONENTS
from vmsim.species import KineticSpecies

logger = logging.getLogger(__name__)


class StageExecutor:
    """Run one coupled RK sub-stage.

    The executor owns the coupling buffers (per-species momentum, net
    current, EM source); nothing else writes to them.

    Args:
        species: Kinetic species in evaluation order.
        field_solver: Operator advancing the EM field.
        source_projection: Operator copying the current into the EM source.
        conf_grid: Configuration grid of the EM field.
        epsilon0: Vacuum permittivity.
        em_name: Name of the EM field in the evolving group.
        ghost: Ghost widths of the coupling buffers.
        timers: Counters receiving the time spent per stage.
    """

    def __init__(
        self,
        species: Sequence[KineticSpecies],
        field_solver: UpdateOperator,
        source_projection: UpdateOperator,
        conf_grid: RectGrid,
        epsilon0: float,
        em_name: str = "em",
        ghost: tuple[int, int] = (1, 1),
        timers: TimingCounters | None = None,
    ) -> None:
        if not species:
            raise ValueError("at least one kinetic species is required")
        names = [s.field_name for s in species]
        if len(set(names)) != len(names):
            raise ValueError(f"species distribution names must be unique, got {names}")
        if epsilon0 <= 0:
            raise ValueError(f"epsilon0 must be positive, got {epsilon0}")

        self.species = list(species)
        self.field_solver = field_solver
        self.source_projection = source_projection
        self.epsilon0 = float(epsilon0)
        self.em_name = em_name
        self.timers = timers if timers is not None else TimingCounters()

        self.momenta = {
            s.name: Field(f"momentum{s.name}", conf_grid, 3, ghost) for s in self.species
        }
        self.current = Field("current", conf_grid, 3, ghost)
        self.em_source = Field("emSource", conf_grid, NUM_EM_COMPONENTS, ghost)

    @property
    def field_names(self) -> tuple[str, ...]:
        """Names this executor reads and writes in a group."""
        return (*(s.field_name for s in self.species), self.em_name)

    def validate(self, group: FieldGroup) -> None:
        """Check that ``group`` carries every field this executor needs.

        Raises:
            FieldContractError: On a missing member or a mismatched EM layout.
        """
        missing = [n for n in self.field_names if n not in group]
        if missing:
            raise FieldContractError(f"field group {group.names} is missing {missing}")
        em = group[self.em_name]
        if em.grid != self.em_source.grid or em.num_components != NUM_EM_COMPONENTS:
            raise FieldContractError(
                f"'{self.em_name}' must be an {NUM_EM_COMPONENTS}-component field on "
                f"the configuration grid"
            )
        self.em_source.check_layout(em, "stage coupling")

    def compute_current(self, t: float, dt: float, distributions: FieldGroup) -> Field:
        """Fill :attr:`current` with ``sum_s q_s * M1(distf_s)``."""
        for s in self.species:
            run_operator(s.momentum, t, dt, [distributions[s.field_name]], [self.momenta[s.name]])
        self.current.clear()
        for s in self.species:
            self.current.accumulate(s.charge, self.momenta[s.name])
        return self.current

    def run(self, t: float, dt: float, state_in: FieldGroup, state_out: FieldGroup) -> StageResult:
        t0 = wall_time.perf_counter()
        em_in = state_in[self.em_name]
        em_out = state_out[self.em_name]

        results = []
        for s in self.species:
            results.append(
                run_operator(
                    s.kinetic, t, dt,
                    [state_in[s.field_name], em_in],
                    [state_out[s.field_name]],
                )
            )
        results.append(run_operator(self.field_solver, t, dt, [em_in], [em_out]))

        # Current from the pre-stage distributions, added only after all
        # moment reductions are complete
        self.compute_current(t, dt, state_in)
        run_operator(self.source_projection, t, dt, [self.current], [self.em_source])
        em_out.accumulate(-dt / self.epsilon0, self.em_source)

        result = StageResult.merge(results)
        if not result.accepted:
            rejected = [
                op.name
                for op, r in zip([s.kinetic for s in self.species] + [self.field_solver], results)
                if not r.accepted
            ]
            logger.debug(
                "Stage at t=%g rejected dt=%g by %s (suggested %g)",
                t, dt, rejected, result.dt_suggested,
            )
        self.timers.stage += wall_time.perf_counter() - t0
        return result
