"""Initial distribution functions and EM field.

Profiles are plain functions of cell-center coordinates; they are wrapped
in :class:`~vmsim.operators.projection.ProjectionOperator` instances and
run once at the start time.

Weibel setup (``kind="weibel"``):

- species with ``drift_profile="weibel"``: two half-density Maxwellians
  streaming in ``+vy`` and ``-vy`` with drift
  ``uinf + 0.5*delta*(1 + tanh(x/length))``
- other species: Maxwellian at rest
- EM field zero except ``Bz = perturb*exp(-x^2/80*length)*sin(k0*x - pi/2)``
"""

from __future__ import annotations

from collections.abc import Callable

import numpy as np

from vmsim.config import InitialConditionConfig, SpeciesConfig
from vmsim.constants import pi
from vmsim.core.grid import RectGrid
from vmsim.operators.maxwell import BZ, NUM_EM_COMPONENTS
from vmsim.operators.projection import ProjectionOperator

Profile = Callable[..., object]


def maxwellian(n0, ux, uy, uz, vt, vx, vy, vz):
    """Drifting Maxwellian ``n0/(2 pi vt^2)^{3/2} exp(-|v-u|^2/(2 vt^2))``."""
    v2 = (vx - ux) ** 2 + (vy - uy) ** 2 + (vz - uz) ** 2
    return n0 / np.sqrt(2.0 * pi * vt**2) ** 3 * np.exp(-v2 / (2.0 * vt**2))


def weibel_drift(x, ic: InitialConditionConfig):
    """Drift speed across the shear layer centered at ``x = 0``."""
    return ic.uinf + 0.5 * ic.delta * (1.0 + np.tanh(x / ic.length))


def distribution_profile(species: SpeciesConfig, ic: InitialConditionConfig) -> Profile:
    """Return ``f(x, vx, vy, vz, t)`` for ``species``."""
    vt = species.thermal_speed
    n0 = ic.n0

    if ic.kind == "zero":
        def zero(x, vx, vy, vz, t):
            return np.zeros_like(x)
        return zero

    if ic.kind == "weibel" and species.drift_profile == "weibel":
        def counter_streaming(x, vx, vy, vz, t):
            vd = weibel_drift(x, ic)
            return (
                0.5 * maxwellian(n0, 0.0, vd, 0.0, vt, vx, vy, vz)
                + 0.5 * maxwellian(n0, 0.0, -vd, 0.0, vt, vx, vy, vz)
            )
        return counter_streaming

    def at_rest(x, vx, vy, vz, t):
        return maxwellian(n0, 0.0, 0.0, 0.0, vt, vx, vy, vz)
    return at_rest


def em_profile(ic: InitialConditionConfig) -> Profile:
    """Return ``(Ex, Ey, Ez, Bx, By, Bz, phi, psi)(x, t)``."""

    def em(x, t):
        comps = [0.0] * NUM_EM_COMPONENTS
        if ic.kind == "weibel":
            comps[BZ] = ic.perturb * np.exp(-(x**2) / 80.0 * ic.length) * np.sin(ic.k0 * x - 0.5 * pi)
        return tuple(comps)

    return em


def distribution_projection(
    phase_grid: RectGrid,
    species: SpeciesConfig,
    ic: InitialConditionConfig,
) -> ProjectionOperator:
    return ProjectionOperator(
        phase_grid, distribution_profile(species, ic), name=f"init{species.name}",
    )


def em_projection(conf_grid: RectGrid, ic: InitialConditionConfig) -> ProjectionOperator:
    return ProjectionOperator(conf_grid, em_profile(ic), name="initField")
