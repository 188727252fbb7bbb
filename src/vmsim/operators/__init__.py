"""Reference update operators for the 1X3V Vlasov-Maxwell deck.

Every operator implements :class:`vmsim.core.bases.UpdateOperator`; the
time-integration driver depends only on that contract.
"""

from vmsim.operators.boundary import BoundaryOperator, BoundaryPass
from vmsim.operators.integrals import (
    FieldIntegralOperator,
    em_energy_integrand,
    magnetic_energy_integrand,
)
from vmsim.operators.maxwell import NUM_EM_COMPONENTS, MaxwellOperator
from vmsim.operators.moments import MOMENT_COMPONENTS, MomentOperator
from vmsim.operators.projection import ProjectionOperator
from vmsim.operators.sources import ComponentCopyOperator, current_source_projection
from vmsim.operators.vlasov import VlasovOperator

__all__ = [
    "MOMENT_COMPONENTS",
    "NUM_EM_COMPONENTS",
    "BoundaryOperator",
    "BoundaryPass",
    "ComponentCopyOperator",
    "FieldIntegralOperator",
    "MaxwellOperator",
    "MomentOperator",
    "ProjectionOperator",
    "VlasovOperator",
    "current_source_projection",
    "em_energy_integrand",
    "magnetic_energy_integrand",
]
