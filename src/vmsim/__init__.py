"""vmsim: adaptive SSP-RK3 driver for a 1X3V Vlasov-Maxwell input deck.

Wires kinetic, field, moment and boundary update operators into a
three-stage strong-stability-preserving Runge-Kutta step with whole-state
rollback and fixed-cadence diagnostic frames.
"""

from __future__ import annotations

__version__ = "0.1.0"
