"""Uniform rectangular grids for configuration and phase space.

Axis 0 is always the configuration axis ``x``. Phase-space grids append
the three velocity axes ``(vx, vy, vz)``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class RectGrid:
    """Uniform Cartesian grid.

    Attributes:
        lower: Lower domain edge per axis.
        upper: Upper domain edge per axis.
        cells: Number of cells per axis.
    """

    lower: tuple[float, ...]
    upper: tuple[float, ...]
    cells: tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "lower", tuple(float(v) for v in self.lower))
        object.__setattr__(self, "upper", tuple(float(v) for v in self.upper))
        object.__setattr__(self, "cells", tuple(int(n) for n in self.cells))
        if not (len(self.lower) == len(self.upper) == len(self.cells)):
            raise ValueError(
                f"lower/upper/cells must have equal length, got "
                f"{len(self.lower)}/{len(self.upper)}/{len(self.cells)}"
            )
        if not self.cells:
            raise ValueError("grid needs at least one axis")
        for axis, (lo, hi, n) in enumerate(zip(self.lower, self.upper, self.cells)):
            if n <= 0:
                raise ValueError(f"axis {axis}: cell count must be positive, got {n}")
            if hi <= lo:
                raise ValueError(f"axis {axis}: upper ({hi}) must exceed lower ({lo})")

    @property
    def ndim(self) -> int:
        return len(self.cells)

    @property
    def dx(self) -> tuple[float, ...]:
        """Cell width per axis."""
        return tuple(
            (hi - lo) / n for lo, hi, n in zip(self.lower, self.upper, self.cells)
        )

    @property
    def cell_volume(self) -> float:
        return float(np.prod(self.dx))

    def cell_centers(self, axis: int) -> np.ndarray:
        """Return the 1D array of cell-center coordinates along ``axis``."""
        lo = self.lower[axis]
        d = self.dx[axis]
        return lo + (np.arange(self.cells[axis]) + 0.5) * d

    def mesh(self) -> tuple[np.ndarray, ...]:
        """Return ``ij``-indexed coordinate arrays of all cell centers."""
        axes = [self.cell_centers(a) for a in range(self.ndim)]
        return tuple(np.meshgrid(*axes, indexing="ij"))

    def configuration(self) -> RectGrid:
        """Return the 1D configuration-space grid (axis 0 only)."""
        return RectGrid(self.lower[:1], self.upper[:1], self.cells[:1])
