"""Field storage: fixed-layout buffers with a ghost halo.

A :class:`Field` holds one physical quantity (a distribution function, the
EM field, a moment) over a :class:`~vmsim.core.grid.RectGrid`. The array
shape is ``(nx + lower_ghost + upper_ghost, *other_cells, num_components)``:
axis 0 is the configuration axis and is the only padded axis, the last
axis holds the components.

The layout is fixed at construction. Every operation writes into the
existing buffer, so references held by operators stay valid for the whole
run.
"""

from __future__ import annotations

import logging
from pathlib import Path

import h5py
import numpy as np

from vmsim.core.grid import RectGrid
from vmsim.errors import FieldContractError, OutputError

logger = logging.getLogger(__name__)


class Field:
    """Named numerical buffer over a grid with a configuration-axis halo.

    Args:
        name: Quantity name, used for output file names (e.g. ``"distfElc"``).
        grid: Grid the field lives on.
        num_components: Number of components per cell.
        ghost: ``(lower, upper)`` ghost-cell widths on axis 0.
        dtype: Floating-point type of the buffer.
    """

    def __init__(
        self,
        name: str,
        grid: RectGrid,
        num_components: int = 1,
        ghost: tuple[int, int] = (1, 1),
        dtype: type = np.float64,
    ) -> None:
        if num_components <= 0:
            raise ValueError(f"num_components must be positive, got {num_components}")
        lo, hi = (int(g) for g in ghost)
        if lo < 0 or hi < 0:
            raise ValueError(f"ghost widths must be non-negative, got {ghost}")

        self.name = name
        self.grid = grid
        self.num_components = int(num_components)
        self.ghost = (lo, hi)

        nx = grid.cells[0]
        shape = (nx + lo + hi, *grid.cells[1:], self.num_components)
        self._data = np.zeros(shape, dtype=dtype)

    # --- Layout ---

    @property
    def data(self) -> np.ndarray:
        """Full buffer including ghost cells."""
        return self._data

    @property
    def interior(self) -> np.ndarray:
        """View of the non-ghost cells."""
        lo = self.ghost[0]
        return self._data[lo : lo + self.grid.cells[0]]

    @property
    def shape(self) -> tuple[int, ...]:
        return self._data.shape

    def component(self, index: int) -> np.ndarray:
        """View of one component over the interior cells."""
        return self.interior[..., index]

    def layout_matches(self, other: Field) -> bool:
        """True if ``other`` has the same grid, component count and halo."""
        return (
            self.grid == other.grid
            and self.num_components == other.num_components
            and self.ghost == other.ghost
            and self._data.dtype == other._data.dtype
        )

    def check_layout(self, other: Field, operation: str) -> None:
        """Raise :class:`FieldContractError` if layouts differ."""
        if not self.layout_matches(other):
            raise FieldContractError(
                f"{operation}: layout of '{other.name}' {other.shape} does not match "
                f"'{self.name}' {self.shape}"
            )

    # --- Arithmetic (all in place) ---

    def duplicate(self, name: str | None = None) -> Field:
        """Return a new field with identical layout and a copy of the contents."""
        dup = Field(
            name or self.name,
            self.grid,
            self.num_components,
            self.ghost,
            self._data.dtype.type,
        )
        np.copyto(dup._data, self._data)
        return dup

    def copy(self, other: Field) -> Field:
        """Overwrite contents (ghosts included) with those of ``other``."""
        self.check_layout(other, "copy")
        np.copyto(self._data, other._data)
        return self

    def combine(self, w1: float, f1: Field, w2: float, f2: Field) -> Field:
        """Set ``self = w1*f1 + w2*f2`` componentwise.

        ``self`` may alias either operand.
        """
        self.check_layout(f1, "combine")
        self.check_layout(f2, "combine")
        self._data[...] = w1 * f1._data + w2 * f2._data
        return self

    def accumulate(self, scale: float, other: Field) -> Field:
        """Add ``scale*other`` to the contents."""
        self.check_layout(other, "accumulate")
        self._data += scale * other._data
        return self

    def scale(self, factor: float) -> Field:
        self._data *= factor
        return self

    def clear(self, value: float = 0.0) -> Field:
        self._data.fill(value)
        return self

    # --- Boundary conditions ---

    def _check_axis(self, axis: int) -> None:
        if axis != 0:
            raise ValueError(f"only the configuration axis (0) carries ghost cells, got {axis}")

    def apply_copy_bc(self, axis: int = 0, side: str = "lower") -> None:
        """Copy the outermost skin cell into every ghost layer of one side.

        Args:
            axis: Padded axis (only 0 is supported).
            side: ``"lower"`` or ``"upper"``.
        """
        self._check_axis(axis)
        lo, hi = self.ghost
        nx = self.grid.cells[0]
        if side == "lower":
            if lo:
                self._data[:lo] = self._data[lo : lo + 1]
        elif side == "upper":
            if hi:
                self._data[lo + nx :] = self._data[lo + nx - 1 : lo + nx]
        else:
            raise ValueError(f"side must be 'lower' or 'upper', got {side!r}")

    def apply_periodic_bc(self, axis: int = 0) -> None:
        """Fill both halos from the opposite end of the interior."""
        self._check_axis(axis)
        lo, hi = self.ghost
        nx = self.grid.cells[0]
        if max(lo, hi) > nx:
            raise FieldContractError(
                f"'{self.name}': periodic fill needs at least {max(lo, hi)} interior cells"
            )
        if lo:
            self._data[:lo] = self._data[nx : nx + lo]
        if hi:
            self._data[lo + nx :] = self._data[lo : lo + hi]

    def synchronize(self) -> None:
        """Exchange halo data between partitions.

        Fields are never decomposed in this package, so there is nothing to
        exchange; the call marks the point where a partitioned field would
        block.
        """

    # --- I/O ---

    def write(self, path: str | Path, time: float, frame: int | None = None) -> Path:
        """Write interior cells to an HDF5 file tagged with ``time``.

        Raises:
            OutputError: If the file cannot be written.
        """
        path = Path(path)
        try:
            with h5py.File(path, "w") as f:
                f.create_dataset("data", data=self.interior)
                f.attrs["name"] = self.name
                f.attrs["time"] = float(time)
                f.attrs["lower"] = np.asarray(self.grid.lower)
                f.attrs["upper"] = np.asarray(self.grid.upper)
                f.attrs["cells"] = np.asarray(self.grid.cells)
                f.attrs["ghost"] = np.asarray(self.ghost)
                f.attrs["num_components"] = self.num_components
                if frame is not None:
                    f.attrs["frame"] = int(frame)
        except OSError as exc:
            raise OutputError(f"failed to write field '{self.name}' to {path}: {exc}") from exc
        logger.debug("Wrote %s to %s at t=%g", self.name, path, time)
        return path

    def __repr__(self) -> str:
        return (
            f"Field(name={self.name!r}, shape={self.shape}, "
            f"num_components={self.num_components}, ghost={self.ghost})"
        )
