"""Scalar time-series store for per-step diagnostics.

Samples accumulate in memory and are flushed to one HDF5 file per output
frame (datasets ``times`` and ``data``), after which the buffer restarts.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import h5py
import numpy as np

from vmsim.errors import OutputError

logger = logging.getLogger(__name__)


class TimeSeries:
    """Growing list of ``(time, values)`` samples.

    Args:
        name: Quantity name (e.g. ``"emEnergy"``).
        num_components: Values per sample.
    """

    def __init__(self, name: str, num_components: int = 1) -> None:
        if num_components <= 0:
            raise ValueError(f"num_components must be positive, got {num_components}")
        self.name = name
        self.num_components = num_components
        self._times: list[float] = []
        self._values: list[list[float]] = []

    def append(self, time: float, values: Sequence[float] | float) -> None:
        row = [float(v) for v in np.atleast_1d(values)]
        if len(row) != self.num_components:
            raise ValueError(
                f"{self.name}: expected {self.num_components} values, got {len(row)}"
            )
        self._times.append(float(time))
        self._values.append(row)

    def __len__(self) -> int:
        return len(self._times)

    @property
    def times(self) -> np.ndarray:
        return np.asarray(self._times, dtype=float)

    @property
    def values(self) -> np.ndarray:
        return np.asarray(self._values, dtype=float).reshape(-1, self.num_components)

    def last(self) -> np.ndarray | None:
        if not self._values:
            return None
        return np.asarray(self._values[-1])

    def clear(self) -> None:
        self._times.clear()
        self._values.clear()

    def write(self, path: str | Path, clear: bool = True) -> Path:
        """Write buffered samples to HDF5, then optionally reset the buffer.

        Raises:
            OutputError: If the file cannot be written.
        """
        path = Path(path)
        try:
            with h5py.File(path, "w") as f:
                f.create_dataset("times", data=self.times)
                f.create_dataset("data", data=self.values)
                f.attrs["name"] = self.name
                f.attrs["num_components"] = self.num_components
        except OSError as exc:
            raise OutputError(f"failed to write time series '{self.name}' to {path}: {exc}") from exc
        logger.debug("Wrote %d samples of %s to %s", len(self), self.name, path)
        if clear:
            self.clear()
        return path
