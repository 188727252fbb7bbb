"""Checkpoint/restart support.

Saves and loads the evolving field group (full buffers, ghosts included),
the clock, the next frame index and the next dt to a single HDF5 file, so
a restarted run continues exactly where the original stopped.

Usage:
    # Save checkpoint
    save_checkpoint("checkpoint.h5", state, time, step, frame, dt_next, config_json)

    # Load checkpoint
    data = load_checkpoint("checkpoint.h5")
    restore_fields(state, data["fields"])
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import h5py
import numpy as np

from vmsim.core.state import FieldGroup
from vmsim.diagnostics.timeseries import TimeSeries
from vmsim.errors import FieldContractError, OutputError

logger = logging.getLogger(__name__)

CHECKPOINT_VERSION = 1


def save_checkpoint(
    filename: str | Path,
    state: FieldGroup,
    time: float,
    step: int,
    frame: int,
    dt_next: float,
    config_json: str | None = None,
    series: list[TimeSeries] | None = None,
) -> Path:
    """Save the full run state to an HDF5 checkpoint file.

    Args:
        filename: Output HDF5 file path.
        state: Evolving field group.
        time: Current simulation time.
        step: Accepted-step count.
        frame: Index of the next frame to write.
        dt_next: dt the next attempt will use.
        config_json: JSON string of the simulation config (for reference).
        series: Time series whose unflushed samples are saved too.

    Raises:
        OutputError: If the file cannot be written.
    """
    path = Path(filename)
    logger.info("Saving checkpoint to %s at t=%g, step=%d", path, time, step)

    try:
        with h5py.File(path, "w") as f:
            # Metadata
            f.attrs["time"] = float(time)
            f.attrs["step"] = int(step)
            f.attrs["frame"] = int(frame)
            f.attrs["dt_next"] = float(dt_next)
            f.attrs["checkpoint_version"] = CHECKPOINT_VERSION

            if config_json is not None:
                f.attrs["config_json"] = config_json

            grp_fields = f.create_group("fields")
            for name, fld in state.items():
                ds = grp_fields.create_dataset(name, data=fld.data)
                ds.attrs["ghost"] = np.asarray(fld.ghost)

            grp_series = f.create_group("series")
            for ts in series or []:
                g = grp_series.create_group(ts.name)
                g.create_dataset("times", data=ts.times)
                g.create_dataset("data", data=ts.values)
    except OSError as exc:
        raise OutputError(f"failed to write checkpoint {path}: {exc}") from exc

    logger.info("Checkpoint saved: %s", path)
    return path


def load_checkpoint(filename: str | Path) -> dict[str, Any]:
    """Load run state from an HDF5 checkpoint file.

    Args:
        filename: Input HDF5 file path.

    Returns:
        Dictionary with keys:
            - "fields": dict of numpy arrays (full field buffers)
            - "series": dict of ``(times, values)`` pairs
            - "time": float (simulation time)
            - "step": int (accepted-step count)
            - "frame": int (next frame index)
            - "dt_next": float (next attempted dt)
            - "config_json": str or None (config for reference)
    """
    path = Path(filename)
    logger.info("Loading checkpoint from %s", path)

    with h5py.File(path, "r") as f:
        time = float(f.attrs["time"])
        step = int(f.attrs["step"])
        frame = int(f.attrs["frame"])
        dt_next = float(f.attrs["dt_next"])

        config_json = None
        if "config_json" in f.attrs:
            config_json = str(f.attrs["config_json"])

        fields = {key: np.array(f["fields"][key]) for key in f["fields"]}

        series = {}
        if "series" in f:
            for key in f["series"]:
                g = f["series"][key]
                series[key] = (np.array(g["times"]), np.array(g["data"]))

    logger.info(
        "Checkpoint loaded: t=%g, step=%d, frame=%d, fields=%s",
        time, step, frame, list(fields.keys()),
    )

    return {
        "fields": fields,
        "series": series,
        "time": time,
        "step": step,
        "frame": frame,
        "dt_next": dt_next,
        "config_json": config_json,
    }


def restore_fields(state: FieldGroup, fields: dict[str, np.ndarray]) -> None:
    """Copy checkpointed buffers into the fields of ``state``.

    Raises:
        FieldContractError: On a missing field or a shape mismatch.
    """
    for name, fld in state.items():
        if name not in fields:
            raise FieldContractError(f"checkpoint has no field '{name}'")
        arr = fields[name]
        if arr.shape != fld.shape:
            raise FieldContractError(
                f"checkpoint field '{name}' has shape {arr.shape}, expected {fld.shape}"
            )
        fld.data[...] = arr
