"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from vmsim.config import SimulationConfig
from vmsim.core.grid import RectGrid


@pytest.fixture
def conf_grid():
    """Small 1D configuration grid."""
    return RectGrid((-2.0,), (2.0,), (8,))


@pytest.fixture
def phase_grid():
    """Small 1X3V phase grid over the configuration grid."""
    return RectGrid((-2.0, -1.0, -1.0, -1.0), (2.0, 1.0, 1.0, 1.0), (8, 4, 4, 4))


@pytest.fixture
def species_params():
    """Electron/ion pair with equal mass so a quiet plasma carries no current."""
    return [
        {
            "name": "Elc", "charge": -1.0, "mass": 1.0, "temperature": 0.01,
            "velocity_cells": [4, 4, 4], "drift_profile": "weibel",
        },
        {
            "name": "Ion", "charge": 1.0, "mass": 1.0, "temperature": 0.01,
            "velocity_cells": [4, 4, 4],
        },
    ]


@pytest.fixture
def sample_config_dict(species_params):
    """Minimal valid SimulationConfig as a dictionary (a few steps to t_end)."""
    return {
        "poly_order": 2,
        "grid": {"lower": -2.0, "upper": 2.0, "cells": 4, "boundary": "copy"},
        "species": species_params,
        "time": {"t_start": 0.0, "t_end": 0.2, "n_frames": 2},
        "initial": {"kind": "weibel", "perturb": 1e-6},
    }


@pytest.fixture
def small_config(sample_config_dict, tmp_path):
    """Small SimulationConfig writing into a temporary directory."""
    cfg = SimulationConfig(**sample_config_dict)
    cfg.diagnostics.output_dir = str(tmp_path / "out")
    return cfg


@pytest.fixture
def config_file(tmp_path, sample_config_dict):
    """Temporary config JSON file."""
    path = tmp_path / "config.json"
    SimulationConfig(**sample_config_dict).to_json(path)
    return path
