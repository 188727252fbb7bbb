"""Named configuration presets.

Each preset is a dictionary that can be unpacked into SimulationConfig(**preset).
Presets provide meaningful starting points for:
- Full-size Weibel instability run (electron shear flow, 1X3V)
- Reduced Weibel run for smoke tests
- Quiet plasma (Maxwellians at rest, no field) for checking the driver

Usage:
    from vmsim.presets import get_preset, list_presets
    config = SimulationConfig(**get_preset("weibel"))
"""

from __future__ import annotations

import copy
from typing import Any

from vmsim.constants import PROTON_ELECTRON_MASS_RATIO

_ELC_TEMP = 0.01
_TE_TI = 1.0

_PRESETS: dict[str, dict[str, Any]] = {
    "weibel": {
        "_meta": {
            "description": "Weibel instability driven by a sheared electron flow, 128 x 32^3",
        },
        "poly_order": 2,
        "grid": {"lower": -70.0, "upper": 70.0, "cells": 128, "boundary": "copy"},
        "species": [
            {
                "name": "Elc", "charge": -1.0, "mass": 1.0, "temperature": _ELC_TEMP,
                "velocity_cells": [32, 32, 32], "drift_profile": "weibel",
            },
            {
                "name": "Ion", "charge": 1.0, "mass": PROTON_ELECTRON_MASS_RATIO,
                "temperature": _ELC_TEMP / _TE_TI, "velocity_cells": [32, 32, 32],
            },
        ],
        "maxwell": {
            "units": "normalized",
            "elc_error_speed_factor": 0.0,
            "mgn_error_speed_factor": 1.0,
            "numerical_flux": "upwind",
        },
        "time": {"t_start": 0.0, "t_end": 50.0, "n_frames": 50},
        "initial": {
            "kind": "weibel", "n0": 1.0, "perturb": 1e-10,
            "delta": 0.25, "uinf": 0.25, "k0": 0.2, "length": 1.0,
        },
    },
    "weibel_small": {
        "_meta": {
            "description": "Reduced Weibel run (16 x 6^3, two frames) for quick checks",
        },
        "poly_order": 2,
        "grid": {"lower": -70.0, "upper": 70.0, "cells": 16, "boundary": "copy"},
        "species": [
            {
                "name": "Elc", "charge": -1.0, "mass": 1.0, "temperature": _ELC_TEMP,
                "velocity_cells": [6, 6, 6], "drift_profile": "weibel",
            },
            {
                "name": "Ion", "charge": 1.0, "mass": PROTON_ELECTRON_MASS_RATIO,
                "temperature": _ELC_TEMP / _TE_TI, "velocity_cells": [6, 6, 6],
            },
        ],
        "time": {"t_start": 0.0, "t_end": 2.0, "n_frames": 2},
        "initial": {"kind": "weibel"},
    },
    "quiet": {
        "_meta": {
            "description": "Neutral plasma at rest with no field (8 x 4^3)",
        },
        "poly_order": 1,
        "grid": {"lower": -10.0, "upper": 10.0, "cells": 8, "boundary": "periodic"},
        "species": [
            {
                "name": "Elc", "charge": -1.0, "mass": 1.0, "temperature": _ELC_TEMP,
                "velocity_cells": [4, 4, 4],
            },
            {
                "name": "Ion", "charge": 1.0, "mass": 1.0, "temperature": _ELC_TEMP,
                "velocity_cells": [4, 4, 4],
            },
        ],
        "time": {"t_start": 0.0, "t_end": 1.0, "n_frames": 1},
        "initial": {"kind": "maxwellian"},
    },
}


def list_presets() -> list[dict[str, Any]]:
    """Return summary info for all available presets.

    Returns:
        List of dicts with keys: name, description, cells, species.
    """
    result = []
    for name, preset in _PRESETS.items():
        meta = preset.get("_meta", {})
        result.append({
            "name": name,
            "description": meta.get("description", ""),
            "cells": preset["grid"]["cells"],
            "species": [s["name"] for s in preset["species"]],
        })
    return result


def get_preset(name: str) -> dict[str, Any]:
    """Return a preset config dict (without _meta) suitable for SimulationConfig.

    Args:
        name: Preset name.

    Returns:
        Config dict ready for ``SimulationConfig(**preset)``.

    Raises:
        KeyError: If the preset name is not found.
    """
    if name not in _PRESETS:
        available = ", ".join(sorted(_PRESETS))
        raise KeyError(f"Unknown preset '{name}'. Available: {available}")
    preset = copy.deepcopy(_PRESETS[name])
    preset.pop("_meta", None)
    return preset
