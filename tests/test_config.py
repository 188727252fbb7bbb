"""Tests for configuration models, presets and initial conditions.

Test categories:
1. Defaults reproduce the Weibel deck (CFL, velocity extents, dt_init)
2. Validation errors
3. JSON round trip
4. Presets
5. Initial-condition profiles
"""

from __future__ import annotations

import math

import numpy as np
import pytest
from pydantic import ValidationError

from vmsim import constants
from vmsim.config import MaxwellConfig, SimulationConfig, SpeciesConfig, TimeConfig
from vmsim.presets import get_preset, list_presets

# ====================================================
# Defaults and derived values
# ====================================================


class TestConfigDefaults:
    """Tests for derived configuration values."""

    def test_default_cfl_from_poly_order(self):
        cfg = SimulationConfig()
        assert cfg.cfl == pytest.approx(0.05)
        assert cfg.cflm == pytest.approx(0.055)

    def test_explicit_cfl(self):
        cfg = SimulationConfig(time={"cfl": 0.1})
        assert cfg.cfl == 0.1
        assert cfg.cflm == pytest.approx(0.11)

    def test_dt_init_defaults_to_t_end(self):
        cfg = SimulationConfig(time={"t_end": 12.0})
        assert cfg.dt_init == 12.0
        assert cfg.dt_floor == pytest.approx(12e-12)

    def test_velocity_extents_are_eight_thermal_speeds(self):
        sp = SpeciesConfig(name="Elc", charge=-1.0, mass=1.0, temperature=0.01)
        lo, hi = sp.velocity_bounds()
        assert sp.thermal_speed == pytest.approx(0.1)
        assert lo == pytest.approx([-0.8] * 3)
        assert hi == pytest.approx([0.8] * 3)

    def test_default_species(self):
        cfg = SimulationConfig()
        assert [s.name for s in cfg.species] == ["Elc", "Ion"]
        assert cfg.species[1].mass == pytest.approx(constants.PROTON_ELECTRON_MASS_RATIO)

    def test_normalized_and_si_light_speed(self):
        assert MaxwellConfig().light_speed == 1.0
        assert MaxwellConfig(units="si").light_speed == pytest.approx(constants.c, rel=1e-9)


# ====================================================
# Validation
# ====================================================


class TestConfigValidation:
    """Tests for configuration validation errors."""

    def test_t_end_must_exceed_t_start(self):
        with pytest.raises(ValidationError):
            TimeConfig(t_start=1.0, t_end=1.0)

    def test_cflm_below_cfl_rejected(self):
        with pytest.raises(ValidationError):
            SimulationConfig(time={"cfl": 0.1, "cflm": 0.05})

    def test_duplicate_species_rejected(self):
        sp = {"name": "Elc", "charge": -1.0, "mass": 1.0, "temperature": 0.01}
        with pytest.raises(ValidationError, match="unique"):
            SimulationConfig(species=[sp, sp])

    def test_bad_boundary_rejected(self):
        with pytest.raises(ValidationError):
            SimulationConfig(grid={"boundary": "reflect"})

    def test_cold_species_needs_bounds(self):
        with pytest.raises(ValidationError):
            SpeciesConfig(name="Beam", charge=-1.0, mass=1.0, temperature=0.0)
        sp = SpeciesConfig(
            name="Beam", charge=-1.0, mass=1.0, temperature=0.0,
            velocity_lower=[-1.0, -1.0, -1.0], velocity_upper=[1.0, 1.0, 1.0],
        )
        assert sp.velocity_bounds() == ([-1.0, -1.0, -1.0], [1.0, 1.0, 1.0])

    def test_unknown_initial_kind_rejected(self):
        with pytest.raises(ValidationError):
            SimulationConfig(initial={"kind": "two_stream"})


# ====================================================
# I/O and presets
# ====================================================


class TestConfigIO:
    """Tests for JSON I/O."""

    def test_round_trip(self, tmp_path, sample_config_dict):
        cfg = SimulationConfig(**sample_config_dict)
        path = tmp_path / "cfg.json"
        cfg.to_json(path)
        loaded = SimulationConfig.from_file(path)
        assert loaded == cfg


class TestPresets:
    """Tests for named presets."""

    @pytest.mark.parametrize("name", ["weibel", "weibel_small", "quiet"])
    def test_presets_validate(self, name):
        cfg = SimulationConfig(**get_preset(name))
        assert cfg.time.t_end > cfg.time.t_start

    def test_weibel_preset_matches_deck(self):
        cfg = SimulationConfig(**get_preset("weibel"))
        assert cfg.grid.cells == 128
        assert cfg.grid.lower == -70.0
        assert cfg.time.n_frames == 50
        assert cfg.species[0].velocity_cells == [32, 32, 32]
        assert cfg.initial.perturb == 1e-10

    def test_list_presets(self):
        names = [p["name"] for p in list_presets()]
        assert names == ["weibel", "weibel_small", "quiet"]

    def test_unknown_preset(self):
        with pytest.raises(KeyError, match="Unknown preset"):
            get_preset("nope")

    def test_get_preset_returns_copy(self):
        a = get_preset("quiet")
        a["species"][0]["mass"] = 99.0
        assert get_preset("quiet")["species"][0]["mass"] == 1.0


# ====================================================
# Initial conditions
# ====================================================


class TestInitialConditions:
    """Tests for initial-condition profiles."""

    def test_maxwellian_peak(self):
        from vmsim.initial import maxwellian

        val = maxwellian(1.0, 0.0, 0.0, 0.0, 0.1, 0.0, 0.0, 0.0)
        assert val == pytest.approx(1.0 / (2.0 * math.pi * 0.01) ** 1.5)

    def test_weibel_drift_profile(self):
        from vmsim.config import InitialConditionConfig
        from vmsim.initial import weibel_drift

        ic = InitialConditionConfig()
        assert weibel_drift(0.0, ic) == pytest.approx(0.25 + 0.125)
        assert weibel_drift(100.0, ic) == pytest.approx(0.5)
        assert weibel_drift(-100.0, ic) == pytest.approx(0.25)

    def test_em_seed_only_in_bz(self):
        from vmsim.config import InitialConditionConfig
        from vmsim.initial import em_profile

        x = np.linspace(-5.0, 5.0, 11)
        comps = em_profile(InitialConditionConfig(perturb=1.0))(x, 0.0)
        assert len(comps) == 8
        expected = np.exp(-(x**2) / 80.0) * np.sin(0.2 * x - 0.5 * math.pi)
        np.testing.assert_allclose(comps[5], expected)
        assert all(np.all(np.asarray(c) == 0.0) for i, c in enumerate(comps) if i != 5)

    def test_counter_streaming_is_symmetric_in_vy(self):
        from vmsim.config import InitialConditionConfig
        from vmsim.initial import distribution_profile

        sp = SpeciesConfig(
            name="Elc", charge=-1.0, mass=1.0, temperature=0.01, drift_profile="weibel",
        )
        f = distribution_profile(sp, InitialConditionConfig())
        assert f(0.3, 0.0, 0.2, 0.1, 0.0) == pytest.approx(f(0.3, 0.0, -0.2, 0.1, 0.0))

    def test_zero_kind(self):
        from vmsim.config import InitialConditionConfig
        from vmsim.initial import distribution_profile, em_profile

        sp = SpeciesConfig(name="Elc", charge=-1.0, mass=1.0, temperature=0.01)
        ic = InitialConditionConfig(kind="zero")
        x = np.zeros((2, 2, 2, 2))
        assert np.all(distribution_profile(sp, ic)(x, x, x, x, 0.0) == 0.0)
        assert all(c == 0.0 for c in em_profile(ic)(x, 0.0))
