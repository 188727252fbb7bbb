"""End-to-end tests for the simulation engine on a tiny 1X3V deck.

Test categories:
1. Construction from config (fields, grids, operators)
2. Full run: terminal time, frame files, rejection of the first dt
3. Null perturbation: a neutral plasma at rest with no seed stays field-free
4. Checkpoint/restart reproduces an uninterrupted run exactly
5. Retry guard surfaces as NonConvergentStepError
"""

from __future__ import annotations

import h5py
import numpy as np
import pytest

from vmsim.config import SimulationConfig
from vmsim.core.bases import StepResult
from vmsim.engine import SimulationEngine
from vmsim.errors import NonConvergentStepError


def _config(sample_config_dict, out_dir, **overrides):
    data = {**sample_config_dict, **overrides}
    cfg = SimulationConfig(**data)
    cfg.diagnostics.output_dir = str(out_dir)
    return cfg


class TestEngineSetup:
    """Tests for engine construction."""

    def test_fields_and_grids(self, small_config):
        engine = SimulationEngine(small_config)
        assert engine.state.names == ("distfElc", "distfIon", "em")
        assert engine.state["distfElc"].shape == (6, 4, 4, 4, 1)
        assert engine.state["em"].shape == (6, 8)
        assert engine.phase_grids["Elc"].upper[1] == pytest.approx(0.8)
        assert engine.light_speed == 1.0
        assert engine.time == 0.0
        assert engine.step_count == 0

    def test_initialize_writes_frame_zero(self, small_config):
        engine = SimulationEngine(small_config)
        engine.initialize()
        out = engine.output_dir
        for stem in ("distfElc", "distfIon", "em", "numDensityElc", "momentumIon",
                     "ptclEnergyElc", "emEnergy", "mEnergy"):
            assert (out / f"{stem}_0.h5").exists()
        assert np.any(engine.state["em"].interior[:, 5] != 0.0)
        assert np.all(engine.state["distfElc"].interior > 0.0)


class TestEngineRun:
    """Tests for full runs."""

    def test_run_reaches_t_end(self, small_config):
        engine = SimulationEngine(small_config)
        summary = engine.run()
        assert engine.time == small_config.time.t_end
        assert summary["sim_time"] == small_config.time.t_end
        assert summary["steps"] == engine.step_count > 0
        # The first attempt uses dt = t_end and must be rejected
        assert summary["rejections"] >= 1
        assert summary["attempts"] == summary["steps"] + summary["rejections"]
        assert summary["frames_written"] == small_config.time.n_frames + 1

    def test_frame_files_carry_times(self, small_config):
        engine = SimulationEngine(small_config)
        engine.run()
        times = []
        for k in range(small_config.time.n_frames + 1):
            with h5py.File(engine.output_dir / f"em_{k}.h5", "r") as f:
                times.append(float(f.attrs["time"]))
        assert times[0] == 0.0
        assert times[-1] == small_config.time.t_end
        assert times == sorted(times)
        assert not (engine.output_dir / f"em_{small_config.time.n_frames + 1}.h5").exists()

    def test_energy_series_flushed_per_frame(self, small_config):
        engine = SimulationEngine(small_config)
        engine.run()
        with h5py.File(engine.output_dir / "emEnergy_0.h5", "r") as f:
            assert f["times"].shape == (1,)
        total = 0
        for k in range(1, small_config.time.n_frames + 1):
            with h5py.File(engine.output_dir / f"mEnergy_{k}.h5", "r") as f:
                total += f["times"].shape[0]
        assert total == engine.step_count

    def test_step_returns_step_result(self, small_config):
        engine = SimulationEngine(small_config)
        result = engine.step()
        assert isinstance(result, StepResult)
        assert not result.accepted
        result = engine.step()
        assert result.accepted
        assert result.time == pytest.approx(result.dt)

    def test_timing_report(self, small_config):
        engine = SimulationEngine(small_config)
        engine.run()
        report = engine.timing_report()
        assert report["vlasovElc"] > 0.0
        assert report["maxwellSlvr"] > 0.0
        assert report["driver.step"] > 0.0
        assert "boundaryPass" in report


class TestNullPerturbation:
    """A quiet neutral plasma with no seed field stays field-free."""

    def test_em_stays_zero(self, sample_config_dict, tmp_path):
        cfg = _config(
            sample_config_dict, tmp_path,
            initial={"kind": "weibel", "perturb": 0.0, "delta": 0.0, "uinf": 0.0},
        )
        engine = SimulationEngine(cfg)
        engine.initialize()
        f0 = engine.state["distfElc"].data.copy()
        engine.run()
        assert np.all(engine.state["em"].data == 0.0)
        np.testing.assert_allclose(engine.state["distfElc"].data, f0, rtol=1e-12)
        np.testing.assert_array_equal(
            engine.state["distfElc"].data, engine.state["distfIon"].data,
        )

    def test_zero_state_stays_zero(self, sample_config_dict, tmp_path):
        """Zero distributions and fields give zero current, moments and fields."""
        cfg = _config(sample_config_dict, tmp_path, initial={"kind": "zero"})
        engine = SimulationEngine(cfg)
        summary = engine.run()
        assert summary["sim_time"] == cfg.time.t_end
        for name in engine.state:
            assert np.all(engine.state[name].data == 0.0), name
        assert np.all(engine.stage.current.data == 0.0)
        assert np.all(engine.stage.em_source.data == 0.0)
        assert engine.writer.moments
        for m in engine.writer.moments:
            assert np.all(m.output.data == 0.0), m.output.name


class TestCheckpointRestart:
    """Tests for checkpoint/restart."""

    def test_restart_matches_uninterrupted_run(self, sample_config_dict, tmp_path):
        full = SimulationEngine(_config(sample_config_dict, tmp_path / "full"))
        full.run()

        first = SimulationEngine(_config(sample_config_dict, tmp_path / "first"))
        while first.step_count < 2:
            first.step()
        ck = first.save_checkpoint(tmp_path / "ck.h5")

        resumed = SimulationEngine(_config(sample_config_dict, tmp_path / "resumed"))
        resumed.load_from_checkpoint(ck)
        assert resumed.step_count == 2
        resumed.run()

        assert resumed.time == full.time
        assert resumed.step_count == full.step_count
        for name in full.state:
            np.testing.assert_array_equal(resumed.state[name].data, full.state[name].data)
        assert not (resumed.output_dir / "em_0.h5").exists()

    def test_periodic_and_final_checkpoints(self, sample_config_dict, tmp_path):
        cfg = _config(sample_config_dict, tmp_path)
        cfg.diagnostics.final_checkpoint = True
        engine = SimulationEngine(cfg)
        engine.checkpoint_interval = 1
        engine.run()
        with h5py.File(tmp_path / "checkpoint.h5", "r") as f:
            assert float(f.attrs["time"]) == cfg.time.t_end
            assert int(f.attrs["step"]) == engine.step_count
            assert "config_json" in f.attrs


class TestRetryGuard:
    """The retry cap ends the run with NonConvergentStepError."""

    def test_zero_retries_fails_on_first_rejection(self, sample_config_dict, tmp_path):
        cfg = _config(sample_config_dict, tmp_path)
        cfg.time.max_retries = 0
        engine = SimulationEngine(cfg)
        with pytest.raises(NonConvergentStepError):
            engine.run()
