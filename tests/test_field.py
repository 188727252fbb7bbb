"""Tests for fields, field groups and rollback snapshots.

Test categories:
1. Field layout (ghost halo on the configuration axis only)
2. In-place arithmetic (copy, combine, accumulate, clear)
3. Boundary fills (copy, periodic)
4. HDF5 frame output
5. FieldGroup compatibility checks
6. Snapshot capture/restore and read-only protection
"""

from __future__ import annotations

import h5py
import numpy as np
import pytest

from vmsim.core.field import Field
from vmsim.core.grid import RectGrid
from vmsim.core.state import FieldGroup, Snapshot
from vmsim.errors import FieldContractError, OutputError
from vmsim.stepping.rk3 import STAGE_B_WEIGHTS, STAGE_C_WEIGHTS

# ====================================================
# Grid and layout
# ====================================================


class TestRectGrid:
    """Tests for uniform grids."""

    def test_cell_size_and_centers(self, conf_grid):
        """Cell width and centers follow from lower/upper/cells."""
        assert conf_grid.dx == (0.5,)
        np.testing.assert_allclose(conf_grid.cell_centers(0)[:2], [-1.75, -1.25])

    def test_configuration_grid(self, phase_grid):
        """The configuration grid is axis 0 of the phase grid."""
        conf = phase_grid.configuration()
        assert conf.ndim == 1
        assert conf.cells == (8,)

    def test_invalid_extent_rejected(self):
        with pytest.raises(ValueError, match="must exceed"):
            RectGrid((1.0,), (0.0,), (4,))


class TestFieldLayout:
    """Tests for field buffer layout."""

    def test_shape_includes_ghosts_on_axis0(self, phase_grid):
        """Ghost cells pad axis 0 only; components are the last axis."""
        f = Field("distf", phase_grid, 1, (1, 2))
        assert f.shape == (11, 4, 4, 4, 1)
        assert f.interior.shape == (8, 4, 4, 4, 1)

    def test_interior_is_a_view(self, conf_grid):
        """Writing the interior writes the buffer."""
        f = Field("em", conf_grid, 8)
        f.interior[...] = 2.0
        assert f.data[1, 0] == 2.0
        assert f.data[0, 0] == 0.0

    def test_layout_mismatch_raises(self, conf_grid, phase_grid):
        a = Field("a", conf_grid, 3)
        b = Field("b", conf_grid, 8)
        with pytest.raises(FieldContractError):
            a.copy(b)
        with pytest.raises(FieldContractError):
            Field("c", phase_grid).accumulate(1.0, a)


# ====================================================
# Arithmetic
# ====================================================


class TestFieldArithmetic:
    """Tests for in-place arithmetic."""

    def test_duplicate_is_independent(self, conf_grid):
        a = Field("a", conf_grid, 2)
        a.clear(1.0)
        b = a.duplicate("b")
        b.clear(3.0)
        assert b.name == "b"
        assert np.all(a.data == 1.0)

    def test_combine(self, conf_grid):
        """combine sets w1*f1 + w2*f2 including ghosts."""
        a = Field("a", conf_grid).clear(4.0)
        b = Field("b", conf_grid).clear(8.0)
        out = Field("out", conf_grid)
        out.combine(0.75, a, 0.25, b)
        np.testing.assert_allclose(out.data, 5.0)

    @pytest.mark.parametrize("weights", [STAGE_B_WEIGHTS, STAGE_C_WEIGHTS])
    def test_combine_with_itself_returns_field(self, phase_grid, weights):
        """The RK blending weights sum to one, so combining f with f gives f."""
        f = Field("f", phase_grid)
        f.data[...] = np.random.default_rng(3).uniform(0.5, 2.0, size=f.shape)
        expected = f.data.copy()
        out = Field("out", phase_grid)
        out.combine(weights[0], f, weights[1], f)
        np.testing.assert_allclose(out.data, expected, rtol=1e-15, atol=0.0)
        f.combine(weights[0], f, weights[1], f)
        np.testing.assert_allclose(f.data, expected, rtol=1e-15, atol=0.0)

    def test_combine_aliased_output(self, conf_grid):
        """The target may be one of the operands."""
        a = Field("a", conf_grid).clear(3.0)
        b = Field("b", conf_grid).clear(6.0)
        a.combine(1.0 / 3.0, a, 2.0 / 3.0, b)
        np.testing.assert_allclose(a.data, 5.0)

    def test_accumulate_opposite_charges_is_exactly_zero(self, conf_grid):
        """q*m + (-q)*m cancels exactly after a clear."""
        m = Field("m", conf_grid, 3)
        m.interior[...] = np.random.default_rng(0).normal(size=m.interior.shape)
        j = Field("j", conf_grid, 3)
        j.clear()
        j.accumulate(-1.0, m)
        j.accumulate(1.0, m)
        assert np.all(j.data == 0.0)


# ====================================================
# Boundary conditions
# ====================================================


class TestBoundaryFill:
    """Tests for ghost-cell fills."""

    def test_copy_bc(self, conf_grid):
        f = Field("f", conf_grid, 1, (2, 1))
        f.interior[:, 0] = np.arange(8.0)
        f.apply_copy_bc(0, "lower")
        f.apply_copy_bc(0, "upper")
        np.testing.assert_array_equal(f.data[:2, 0], [0.0, 0.0])
        assert f.data[-1, 0] == 7.0

    def test_periodic_bc(self, conf_grid):
        f = Field("f", conf_grid)
        f.interior[:, 0] = np.arange(8.0)
        f.apply_periodic_bc()
        assert f.data[0, 0] == 7.0
        assert f.data[-1, 0] == 0.0

    def test_velocity_axis_rejected(self, phase_grid):
        with pytest.raises(ValueError, match="configuration axis"):
            Field("f", phase_grid).apply_copy_bc(1, "lower")

    def test_bad_side_rejected(self, conf_grid):
        with pytest.raises(ValueError, match="side"):
            Field("f", conf_grid).apply_copy_bc(0, "left")


# ====================================================
# Output
# ====================================================


class TestFieldWrite:
    """Tests for HDF5 frame output."""

    def test_write_interior_and_attrs(self, conf_grid, tmp_path):
        f = Field("em", conf_grid, 8)
        f.interior[..., 5] = 1.5
        path = f.write(tmp_path / "em_3.h5", time=1.25, frame=3)
        with h5py.File(path, "r") as h:
            assert h["data"].shape == (8, 8)
            assert h.attrs["time"] == 1.25
            assert h.attrs["frame"] == 3
            assert h.attrs["name"] == "em"
            np.testing.assert_array_equal(h["data"][:, 5], 1.5)

    def test_unwritable_path_raises_output_error(self, conf_grid, tmp_path):
        f = Field("em", conf_grid, 8)
        with pytest.raises(OutputError):
            f.write(tmp_path / "missing" / "em_0.h5", time=0.0)


# ====================================================
# Groups and snapshots
# ====================================================


@pytest.fixture
def group(conf_grid, phase_grid):
    distf = Field("distfElc", phase_grid)
    em = Field("em", conf_grid, 8)
    distf.interior[...] = 1.0
    em.interior[..., 5] = 0.5
    return FieldGroup([distf, em])


class TestFieldGroup:
    """Tests for FieldGroup."""

    def test_duplicate_names_rejected(self, conf_grid):
        with pytest.raises(ValueError, match="duplicate"):
            FieldGroup([Field("a", conf_grid), Field("a", conf_grid)])

    def test_duplicate_keeps_member_names(self, group):
        dup = group.duplicate(suffix="1")
        assert dup.names == group.names
        assert dup["em"].name == "em1"
        np.testing.assert_array_equal(dup["em"].data, group["em"].data)

    def test_combine_members(self, group):
        other = group.duplicate()
        other["distfElc"].clear(3.0)
        out = group.duplicate()
        out.combine(0.5, group, 0.5, other)
        np.testing.assert_allclose(out["distfElc"].interior, 2.0)

    def test_incompatible_groups_rejected(self, group, conf_grid):
        with pytest.raises(FieldContractError):
            group.copy(FieldGroup([Field("em", conf_grid, 8)]))


class TestSnapshot:
    """Tests for rollback snapshots."""

    def test_restore_is_bit_exact(self, group):
        before = {n: f.data.copy() for n, f in group.items()}
        snap = Snapshot(group)
        snap.capture(group, 0.5)
        for f in group.values():
            f.data[...] = np.nan
        snap.restore(group)
        for name, f in group.items():
            np.testing.assert_array_equal(f.data, before[name])
        assert snap.time == 0.5

    def test_snapshot_is_read_only(self, group):
        snap = Snapshot(group)
        snap.capture(group, 0.0)
        with pytest.raises(ValueError):
            snap.fields["em"].data[0, 0] = 1.0

    def test_capture_overwrites_previous(self, group):
        snap = Snapshot(group)
        snap.capture(group, 0.0)
        group["em"].clear(7.0)
        snap.capture(group, 1.0)
        assert np.all(snap.fields["em"].data == 7.0)

    def test_restore_without_capture_raises(self, group):
        snap = Snapshot(group)
        with pytest.raises(RuntimeError):
            snap.restore(group)
        snap.capture(group, 0.0)
        snap.discard()
        assert not snap.is_valid
        with pytest.raises(RuntimeError):
            snap.restore(group)
