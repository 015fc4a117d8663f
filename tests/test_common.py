"""
Tests for common modules: guide curve, config, I/O, mesh utilities.
"""

import json
import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from common.config import Config, SubdivisionParams, MeshMetadata, JOIN_TOLERANCE
from common.curve import GuideCurve
from common.errors import DegenerateInputError, InvalidRangeError, SubdivisionError, OpenBoundaryError
from common.io import (
    load_curve,
    save_curve,
    save_cells,
    save_cell_corners,
    load_cell_corners,
    load_mesh,
)
from common.mesh_ops import compute_mesh_stats, merge_meshes, cells_to_mesh, total_volume
from cube_subdivision.solid import HexCell
from cube_subdivision.subdivide import subdivide_cell


# ============== Fixtures ==============

@pytest.fixture
def l_curve():
    """L-shaped polyline: 4 units along X then 3 along Y."""
    return GuideCurve(np.array([[0.0, 0.0, 0.0], [4.0, 0.0, 0.0], [4.0, 3.0, 0.0]]))


@pytest.fixture
def children():
    return subdivide_cell(HexCell.box((0, 0, 0), 2.0))


# ============== GuideCurve Tests ==============

class TestGuideCurve:
    """Test polyline closest-point queries."""

    def test_length(self, l_curve):
        assert l_curve.length == pytest.approx(7.0)

    def test_closest_point_interior(self, l_curve):
        t, p = l_curve.closest_point([2.0, 1.0, 5.0])
        np.testing.assert_allclose(p, [2.0, 0.0, 0.0])
        assert t == pytest.approx(2.0 / 7.0)

    def test_closest_point_second_segment(self, l_curve):
        t, p = l_curve.closest_point([6.0, 1.5, 0.0])
        np.testing.assert_allclose(p, [4.0, 1.5, 0.0])
        assert t == pytest.approx(5.5 / 7.0)

    def test_closest_point_clamped_to_ends(self, l_curve):
        t, p = l_curve.closest_point([-3.0, -1.0, 0.0])
        np.testing.assert_allclose(p, [0.0, 0.0, 0.0])
        assert t == 0.0

    def test_point_at_matches_closest(self, l_curve):
        t, p = l_curve.closest_point([3.0, 2.0, 0.0])
        np.testing.assert_allclose(l_curve.point_at(t), p, atol=1e-12)

    def test_point_at_ends(self, l_curve):
        np.testing.assert_allclose(l_curve.point_at(0.0), [0, 0, 0])
        np.testing.assert_allclose(l_curve.point_at(1.0), [4, 3, 0])
        np.testing.assert_allclose(l_curve.point_at(2.0), [4, 3, 0])

    def test_distance_to(self, l_curve):
        assert l_curve.distance_to([2.0, -2.0, 0.0]) == pytest.approx(2.0)

    def test_line(self):
        curve = GuideCurve.line([0, 0, 0], [0, 0, 5])
        assert curve.n_points == 2
        assert curve.distance_to([1.0, 0.0, 2.0]) == pytest.approx(1.0)

    def test_duplicate_points_dropped(self):
        curve = GuideCurve(np.array([[0, 0, 0], [0, 0, 0], [1, 0, 0], [1, 0, 0]]))
        assert curve.n_points == 2

    def test_degenerate_curve(self):
        with pytest.raises(DegenerateInputError):
            GuideCurve(np.array([[1.0, 1.0, 1.0], [1.0, 1.0, 1.0]]))

    def test_bad_shape(self):
        with pytest.raises(ValueError):
            GuideCurve(np.zeros((5, 2)))

    def test_points_read_only(self, l_curve):
        with pytest.raises(ValueError):
            l_curve.points[0, 0] = 1.0

    def test_resample(self, l_curve):
        resampled = l_curve.resample(0.5)
        assert resampled.n_points == 14
        assert resampled.length == pytest.approx(l_curve.length, rel=0.05)

    def test_resample_coarser_than_curve(self, l_curve):
        assert l_curve.resample(100.0) is l_curve


# ============== Config Tests ==============

class TestSubdivisionParams:
    """Test loop parameter validation and serialization."""

    def test_defaults_valid(self):
        params = SubdivisionParams()
        params.validate()
        assert params.volume_exponent == 0.2
        assert params.join_tolerance == JOIN_TOLERANCE
        assert params.seed is None

    @pytest.mark.parametrize("field,value", [
        ("subdiv_random_rate", -0.5),
        ("reduce_random_rate", 1.5),
        ("loops", -1),
        ("workers", 0),
        ("join_tolerance", 0.0),
        ("deadline_s", -1.0),
    ])
    def test_out_of_range(self, field, value):
        params = SubdivisionParams(**{field: value})
        with pytest.raises(InvalidRangeError):
            params.validate()

    def test_rate_bounds_inclusive(self):
        SubdivisionParams(subdiv_random_rate=0.0, reduce_random_rate=1.0).validate()

    def test_round_trip(self):
        params = SubdivisionParams(subdiv_dist=3.0, loops=5, seed=12)
        assert SubdivisionParams.from_dict(params.to_dict()) == params


class TestConfig:
    """Test configuration persistence."""

    def test_json_round_trip(self, tmp_path):
        config = Config(
            cube_center=[1.0, 2.0, 3.0],
            cube_size=4.0,
            params=SubdivisionParams(loops=2, seed=7),
            output_dir=tmp_path / "out",
        )
        path = tmp_path / "config.json"
        config.save(path)

        loaded = Config.from_json(path)
        assert loaded.cube_center == [1.0, 2.0, 3.0]
        assert loaded.cube_size == 4.0
        assert loaded.params.loops == 2
        assert loaded.params.seed == 7
        assert loaded.output_dir == tmp_path / "out"

    def test_partial_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"params": {"loops": 6}}))
        loaded = Config.from_json(path)
        assert loaded.params.loops == 6
        assert loaded.params.subdiv_dist == SubdivisionParams().subdiv_dist
        assert loaded.output_dir == Path("outputs")

    def test_output_path(self, tmp_path):
        config = Config(output_dir=tmp_path, mesh_format="stl")
        assert config.get_output_path("spiral") == tmp_path / "meshes" / "spiral.stl"


class TestErrors:
    """Test the error hierarchy."""

    def test_hierarchy(self):
        assert issubclass(OpenBoundaryError, SubdivisionError)
        assert issubclass(DegenerateInputError, ValueError)
        assert issubclass(InvalidRangeError, ValueError)

    def test_open_boundary_fields(self):
        err = OpenBoundaryError("gap", tolerance=0.01, n_corners=9)
        assert str(err) == "gap"
        assert err.tolerance == 0.01
        assert err.n_corners == 9


# ============== I/O Tests ==============

class TestLoadCurve:
    """Test reading curve tables."""

    def test_csv(self, tmp_path):
        path = tmp_path / "curve.csv"
        pd.DataFrame({"x": [0.0, 1.0, 2.0], "y": [0.0, 1.0, 0.0], "z": [0.0, 0.0, 1.0]}).to_csv(path, index=False)
        curve = load_curve(path)
        assert curve.n_points == 3
        np.testing.assert_allclose(curve.points[-1], [2, 0, 1])

    def test_meter_columns_sorted_by_time(self, tmp_path):
        path = tmp_path / "track.csv"
        pd.DataFrame({
            "t_seconds": [20.0, 0.0, 10.0],
            "x_m": [2.0, 0.0, 1.0],
            "y_m": [0.0, 0.0, 0.0],
            "z_m": [0.0, 0.0, 0.0],
        }).to_csv(path, index=False)
        curve = load_curve(path)
        np.testing.assert_allclose(curve.points[:, 0], [0.0, 1.0, 2.0])

    def test_missing_z_is_planar(self, tmp_path):
        path = tmp_path / "flat.csv"
        pd.DataFrame({"x": [0.0, 3.0], "y": [0.0, 4.0]}).to_csv(path, index=False)
        curve = load_curve(path)
        assert curve.length == pytest.approx(5.0)

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "bad.csv"
        pd.DataFrame({"a": [0.0, 1.0], "b": [0.0, 1.0]}).to_csv(path, index=False)
        with pytest.raises(ValueError):
            load_curve(path)

    def test_resample_on_load(self, tmp_path):
        path = tmp_path / "line.csv"
        pd.DataFrame({"x": [0.0, 10.0], "y": [0.0, 0.0], "z": [0.0, 0.0]}).to_csv(path, index=False)
        assert load_curve(path, resample_distance=1.0).n_points == 10

    def test_save_curve_round_trip(self, tmp_path, l_curve):
        path = tmp_path / "l.csv"
        save_curve(l_curve, path)
        np.testing.assert_allclose(load_curve(path).points, l_curve.points)


class TestSaveCells:
    """Test mesh export with metadata sidecars."""

    def test_save_and_load_mesh(self, tmp_path, children):
        metadata = MeshMetadata(
            specimen_id="cube",
            n_cells=len(children),
            n_triangles=12 * len(children),
            n_vertices=8 * len(children),
            total_volume=total_volume(children),
        )
        path = tmp_path / "meshes" / "cube.stl"
        mesh = save_cells(children, path, metadata)

        assert path.exists()
        assert path.with_suffix(".json").exists()
        assert len(mesh.faces) == 96

        loaded, loaded_meta = load_mesh(path)
        assert len(loaded.faces) == 96
        assert loaded_meta.n_cells == 8
        assert loaded_meta.total_volume == pytest.approx(8.0)

    def test_load_mesh_without_sidecar(self, tmp_path):
        path = tmp_path / "single.stl"
        HexCell.box().to_trimesh().export(str(path))
        mesh, metadata = load_mesh(path)
        assert metadata is None
        assert mesh.volume == pytest.approx(1.0)

    def test_cell_corners_round_trip(self, tmp_path, children):
        path = tmp_path / "cells.json"
        save_cell_corners(children, path)
        loaded = load_cell_corners(path)
        assert len(loaded) == 8
        for (vertices, faces), cell in zip(loaded, children):
            rebuilt = HexCell(vertices, faces)
            assert rebuilt.volume == pytest.approx(cell.volume)


# ============== Mesh Ops Tests ==============

class TestMeshOps:
    """Test mesh statistics and merging."""

    def test_stats_single_cell(self):
        stats = compute_mesh_stats(HexCell.box((0, 0, 0), 2.0).to_trimesh())
        assert stats["n_faces"] == 12
        assert stats["is_watertight"] is True
        assert stats["volume"] == pytest.approx(8.0)
        assert stats["max_extent"] == pytest.approx(2.0)

    def test_stats_empty(self):
        stats = compute_mesh_stats(merge_meshes([]))
        assert stats["n_vertices"] == 0
        assert stats["volume"] == 0.0

    def test_cells_to_mesh(self, children):
        mesh = cells_to_mesh(children)
        assert len(mesh.faces) == 12 * 8
        assert len(mesh.vertices) == 8 * 8

    def test_total_volume(self, children):
        assert total_volume(children) == pytest.approx(8.0)
        assert total_volume([]) == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
