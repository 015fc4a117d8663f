"""
Tests for the command-line orchestrator.
"""

import json
import pytest
import numpy as np
import pandas as pd
from pathlib import Path
import sys

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from run_all import main, build_parser, config_from_args, find_curve_files, run_all
from common.config import Config, SubdivisionParams


@pytest.fixture
def curve_dir(tmp_path):
    """Directory with two small curve tables."""
    d = tmp_path / "curves"
    d.mkdir()
    t = np.linspace(0, 2 * np.pi, 30)
    pd.DataFrame({"x": np.cos(t), "y": np.sin(t), "z": t / np.pi - 1.0}).to_csv(d / "spiral.csv", index=False)
    pd.DataFrame({"x": [-1.0, 1.0], "y": [0.0, 0.0], "z": [0.0, 0.0]}).to_csv(d / "line.csv", index=False)
    return d


class TestConfigFromArgs:
    """Test command-line overrides."""

    def test_overrides(self):
        args = build_parser().parse_args([
            "--loops", "4", "--seed", "9", "--subdiv-dist", "1.5",
            "--reduce-random-rate", "0.2", "--format", "stl", "-o", "out",
        ])
        config = config_from_args(args)
        assert config.params.loops == 4
        assert config.params.seed == 9
        assert config.params.subdiv_dist == 1.5
        assert config.params.reduce_random_rate == 0.2
        assert config.mesh_format == "stl"
        assert config.output_dir == Path("out")

    def test_config_file_then_overrides(self, tmp_path):
        path = tmp_path / "config.json"
        Config(params=SubdivisionParams(loops=7, reduce_dist=0.3)).save(path)
        args = build_parser().parse_args(["--config", str(path), "--loops", "2"])
        config = config_from_args(args)
        assert config.params.loops == 2
        assert config.params.reduce_dist == 0.3


class TestRunAll:
    """Test running the orchestrator end to end."""

    def test_find_curve_files(self, curve_dir):
        files = find_curve_files(curve_dir)
        assert [f.name for f in files] == ["line.csv", "spiral.csv"]
        assert len(find_curve_files(curve_dir, limit=1)) == 1

    def test_main_single_curve(self, curve_dir, tmp_path):
        out = tmp_path / "out"
        code = main([
            "--curve", str(curve_dir / "spiral.csv"),
            "--loops", "2", "--seed", "1", "--subdiv-dist", "0.8",
            "--reduce-dist", "0.02", "--format", "stl", "-o", str(out),
        ])
        assert code == 0
        assert (out / "meshes" / "spiral.stl").exists()
        assert (out / "meshes" / "spiral.json").exists()
        assert (out / "cells" / "spiral_cells.json").exists()

        summary = json.loads((out / "run_summary.json").read_text())
        assert summary["errors"] == []
        assert summary["specimens"][0]["status"] == "success"
        assert summary["specimens"][0]["metadata"]["generation_params"]["seed"] == 1

    def test_main_directory(self, curve_dir, tmp_path):
        out = tmp_path / "out"
        code = main(["--curve-dir", str(curve_dir), "--loops", "1", "--seed", "3", "--reduce-dist", "-1",
                     "--format", "stl", "-o", str(out)])
        assert code == 0
        assert len(list((out / "meshes").glob("*.stl"))) == 2

    def test_invalid_rate(self, curve_dir, tmp_path):
        code = main(["--curve", str(curve_dir / "line.csv"), "--subdiv-random-rate", "1.5",
                     "-o", str(tmp_path / "out")])
        assert code == 2

    def test_no_curves(self, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        assert main(["--curve-dir", str(empty), "-o", str(tmp_path / "out")]) == 1

    def test_error_recorded_and_run_continues(self, curve_dir, tmp_path):
        bad = curve_dir / "bad.csv"
        pd.DataFrame({"a": [1.0, 2.0]}).to_csv(bad, index=False)

        config = Config(params=SubdivisionParams(loops=1, seed=0, reduce_dist=-1.0), mesh_format="stl")
        summary = run_all(find_curve_files(curve_dir), config, tmp_path / "out")

        statuses = {s["specimen_id"]: s["status"] for s in summary["specimens"]}
        assert statuses == {"bad": "error", "line": "success", "spiral": "success"}
        assert summary["errors"][0]["error_type"] == "ValueError"
