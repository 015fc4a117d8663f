#!/usr/bin/env python3
"""
Cube Subdivision - Orchestrator

Run curve-guided cube subdivision on one or more guide curves.

Usage:
    python src/run_all.py --curve data/curves/spiral.csv --loops 4 --seed 7
    python src/run_all.py --curve-dir data/curves --config config.json -o outputs
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional
from datetime import datetime

# Add src to path
sys.path.insert(0, str(Path(__file__).parent))

from common.config import Config
from common.errors import InvalidRangeError
from common.io import load_curve, save_mesh, save_cell_corners
from cube_subdivision.build import build_subdivided_cube

logger = logging.getLogger(__name__)


def find_curve_files(curve_dir: Path, limit: Optional[int] = None) -> List[Path]:
    """Find curve tables (*.csv, *.parquet) under a directory."""
    files = sorted(list(curve_dir.glob("**/*.csv")) + list(curve_dir.glob("**/*.parquet")))

    if limit:
        files = files[:limit]

    logger.info(f"Found {len(files)} curve files")
    return files


def run_curve(curve_file: Path, config: Config, output_dir: Path) -> dict:
    """Build and save the cell cloud for one curve file."""
    specimen_id = curve_file.stem
    curve = load_curve(curve_file)

    mesh, metadata, stats = build_subdivided_cube(curve, config, specimen_id=specimen_id)

    output_path = output_dir / "meshes" / f"{specimen_id}.{config.mesh_format}"
    save_mesh(mesh, output_path, metadata)
    save_cell_corners(stats["cells"], output_dir / "cells" / f"{specimen_id}_cells.json")

    return metadata.to_dict()


def run_all(curve_files: List[Path], config: Config, output_dir: Path) -> dict:
    """
    Run the build on every curve file.

    Errors in one curve are recorded and the remaining curves still run.

    Returns:
        Summary dictionary
    """
    summary = {
        "timestamp": datetime.now().isoformat(),
        "config": config.to_dict(),
        "specimens": [],
        "errors": []
    }

    for curve_file in curve_files:
        specimen_id = curve_file.stem
        logger.info(f"\n{'='*60}")
        logger.info(f"Processing: {specimen_id}")
        logger.info(f"{'='*60}")

        try:
            result = run_curve(curve_file, config, output_dir)
            summary["specimens"].append({
                "specimen_id": specimen_id,
                "curve_file": str(curve_file),
                "status": "success",
                "metadata": result
            })
        except Exception as e:
            logger.error(f"Failed on {specimen_id}: {type(e).__name__}: {e}")
            summary["specimens"].append({
                "specimen_id": specimen_id,
                "curve_file": str(curve_file),
                "status": "error",
                "error": str(e)
            })
            summary["errors"].append({
                "specimen": specimen_id,
                "error_type": type(e).__name__,
                "error": str(e)
            })

    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Cube Subdivision - grow cells around guide curves"
    )
    parser.add_argument(
        "--curve", "-c",
        type=Path,
        help="Specific curve file to process"
    )
    parser.add_argument(
        "--curve-dir",
        type=Path,
        default=Path("data/curves"),
        help="Directory to search for curve files"
    )
    parser.add_argument(
        "--limit", "-n",
        type=int,
        default=None,
        help="Maximum number of curves to process"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file (command-line values override it)"
    )
    parser.add_argument("--subdiv-dist", type=float, default=None, help="Subdivision distance threshold")
    parser.add_argument("--subdiv-random-rate", type=float, default=None, help="Subdivision noise rate [0, 1]")
    parser.add_argument("--reduce-dist", type=float, default=None, help="Reduction distance threshold")
    parser.add_argument("--reduce-random-rate", type=float, default=None, help="Reduction noise rate [0, 1]")
    parser.add_argument("--loops", "-l", type=int, default=None, help="Number of rounds")
    parser.add_argument("--seed", "-s", type=int, default=None, help="Random seed (omit for an unseeded run)")
    parser.add_argument("--workers", "-w", type=int, default=None, help="Threads for per-cell evaluation")
    parser.add_argument("--deadline", type=float, default=None, help="Stop between rounds after this many seconds")
    parser.add_argument("--cube-size", type=float, default=None, help="Initial cube edge length")
    parser.add_argument(
        "--format",
        choices=["glb", "stl", "obj", "ply"],
        default=None,
        help="Mesh output format"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        default=None,
        help="Output directory"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose logging"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    """Config file (if any) overlaid with explicit command-line values."""
    config = Config.from_json(args.config) if args.config else Config()

    overrides = {
        "subdiv_dist": args.subdiv_dist,
        "subdiv_random_rate": args.subdiv_random_rate,
        "reduce_dist": args.reduce_dist,
        "reduce_random_rate": args.reduce_random_rate,
        "loops": args.loops,
        "seed": args.seed,
        "workers": args.workers,
        "deadline_s": args.deadline,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config.params, name, value)

    if args.cube_size is not None:
        config.cube_size = args.cube_size
    if args.format is not None:
        config.mesh_format = args.format
    if args.output is not None:
        config.output_dir = args.output

    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )

    config = config_from_args(args)
    try:
        config.params.validate()
    except InvalidRangeError as e:
        logger.error(f"Invalid parameters: {e}")
        return 2

    if args.curve:
        curve_files = [args.curve]
    else:
        curve_files = find_curve_files(args.curve_dir, args.limit)

    if not curve_files:
        logger.error("No curve files found!")
        return 1

    output_dir = config.output_dir
    logger.info(f"Processing {len(curve_files)} curves")
    logger.info(f"Params: {config.params.to_dict()}")
    logger.info(f"Output: {output_dir}")

    summary = run_all(curve_files, config, output_dir)

    summary_path = output_dir / "run_summary.json"
    summary_path.parent.mkdir(parents=True, exist_ok=True)
    with open(summary_path, 'w') as f:
        json.dump(summary, f, indent=2)

    logger.info(f"\nSummary saved to: {summary_path}")

    n_success = sum(1 for s in summary["specimens"] if s["status"] == "success")
    n_errors = len(summary["errors"])

    logger.info(f"\n{'='*60}")
    logger.info(f"COMPLETE: {n_success} successful, {n_errors} errors")
    logger.info(f"{'='*60}")

    return 1 if n_errors > 0 else 0


if __name__ == "__main__":
    sys.exit(main())
