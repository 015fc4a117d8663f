"""
Data I/O utilities.

Loads guide curves from point tables and saves cell meshes with metadata.
Curve tables hold one point per row with x, y, z columns (x_m, y_m, z_m
also accepted), optionally ordered by a t / t_seconds column.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from .config import MeshMetadata
from .curve import GuideCurve
from .mesh_ops import cells_to_mesh

logger = logging.getLogger(__name__)

try:
    import pandas as pd
    PANDAS_AVAILABLE = True
except ImportError:
    PANDAS_AVAILABLE = False
    logger.warning("pandas not available")

try:
    import trimesh
    TRIMESH_AVAILABLE = True
except ImportError:
    TRIMESH_AVAILABLE = False
    logger.warning("trimesh not available")


def load_curve(
    path: Union[str, Path],
    resample_distance: Optional[float] = None
) -> GuideCurve:
    """
    Load a guide curve from a CSV or parquet file.

    Args:
        path: Path to data file
        resample_distance: Optional target spacing between curve points

    Returns:
        GuideCurve through the table's points
    """
    if not PANDAS_AVAILABLE:
        raise ImportError("pandas required for loading curves")

    path = Path(path)
    if path.suffix == '.parquet':
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path)

    logger.info(f"Loaded {len(df)} points from {path}")

    def find_col(candidates: List[str]) -> Optional[str]:
        for c in candidates:
            if c in df.columns:
                return c
        return None

    x_col = find_col(['x', 'x_m', 'X'])
    y_col = find_col(['y', 'y_m', 'Y'])
    z_col = find_col(['z', 'z_m', 'Z'])
    order_col = find_col(['t', 't_seconds', 'time', 'index'])

    if not x_col or not y_col:
        raise ValueError(f"Could not find x/y columns in {df.columns.tolist()}")

    if order_col:
        df = df.sort_values(order_col, kind='stable')

    x = df[x_col].to_numpy(dtype=float)
    y = df[y_col].to_numpy(dtype=float)
    z = df[z_col].to_numpy(dtype=float) if z_col else np.zeros(len(df))

    curve = GuideCurve(np.column_stack([x, y, z]))
    if resample_distance:
        curve = curve.resample(resample_distance)

    logger.info(f"Curve: {curve.n_points} points, length {curve.length:.3f}")
    return curve


def save_curve(curve: GuideCurve, path: Union[str, Path]) -> None:
    """Write curve points as a CSV with t, x, y, z columns."""
    if not PANDAS_AVAILABLE:
        raise ImportError("pandas required for saving curves")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pts = curve.points
    pd.DataFrame({
        't': np.arange(len(pts)),
        'x': pts[:, 0],
        'y': pts[:, 1],
        'z': pts[:, 2],
    }).to_csv(path, index=False)


def save_mesh(
    mesh: "trimesh.Trimesh",
    path: Path,
    metadata: MeshMetadata
) -> None:
    """
    Save mesh with metadata sidecar.

    Args:
        mesh: Trimesh mesh object
        path: Output path (format from suffix: .glb, .stl, .obj, .ply)
        metadata: MeshMetadata object (will be saved as .json sidecar)
    """
    if not TRIMESH_AVAILABLE:
        raise ImportError("trimesh required for saving meshes")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    mesh.export(str(path))
    logger.info(f"Saved mesh: {path} ({metadata.n_vertices} verts, {metadata.n_triangles} tris)")

    meta_path = path.with_suffix('.json')
    metadata.save(meta_path)
    logger.info(f"Saved metadata: {meta_path}")


def save_cells(cells: list, path: Path, metadata: MeshMetadata) -> "trimesh.Trimesh":
    """Merge cells into one mesh and save it with its sidecar."""
    mesh = cells_to_mesh(cells)
    save_mesh(mesh, path, metadata)
    return mesh


def save_cell_corners(cells: list, path: Path) -> None:
    """Write each cell's 8 corners and 6 quads as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "n_cells": len(cells),
        "cells": [
            {"vertices": cell.vertices.tolist(), "faces": cell.faces.tolist()}
            for cell in cells
        ]
    }
    with open(path, 'w') as f:
        json.dump(data, f)
    logger.info(f"Saved {len(cells)} cells: {path}")


def load_cell_corners(path: Path) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Read (vertices, faces) pairs written by save_cell_corners."""
    with open(path) as f:
        data = json.load(f)
    return [
        (np.asarray(c["vertices"], dtype=np.float64), np.asarray(c["faces"], dtype=np.int64))
        for c in data["cells"]
    ]


def load_mesh(path: Path) -> Tuple["trimesh.Trimesh", Optional[MeshMetadata]]:
    """
    Load mesh and its metadata sidecar.

    Args:
        path: Path to mesh file

    Returns:
        Tuple of (mesh, metadata) - metadata may be None if not found
    """
    if not TRIMESH_AVAILABLE:
        raise ImportError("trimesh required for loading meshes")

    path = Path(path)
    mesh = trimesh.load(str(path), force='mesh')

    meta_path = path.with_suffix('.json')
    metadata = None
    if meta_path.exists():
        with open(meta_path) as f:
            metadata = MeshMetadata.from_dict(json.load(f))

    return mesh, metadata
