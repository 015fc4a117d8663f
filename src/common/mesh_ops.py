"""
Mesh operation utilities.

Statistics and merging for cell meshes.
"""

import numpy as np
from typing import Dict, Any, Iterable
import logging

logger = logging.getLogger(__name__)

try:
    import trimesh
    TRIMESH_AVAILABLE = True
except ImportError:
    TRIMESH_AVAILABLE = False


def compute_mesh_stats(mesh: "trimesh.Trimesh") -> Dict[str, Any]:
    """
    Compute mesh statistics.

    Args:
        mesh: Trimesh mesh object

    Returns:
        Dictionary of mesh statistics
    """
    if len(mesh.vertices) == 0:
        return {
            "n_vertices": 0,
            "n_faces": 0,
            "bounds": None,
            "extents": [0.0, 0.0, 0.0],
            "max_extent": 0.0,
            "volume": 0.0,
            "surface_area": 0.0,
            "is_watertight": False,
        }

    bounds = mesh.bounds
    extents = mesh.extents

    return {
        "n_vertices": len(mesh.vertices),
        "n_faces": len(mesh.faces),
        "bounds": {
            "min": bounds[0].tolist(),
            "max": bounds[1].tolist()
        },
        "extents": extents.tolist(),
        "max_extent": float(max(extents)),
        "volume": float(mesh.volume) if mesh.is_watertight else None,
        "surface_area": float(mesh.area),
        "is_watertight": bool(mesh.is_watertight),
    }


def merge_meshes(meshes: list) -> "trimesh.Trimesh":
    """
    Merge multiple meshes into one.

    Args:
        meshes: List of trimesh meshes

    Returns:
        Combined mesh
    """
    if not TRIMESH_AVAILABLE:
        raise ImportError("trimesh required for mesh merging")

    if not meshes:
        return trimesh.Trimesh()

    if len(meshes) == 1:
        return meshes[0].copy()

    combined = trimesh.util.concatenate(meshes)
    logger.info(f"Merged {len(meshes)} meshes: {len(combined.vertices)} verts, {len(combined.faces)} faces")

    return combined


def cells_to_mesh(cells: Iterable) -> "trimesh.Trimesh":
    """One mesh holding every cell as a separate closed body."""
    return merge_meshes([cell.to_trimesh() for cell in cells])


def total_volume(cells: Iterable) -> float:
    """Sum of cell volumes."""
    return float(np.sum([cell.volume for cell in cells]))
