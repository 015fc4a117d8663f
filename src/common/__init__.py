"""
Common modules: configuration, guide curves, errors, I/O and mesh utilities.
"""

from .config import Config, SubdivisionParams, MeshMetadata
from .curve import GuideCurve
from .errors import SubdivisionError, OpenBoundaryError, DegenerateInputError, InvalidRangeError
from .io import load_curve, save_curve, save_mesh, save_cells, load_mesh
from .mesh_ops import compute_mesh_stats, merge_meshes, cells_to_mesh

__all__ = [
    'Config', 'SubdivisionParams', 'MeshMetadata',
    'GuideCurve',
    'SubdivisionError', 'OpenBoundaryError', 'DegenerateInputError', 'InvalidRangeError',
    'load_curve', 'save_curve', 'save_mesh', 'save_cells', 'load_mesh',
    'compute_mesh_stats', 'merge_meshes', 'cells_to_mesh',
]
