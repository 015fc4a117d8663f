"""Curve-guided stochastic cube subdivision."""

from .build import build_subdivided_cube, initial_cube_for_curve
from .corners import reflect
from .loop import SubdivideReduceLoop, RoundStats, make_rng, run
from .metrics import distance_to_curve, cell_volume, volume_factor
from .solid import HexCell, build_cell, build_face_from_3_points, join_faces, mass_properties
from .subdivide import subdivide_cell

__all__ = [
    "build_subdivided_cube", "initial_cube_for_curve",
    "reflect",
    "SubdivideReduceLoop", "RoundStats", "make_rng", "run",
    "distance_to_curve", "cell_volume", "volume_factor",
    "HexCell", "build_cell", "build_face_from_3_points", "join_faces", "mass_properties",
    "subdivide_cell",
]
