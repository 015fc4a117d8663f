"""
Hexahedral cells and the solid builder.

A cell is 8 corners plus 6 outward-oriented quad faces. Edges are derived
from the faces, so corner/edge adjacency is a property of the solid and not
of any particular corner ordering.

Building a child cell:
1. Derive the three opposite-face corners by point reflection
2. Build six quads, each from three known points (fourth by reflection)
3. Weld the quads within a tolerance into one closed solid
"""

import logging
from typing import Sequence, Tuple

import numpy as np
import trimesh
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from common.config import JOIN_TOLERANCE, DEGENERATE_VOLUME_EPS
from common.errors import OpenBoundaryError
from .corners import reflect, parallelepiped_corners

logger = logging.getLogger(__name__)

# Quads of a binary-ordered hexahedron (see corners.py)
BOX_FACES = np.array([
    [0, 2, 3, 1],  # k = 0
    [4, 5, 7, 6],  # k = 1
    [0, 1, 5, 4],  # j = 0
    [2, 6, 7, 3],  # j = 1
    [0, 4, 6, 2],  # i = 0
    [1, 3, 7, 5],  # i = 1
], dtype=np.int64)


def _edges_from_faces(faces: np.ndarray) -> np.ndarray:
    """Unique sorted (a, b) edges of a quad mesh."""
    pairs = np.concatenate([
        np.column_stack([faces[:, k], faces[:, (k + 1) % 4]]) for k in range(4)
    ])
    return np.unique(np.sort(pairs, axis=1), axis=0)


def _orient_faces(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Flip quads whose normal points toward the cell center."""
    center = vertices.mean(axis=0)
    oriented = faces.copy()
    for i, quad in enumerate(faces):
        p = vertices[quad]
        normal = np.cross(p[2] - p[0], p[3] - p[1])
        if np.dot(normal, p.mean(axis=0) - center) < 0:
            oriented[i] = quad[::-1]
    return oriented


class HexCell:
    """
    Closed hexahedral cell.

    Args:
        vertices: 8x3 corner points
        faces: 6x4 quad indices into vertices (outward oriented)
    """

    def __init__(self, vertices: np.ndarray, faces: np.ndarray = BOX_FACES):
        vertices = np.array(vertices, dtype=np.float64)
        faces = np.array(faces, dtype=np.int64)
        if vertices.shape != (8, 3):
            raise ValueError(f"HexCell needs 8x3 vertices, got {vertices.shape}")
        if faces.shape != (6, 4):
            raise ValueError(f"HexCell needs 6x4 faces, got {faces.shape}")

        edges = _edges_from_faces(faces)
        if len(edges) != 12:
            raise ValueError(f"Faces do not form a hexahedron ({len(edges)} edges)")

        vertices.setflags(write=False)
        faces.setflags(write=False)
        edges.setflags(write=False)
        self._vertices = vertices
        self._faces = faces
        self._edges = edges

    @classmethod
    def from_corners(cls, corners) -> "HexCell":
        """Cell from 8 corners in binary order (see corners.py)."""
        corners = np.asarray(corners, dtype=np.float64)
        return cls(corners, _orient_faces(corners, BOX_FACES))

    @classmethod
    def from_parallelepiped(cls, origin, u, v, w) -> "HexCell":
        return cls.from_corners(parallelepiped_corners(origin, u, v, w))

    @classmethod
    def from_bounds(cls, min_corner, max_corner) -> "HexCell":
        """Axis-aligned box between two corners."""
        lo = np.asarray(min_corner, dtype=np.float64)
        hi = np.asarray(max_corner, dtype=np.float64)
        ext = hi - lo
        return cls.from_parallelepiped(lo, [ext[0], 0, 0], [0, ext[1], 0], [0, 0, ext[2]])

    @classmethod
    def box(cls, center=(0.0, 0.0, 0.0), size=1.0) -> "HexCell":
        """Axis-aligned box; size is a scalar edge length or per-axis extents."""
        center = np.asarray(center, dtype=np.float64)
        half = np.broadcast_to(np.asarray(size, dtype=np.float64), (3,)) / 2.0
        return cls.from_bounds(center - half, center + half)

    @property
    def vertices(self) -> np.ndarray:
        return self._vertices

    @property
    def faces(self) -> np.ndarray:
        return self._faces

    @property
    def edges(self) -> np.ndarray:
        return self._edges

    def incident_edges(self, corner_index: int) -> Tuple[int, ...]:
        """Indices of the edges touching a corner (3 for a hexahedron)."""
        return tuple(int(e) for e in np.nonzero((self._edges == corner_index).any(axis=1))[0])

    def edge_point_at(self, edge_index: int, s: float) -> np.ndarray:
        """Point at normalized length s along an edge."""
        a, b = self._edges[edge_index]
        return (1.0 - s) * self._vertices[a] + s * self._vertices[b]

    def edge_midpoint(self, edge_index: int) -> np.ndarray:
        return self.edge_point_at(edge_index, 0.5)

    def to_trimesh(self) -> trimesh.Trimesh:
        """Closed 12-triangle mesh of the cell."""
        quads = self._faces
        triangles = np.vstack([quads[:, [0, 1, 2]], quads[:, [0, 2, 3]]])
        return trimesh.Trimesh(vertices=self._vertices.copy(), faces=triangles, process=False)

    @property
    def volume(self) -> float:
        return mass_properties(self)[0]

    @property
    def centroid(self) -> np.ndarray:
        return mass_properties(self)[1]

    def __repr__(self) -> str:
        lo = self._vertices.min(axis=0)
        hi = self._vertices.max(axis=0)
        return f"HexCell(bounds={lo.round(4).tolist()}..{hi.round(4).tolist()})"


def mass_properties(cell: HexCell) -> Tuple[float, np.ndarray]:
    """(volume, centroid) of a closed cell."""
    mesh = cell.to_trimesh()
    volume = float(mesh.volume)
    if abs(volume) < DEGENERATE_VOLUME_EPS:
        # center_mass divides by volume; fall back to the corner mean
        return max(volume, 0.0), cell.vertices.mean(axis=0)
    return volume, np.asarray(mesh.center_mass, dtype=np.float64)


def build_face_from_3_points(p, q, r) -> np.ndarray:
    """Quad p, q, s, r where s = q + r - p is the corner opposite p."""
    p = np.asarray(p, dtype=np.float64)
    q = np.asarray(q, dtype=np.float64)
    r = np.asarray(r, dtype=np.float64)
    return np.array([p, q, reflect(p, q, r), r])


def join_faces(faces: Sequence[np.ndarray], tolerance: float = JOIN_TOLERANCE) -> HexCell:
    """
    Weld six quads into one closed hexahedral cell.

    Quad vertices closer than the weld distance are merged; each welded corner
    is the mean of its members. The weld distance is `tolerance` capped at a
    quarter of the shortest quad edge, so distinct corners of a small cell are
    never merged. Corner order follows first appearance in `faces`.

    Raises:
        OpenBoundaryError: if the quads do not weld into a closed hexahedron
    """
    quads = np.asarray(faces, dtype=np.float64)
    if quads.shape != (6, 4, 3):
        raise OpenBoundaryError(f"Expected 6 quads, got array of shape {quads.shape}", tolerance=tolerance)

    points = quads.reshape(-1, 3)
    n_points = len(points)

    edge_lengths = np.linalg.norm(np.roll(quads, -1, axis=1) - quads, axis=2)
    weld = min(tolerance, 0.25 * float(edge_lengths.min()))

    pairs = cKDTree(points).query_pairs(weld, output_type='ndarray')
    graph = coo_matrix(
        (np.ones(len(pairs)), (pairs[:, 0], pairs[:, 1])),
        shape=(n_points, n_points)
    )
    n_corners, labels = connected_components(graph, directed=False)

    if n_corners != 8:
        raise OpenBoundaryError(
            f"Faces welded into {n_corners} corners instead of 8 at distance {weld:.3g}",
            tolerance=tolerance,
            n_corners=n_corners
        )

    counts = np.bincount(labels, minlength=8)
    vertices = np.zeros((8, 3))
    np.add.at(vertices, labels, points)
    vertices /= counts[:, np.newaxis]

    face_idx = labels.reshape(6, 4)
    if any(len(set(quad.tolist())) != 4 for quad in face_idx):
        raise OpenBoundaryError("A face collapsed while welding", tolerance=tolerance, n_corners=n_corners)

    try:
        cell = HexCell(vertices, _orient_faces(vertices, face_idx))
    except ValueError as e:
        raise OpenBoundaryError(f"Faces do not close: {e}", tolerance=tolerance, n_corners=n_corners) from e

    mesh = cell.to_trimesh()
    if not mesh.is_watertight:
        raise OpenBoundaryError("Joined faces are not watertight", tolerance=tolerance, n_corners=n_corners)
    if mesh.volume < DEGENERATE_VOLUME_EPS:
        raise OpenBoundaryError(f"Joined solid has no volume ({mesh.volume:.3g})", tolerance=tolerance, n_corners=n_corners)

    return cell


def build_cell(a, m1, m2, m3, tolerance: float = JOIN_TOLERANCE) -> HexCell:
    """
    Child cell at corner `a` from the midpoints of its three edges.

    Args:
        a: Parent corner
        m1, m2, m3: Midpoints of the three parent edges incident to `a`
        tolerance: Join tolerance

    Returns:
        Closed HexCell whose corner 0 is `a`
    """
    e = reflect(a, m1, m2)
    f = reflect(a, m1, m3)
    g = reflect(a, m2, m3)

    # Far corner is derived once per face touching it
    faces = [
        build_face_from_3_points(a, m1, m2),
        build_face_from_3_points(a, m1, m3),
        build_face_from_3_points(a, m2, m3),
        build_face_from_3_points(m3, f, g),
        build_face_from_3_points(m1, f, e),
        build_face_from_3_points(m2, e, g),
    ]
    return join_faces(faces, tolerance)
