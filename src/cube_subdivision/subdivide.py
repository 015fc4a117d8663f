"""
Octree-style subdivision of a hexahedral cell into 8 corner children.
"""

import logging
from typing import List

from common.config import JOIN_TOLERANCE
from common.errors import OpenBoundaryError
from .solid import HexCell, build_cell

logger = logging.getLogger(__name__)


def subdivide_cell(cell: HexCell, tolerance: float = JOIN_TOLERANCE) -> List[HexCell]:
    """
    Split a cell into one child per corner.

    Each child is built from the corner and the midpoints of its three
    incident edges. Children come out in the parent's corner order.

    Raises:
        OpenBoundaryError: if any child fails to close. No partial result is
            returned since a missing child would leave a gap.
    """
    children = []
    for i, corner in enumerate(cell.vertices):
        edge_ids = cell.incident_edges(i)
        if len(edge_ids) != 3:
            raise ValueError(f"Corner {i} has {len(edge_ids)} incident edges, expected 3")

        m1, m2, m3 = (cell.edge_midpoint(e) for e in edge_ids)
        try:
            children.append(build_cell(corner, m1, m2, m3, tolerance))
        except OpenBoundaryError as e:
            logger.warning(f"Child {i} of {cell!r} failed to close: {e}")
            raise

    return children
