"""
Distance and volume metrics used by the subdivide/reduce loop.
"""

from typing import Tuple

import numpy as np

from common.curve import GuideCurve
from .solid import HexCell, mass_properties


def distance_to_curve(cell: HexCell, curve: GuideCurve) -> float:
    """Distance from the cell centroid to the closest point on the curve."""
    _, centroid = mass_properties(cell)
    return curve.distance_to(centroid)


def cell_volume(cell: HexCell) -> float:
    return mass_properties(cell)[0]


def cell_metrics(cell: HexCell, curve: GuideCurve) -> Tuple[float, float]:
    """(distance_to_curve, volume) from a single mass-properties evaluation."""
    volume, centroid = mass_properties(cell)
    return curve.distance_to(centroid), volume


def volume_factor(volume: float, max_volume: float, exponent: float = 0.2) -> float:
    """
    Sub-linear volume weight (volume / max_volume) ** exponent.

    max_volume must be positive; the loop checks this before it starts.
    """
    return float(np.power(max(volume, 0.0) / max_volume, exponent))
