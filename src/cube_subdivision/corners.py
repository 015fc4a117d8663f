"""
Corner-point math for parallelograms and parallelepipeds.

Binary corner order: corner index i + 2j + 4k sits at
origin + i*u + j*v + k*w.
"""

import numpy as np


def reflect(a, b, c) -> np.ndarray:
    """
    Fourth corner of the parallelogram with diagonal a-d.

    d = b + c - a. Works on single points or stacked (N, 3) arrays.
    """
    return np.asarray(b, dtype=np.float64) + np.asarray(c, dtype=np.float64) - np.asarray(a, dtype=np.float64)


def parallelepiped_corners(origin, u, v, w) -> np.ndarray:
    """8x3 corners of the parallelepiped spanned by u, v, w, in binary order."""
    origin = np.asarray(origin, dtype=np.float64)
    u, v, w = (np.asarray(x, dtype=np.float64) for x in (u, v, w))
    return np.array([
        origin + i * u + j * v + k * w
        for k in (0, 1) for j in (0, 1) for i in (0, 1)
    ])
