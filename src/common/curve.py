"""
Guide curve: an immutable 3D polyline with closest-point queries.

The curve parameter t is normalized arc length, so t=0 is the first point
and t=1 the last regardless of how the polyline is sampled.
"""

import logging
from typing import Tuple

import numpy as np

from .errors import DegenerateInputError

logger = logging.getLogger(__name__)


class GuideCurve:
    """
    Piecewise-linear guide curve.

    Args:
        points: Nx3 array of curve points (N >= 2, consecutive duplicates dropped)
    """

    def __init__(self, points: np.ndarray):
        points = np.asarray(points, dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError(f"Curve points must be Nx3, got shape {points.shape}")

        # Drop zero-length segments
        if len(points) > 1:
            keep = np.concatenate([[True], np.linalg.norm(np.diff(points, axis=0), axis=1) > 1e-12])
            points = points[keep]

        if len(points) < 2:
            raise DegenerateInputError("Guide curve needs at least 2 distinct points")

        self._points = points
        self._points.setflags(write=False)

        seg = np.diff(points, axis=0)
        self._seg_start = points[:-1]
        self._seg_vec = seg
        self._seg_len_sq = np.einsum('ij,ij->i', seg, seg)
        self._cumulative = np.concatenate([[0.0], np.cumsum(np.sqrt(self._seg_len_sq))])

    @classmethod
    def line(cls, start, end) -> "GuideCurve":
        """Straight segment from start to end."""
        return cls(np.array([start, end], dtype=np.float64))

    @property
    def points(self) -> np.ndarray:
        return self._points

    @property
    def n_points(self) -> int:
        return len(self._points)

    @property
    def length(self) -> float:
        return float(self._cumulative[-1])

    @property
    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """(min_corner, max_corner) of the curve points."""
        return self._points.min(axis=0), self._points.max(axis=0)

    def point_at(self, t: float) -> np.ndarray:
        """Point at normalized arc-length parameter t (clamped to [0, 1])."""
        s = float(np.clip(t, 0.0, 1.0)) * self.length
        return np.array([
            np.interp(s, self._cumulative, self._points[:, i]) for i in range(3)
        ])

    def closest_point(self, point) -> Tuple[float, np.ndarray]:
        """
        Closest point on the curve to `point`.

        Returns:
            Tuple of (t, point_on_curve), t normalized to [0, 1]
        """
        p = np.asarray(point, dtype=np.float64)

        # Project onto every segment at once, clamp to the segment
        rel = p - self._seg_start
        u = np.einsum('ij,ij->i', rel, self._seg_vec) / self._seg_len_sq
        u = np.clip(u, 0.0, 1.0)
        candidates = self._seg_start + u[:, np.newaxis] * self._seg_vec
        dist_sq = np.einsum('ij,ij->i', candidates - p, candidates - p)

        i = int(np.argmin(dist_sq))
        s = self._cumulative[i] + u[i] * np.sqrt(self._seg_len_sq[i])
        t = s / self.length
        return float(t), candidates[i]

    def distance_to(self, point) -> float:
        """Euclidean distance from `point` to the curve."""
        _, on_curve = self.closest_point(point)
        return float(np.linalg.norm(on_curve - np.asarray(point, dtype=np.float64)))

    def resample(self, distance: float) -> "GuideCurve":
        """
        Resample to approximately uniform spacing.

        Args:
            distance: Target distance between points

        Returns:
            New GuideCurve (self if already shorter than one step)
        """
        total = self.length
        if distance <= 0 or total < distance:
            return self

        n_samples = max(2, int(total / distance))
        new_s = np.linspace(0, total, n_samples)
        new_points = np.column_stack([
            np.interp(new_s, self._cumulative, self._points[:, i]) for i in range(3)
        ])
        logger.debug(f"Resampled curve: {self.n_points} -> {n_samples} points")
        return GuideCurve(new_points)

    def __repr__(self) -> str:
        return f"GuideCurve(n_points={self.n_points}, length={self.length:.4g})"
