"""
Error types raised by the subdivision pipeline.

All errors abort the whole run. Nothing is retried.
"""

from typing import Optional


class SubdivisionError(Exception):
    """Base class for subdivision failures."""


class OpenBoundaryError(SubdivisionError):
    """Faces of a child cell did not close within the join tolerance."""

    def __init__(self, message: str, tolerance: Optional[float] = None, n_corners: Optional[int] = None):
        super().__init__(message)
        self.tolerance = tolerance
        self.n_corners = n_corners


class DegenerateInputError(SubdivisionError, ValueError):
    """Initial solid (or guide curve) has no usable extent."""


class InvalidRangeError(SubdivisionError, ValueError):
    """A numeric parameter is outside its allowed range."""
