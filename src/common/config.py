"""
Configuration and parameters for curve-guided cube subdivision.

Parameter model:
- subdiv_dist / reduce_dist are in model units (same units as the curve)
- random rates are in [0, 1]: 0 = deterministic, 1 = noise multiplier in [0, 1]
- volume factor = (cell_volume / initial_volume) ** volume_exponent
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
import json
from pathlib import Path

from .errors import InvalidRangeError

# Weld distance used when joining the six faces of a child cell
JOIN_TOLERANCE = 0.01

# Initial volumes below this make the volume factor meaningless
DEGENERATE_VOLUME_EPS = 1e-12


@dataclass
class SubdivisionParams:
    """Parameters for the subdivide/reduce loop."""
    # Subdivision pass
    subdiv_dist: float = 2.0
    subdiv_random_rate: float = 0.5

    # Reduction pass
    reduce_dist: float = 0.5
    reduce_random_rate: float = 0.5
    volume_exponent: float = 0.2

    # Control
    loops: int = 3
    seed: Optional[int] = None  # None = unseeded, runs are not reproducible

    # Geometry
    join_tolerance: float = JOIN_TOLERANCE

    # Execution
    workers: int = 1
    deadline_s: Optional[float] = None

    def validate(self) -> None:
        """Raise InvalidRangeError if any parameter is out of range."""
        for name in ("subdiv_random_rate", "reduce_random_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise InvalidRangeError(f"{name} must be in [0, 1], got {value}")
        if self.loops < 0:
            raise InvalidRangeError(f"loops must be >= 0, got {self.loops}")
        if self.workers < 1:
            raise InvalidRangeError(f"workers must be >= 1, got {self.workers}")
        if self.join_tolerance <= 0:
            raise InvalidRangeError(f"join_tolerance must be > 0, got {self.join_tolerance}")
        if self.deadline_s is not None and self.deadline_s < 0:
            raise InvalidRangeError(f"deadline_s must be >= 0, got {self.deadline_s}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subdiv_dist": self.subdiv_dist,
            "subdiv_random_rate": self.subdiv_random_rate,
            "reduce_dist": self.reduce_dist,
            "reduce_random_rate": self.reduce_random_rate,
            "volume_exponent": self.volume_exponent,
            "loops": self.loops,
            "seed": self.seed,
            "join_tolerance": self.join_tolerance,
            "workers": self.workers,
            "deadline_s": self.deadline_s,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubdivisionParams":
        return cls(**data)


@dataclass
class MeshMetadata:
    """
    Metadata sidecar for every exported cell mesh.
    """
    specimen_id: str
    n_cells: int
    n_triangles: int
    n_vertices: int
    total_volume: float
    initial_volume: Optional[float] = None
    generation_params: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "specimen_id": self.specimen_id,
            "n_cells": self.n_cells,
            "n_triangles": self.n_triangles,
            "n_vertices": self.n_vertices,
            "total_volume": self.total_volume,
            "initial_volume": self.initial_volume,
            "generation_params": self.generation_params
        }

    def save(self, path: Path) -> None:
        """Save metadata to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeshMetadata":
        return cls(**data)


@dataclass
class Config:
    """
    Global configuration for a subdivision run.

    If cube_center / cube_size are None the initial cube is fitted around
    the guide curve's bounding box, padded by cube_margin_factor.
    """

    # Initial cube
    cube_center: Optional[List[float]] = None
    cube_size: Optional[float] = None
    cube_margin_factor: float = 0.1

    # Curve preprocessing
    curve_resample_distance: Optional[float] = None

    # Loop parameters
    params: SubdivisionParams = field(default_factory=SubdivisionParams)

    # Output
    output_dir: Path = field(default_factory=lambda: Path("outputs"))
    mesh_format: str = "glb"

    def get_output_path(self, specimen_id: str) -> Path:
        """Mesh output path for a specimen."""
        return self.output_dir / "meshes" / f"{specimen_id}.{self.mesh_format}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cube_center": self.cube_center,
            "cube_size": self.cube_size,
            "cube_margin_factor": self.cube_margin_factor,
            "curve_resample_distance": self.curve_resample_distance,
            "params": self.params.to_dict(),
            "output_dir": str(self.output_dir),
            "mesh_format": self.mesh_format
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        data = dict(data)
        data["params"] = SubdivisionParams.from_dict(data.get("params", {}))
        data["output_dir"] = Path(data.get("output_dir", "outputs"))
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> "Config":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data)

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
