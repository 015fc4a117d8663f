"""
Stochastic subdivide/reduce loop.

Each round:
1. Subdivision pass: a cell whose noisy curve distance is below subdiv_dist
   is replaced by its 8 children
2. Reduction pass: a cell survives only if its noisy, volume-weighted curve
   distance is above reduce_dist

noise = u * rate + (1 - rate), u ~ U[0, 1), so noise lies in [1 - rate, 1].
The volume weight is (volume / max_volume) ** 0.2 with max_volume taken from
the initial cell and held for the whole run.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from common.config import SubdivisionParams, DEGENERATE_VOLUME_EPS
from common.curve import GuideCurve
from common.errors import DegenerateInputError
from .metrics import distance_to_curve, cell_volume, cell_metrics, volume_factor
from .solid import HexCell
from .subdivide import subdivide_cell

logger = logging.getLogger(__name__)


@dataclass
class RoundStats:
    """Cell counts for one completed round."""
    round_index: int
    n_in: int
    n_subdivided: int
    n_after_subdivision: int
    n_discarded: int
    n_out: int
    elapsed_s: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round_index": self.round_index,
            "n_in": self.n_in,
            "n_subdivided": self.n_subdivided,
            "n_after_subdivision": self.n_after_subdivision,
            "n_discarded": self.n_discarded,
            "n_out": self.n_out,
            "elapsed_s": self.elapsed_s,
        }


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Random source for a run.

    seed=None gives a fresh OS-seeded generator, so repeated runs differ.
    """
    if seed is None:
        logger.debug("Using unseeded random generator; run is not reproducible")
    return np.random.default_rng(seed)


class SubdivideReduceLoop:
    """
    Controller for the subdivide/reduce rounds.

    Args:
        curve: Guide curve attracting subdivision
        params: Loop parameters (validated on construction)
        rng: Random generator; built from params.seed when None

    With params.workers > 1 per-cell evaluation runs on a thread pool. All
    random draws for a pass are taken up front on the calling thread.
    """

    def __init__(
        self,
        curve: GuideCurve,
        params: Optional[SubdivisionParams] = None,
        rng: Optional[np.random.Generator] = None
    ):
        self.curve = curve
        self.params = params or SubdivisionParams()
        self.params.validate()
        self.rng = rng if rng is not None else make_rng(self.params.seed)

        self.max_volume: Optional[float] = None
        self.history: List[RoundStats] = []
        self.rounds_completed = 0
        self.timed_out = False
        self._executor: Optional[ThreadPoolExecutor] = None

    def _noise(self, n: int, rate: float) -> np.ndarray:
        return self.rng.random(n) * rate + (1.0 - rate)

    def _map(self, fn: Callable, items: Iterable) -> list:
        if self._executor is None:
            return [fn(item) for item in items]
        return list(self._executor.map(fn, items))

    def subdivision_pass(self, cells: List[HexCell]) -> Tuple[List[HexCell], int]:
        """
        Replace cells near the curve with their children.

        Returns:
            Tuple of (new working set, number of cells subdivided)
        """
        p = self.params
        noise = self._noise(len(cells), p.subdiv_random_rate)

        def decide(item):
            cell, n = item
            adjusted = distance_to_curve(cell, self.curve) * n
            if adjusted < p.subdiv_dist:
                return subdivide_cell(cell, p.join_tolerance)
            return None

        result = []
        n_subdivided = 0
        for cell, children in zip(cells, self._map(decide, zip(cells, noise))):
            if children is None:
                result.append(cell)
            else:
                result.extend(children)
                n_subdivided += 1

        return result, n_subdivided

    def reduction_pass(self, cells: List[HexCell]) -> List[HexCell]:
        """Keep cells whose noisy, volume-weighted distance exceeds reduce_dist."""
        p = self.params
        noise = self._noise(len(cells), p.reduce_random_rate)
        max_volume = self.max_volume

        def keep(item):
            cell, n = item
            dist, volume = cell_metrics(cell, self.curve)
            adjusted = dist * n * volume_factor(volume, max_volume, p.volume_exponent)
            return adjusted > p.reduce_dist

        flags = self._map(keep, zip(cells, noise))
        return [cell for cell, kept in zip(cells, flags) if kept]

    def run_round(self, round_index: int, cells: List[HexCell]) -> List[HexCell]:
        """One subdivision pass followed by one reduction pass."""
        start = time.perf_counter()

        subdivided, n_subdivided = self.subdivision_pass(cells)
        logger.debug(f"Round {round_index}: subdivision pass {time.perf_counter() - start:.3f}s")

        survivors = self.reduction_pass(subdivided)

        stats = RoundStats(
            round_index=round_index,
            n_in=len(cells),
            n_subdivided=n_subdivided,
            n_after_subdivision=len(subdivided),
            n_discarded=len(subdivided) - len(survivors),
            n_out=len(survivors),
            elapsed_s=time.perf_counter() - start,
        )
        self.history.append(stats)
        logger.info(
            f"Round {round_index + 1}/{self.params.loops}: {stats.n_in} cells, "
            f"{stats.n_subdivided} subdivided -> {stats.n_after_subdivision}, "
            f"{stats.n_discarded} discarded -> {stats.n_out} ({stats.elapsed_s:.2f}s)"
        )
        return survivors

    def run(self, initial_cell: HexCell) -> List[HexCell]:
        """
        Run all rounds starting from `initial_cell`.

        Returns:
            Cells alive after the last completed round

        Raises:
            DegenerateInputError: initial cell has (near) zero volume
            OpenBoundaryError: a subdivision failed to close
        """
        p = self.params
        self.max_volume = cell_volume(initial_cell)
        if not np.isfinite(self.max_volume) or self.max_volume < DEGENERATE_VOLUME_EPS:
            raise DegenerateInputError(f"Initial cell volume is degenerate ({self.max_volume:.3g})")

        self.history = []
        self.rounds_completed = 0
        self.timed_out = False

        active = [initial_cell]
        start = time.perf_counter()

        pool = ThreadPoolExecutor(max_workers=p.workers) if p.workers > 1 else nullcontext()
        with pool as executor:
            self._executor = executor
            try:
                for i in range(p.loops):
                    if p.deadline_s is not None and time.perf_counter() - start >= p.deadline_s:
                        logger.warning(
                            f"Deadline of {p.deadline_s}s reached after {i} of {p.loops} rounds"
                        )
                        self.timed_out = True
                        break
                    active = self.run_round(i, active)
                    self.rounds_completed = i + 1
            finally:
                self._executor = None

        return active


def run(
    initial_cube: HexCell,
    guide_curve: GuideCurve,
    subdiv_dist: float,
    subdiv_random_rate: float,
    reduce_dist: float,
    reduce_random_rate: float,
    loops: int,
    seed: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    workers: int = 1,
    deadline_s: Optional[float] = None
) -> List[HexCell]:
    """
    Run the subdivide/reduce loop and return the surviving cells.

    Args:
        initial_cube: Starting cell (must have positive volume)
        guide_curve: Attractor curve
        subdiv_dist: Subdivide when noisy distance < subdiv_dist
        subdiv_random_rate: Noise rate for subdivision, in [0, 1]
        reduce_dist: Keep when noisy weighted distance > reduce_dist
        reduce_random_rate: Noise rate for reduction, in [0, 1]
        loops: Number of rounds (>= 0)
        seed: Seed for a reproducible run; None = unseeded
        rng: Caller-owned generator, takes precedence over seed
        workers: Threads for per-cell evaluation
        deadline_s: Stop between rounds once this many seconds have passed

    Returns:
        List of alive cells
    """
    params = SubdivisionParams(
        subdiv_dist=subdiv_dist,
        subdiv_random_rate=subdiv_random_rate,
        reduce_dist=reduce_dist,
        reduce_random_rate=reduce_random_rate,
        loops=loops,
        seed=seed,
        workers=workers,
        deadline_s=deadline_s,
    )
    return SubdivideReduceLoop(guide_curve, params, rng).run(initial_cube)
