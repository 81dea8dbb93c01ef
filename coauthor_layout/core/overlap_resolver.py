"""Post-layout overlap resolution."""

import math
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .models import LayoutResult
from .spatial_grid import SpatialGrid

logger = logging.getLogger(__name__)

# Above this node count candidates come from the spatial grid instead of all pairs
GRID_NODE_THRESHOLD = 200
GRID_REBUILD_INTERVAL = 5
FALLBACK_SIZE = 10.0


def iteration_budget(node_count: int, max_iterations: int) -> int:
    """Scale the pass budget down for very large graphs."""
    if node_count > 500:
        return min(max_iterations, max(20, int(100 / math.log10(node_count))))
    return max_iterations


def count_overlaps(positions: Mapping[str, tuple], sizes: Mapping[str, float],
                   min_distance: float, exclude: Optional[str] = None) -> int:
    """Number of node pairs closer than ``(size_a + size_b) / 2 + min_distance``."""
    ids = [node_id for node_id in positions if node_id != exclude]
    overlaps = 0
    for a_index, a in enumerate(ids):
        ax, ay = positions[a]
        size_a = sizes.get(a, FALLBACK_SIZE)
        for b in ids[a_index + 1:]:
            bx, by = positions[b]
            limit = (size_a + sizes.get(b, FALLBACK_SIZE)) / 2 + min_distance
            if (bx - ax) ** 2 + (by - ay) ** 2 < limit * limit:
                overlaps += 1
    return overlaps


@dataclass
class OverlapReport:
    iterations: int = 0
    used_grid: bool = False
    settled: bool = False


class OverlapResolver:
    """Pushes overlapping node discs apart, leaving the centre node in place."""

    def __init__(self, sizes: Mapping[str, float], center_node_id: Optional[str],
                 min_distance: float = 50.0, max_iterations: int = 150,
                 grid_threshold: int = GRID_NODE_THRESHOLD,
                 rebuild_interval: int = GRID_REBUILD_INTERVAL):
        self.sizes = dict(sizes)
        self.center_node_id = center_node_id
        self.min_distance = min_distance
        self.max_iterations = max_iterations
        self.grid_threshold = grid_threshold
        self.rebuild_interval = rebuild_interval
        self.last_report = OverlapReport()

    def resolve(self, positions: LayoutResult) -> LayoutResult:
        """Return a copy of ``positions`` with overlaps reduced (best effort).

        Each overlapping pair is pushed apart along the line joining them, half
        the overlap each. When one side is the centre node the other side takes
        the whole correction.
        """
        work: Dict[str, List[float]] = {node_id: [x, y] for node_id, (x, y) in positions.items()}
        node_ids = list(work)
        node_count = len(node_ids)
        report = OverlapReport()

        if node_count < 2:
            report.settled = True
            self.last_report = report
            return {node_id: (x, y) for node_id, (x, y) in work.items()}

        iterations = iteration_budget(node_count, self.max_iterations)
        max_size = max((self.sizes.get(n, FALLBACK_SIZE) for n in node_ids), default=FALLBACK_SIZE)
        search_radius = max_size + self.min_distance

        report.used_grid = node_count > self.grid_threshold
        grid = SpatialGrid(work, search_radius) if report.used_grid else None

        for iteration in range(iterations):
            moved = self._pass(work, node_ids, grid, search_radius)
            report.iterations = iteration + 1

            if grid is not None and moved and iteration % self.rebuild_interval == self.rebuild_interval - 1:
                grid.rebuild()
                logger.debug(f"Rebuilt spatial grid after pass {iteration + 1} ({grid.cell_count} cells)")

            if not moved:
                report.settled = True
                break

        logger.debug(f"Overlap resolution: {report.iterations}/{iterations} passes, "
                     f"settled={report.settled}, grid={report.used_grid}")
        self.last_report = report
        return {node_id: (x, y) for node_id, (x, y) in work.items()}

    def _pass(self, work: Dict[str, List[float]], node_ids: List[str],
              grid: Optional[SpatialGrid], search_radius: float) -> bool:
        moved = False
        for id_a in node_ids:
            if id_a == self.center_node_id:
                continue

            pos_a = work[id_a]
            size_a = self.sizes.get(id_a, FALLBACK_SIZE)
            candidates = grid.nearby(id_a, search_radius) if grid is not None else node_ids

            for id_b in candidates:
                if id_b == id_a:
                    continue
                pos_b = work[id_b]
                size_b = self.sizes.get(id_b, FALLBACK_SIZE)

                dx = pos_b[0] - pos_a[0]
                dy = pos_b[1] - pos_a[1]
                dist_sq = dx * dx + dy * dy
                min_dist = (size_a + size_b) / 2 + self.min_distance

                if 0 < dist_sq < min_dist * min_dist:
                    dist = math.sqrt(dist_sq)
                    overlap = min_dist - dist
                    push_x = dx / dist * overlap * 0.5
                    push_y = dy / dist * overlap * 0.5

                    if id_b == self.center_node_id:
                        pos_a[0] -= push_x * 2
                        pos_a[1] -= push_y * 2
                    else:
                        pos_a[0] -= push_x
                        pos_a[1] -= push_y
                        pos_b[0] += push_x
                        pos_b[1] += push_y
                    moved = True
        return moved
