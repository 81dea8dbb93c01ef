"""Barnes-Hut approximation of node-node repulsion.

The quad-tree is stored level by level: at depth ``d`` the bounding square is
cut into ``2**d x 2**d`` cells. Building the tree walks (node, cell) pairs
top-down, vectorised over all pairs at once: a pair is accepted as one
aggregate interaction when the cell is far enough away
(``cell_size / distance < theta``), otherwise it is replaced by the pairs
formed with the cell's occupied children. Leaf buckets and lone nodes are
resolved node by node.

The result is a pair of interaction lists (node-cell and node-node). They can
be evaluated for several consecutive iterations: cell masses and centres of
mass are recomputed from the current positions on every evaluation, only the
near/far split is reused.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Anti-collision multiplier for overlapping discs
OVERLAP_REPULSION_FACTOR = 100.0
# Target number of nodes per leaf bucket
LEAF_SIZE = 4
MAX_DEPTH = 10

_MAX_PAIRS_PER_CHUNK = 250_000


def _repulsion_factor(dist: np.ndarray, gap: Optional[np.ndarray], mass_product: np.ndarray) -> np.ndarray:
    """Force magnitude divided by distance, elementwise.

    ``gap`` is the border-to-border distance when sizes are taken into account;
    overlapping discs then repel with a large constant factor.
    """
    if gap is not None:
        safe_gap = np.where(gap > 0, gap, 1.0)
        return np.where(
            gap > 0,
            mass_product / (safe_gap * safe_gap),
            np.where(gap < 0, OVERLAP_REPULSION_FACTOR * mass_product, 0.0),
        )
    safe_dist = np.where(dist > 0, dist, 1.0)
    return np.where(dist > 0, mass_product / (safe_dist * safe_dist), 0.0)


def pair_repulsion(positions: np.ndarray, masses: np.ndarray, sizes: np.ndarray,
                   i: np.ndarray, j: np.ndarray, coefficient: float,
                   adjust_sizes: bool) -> np.ndarray:
    """Repulsion exerted by nodes ``j`` on nodes ``i`` (one row per pair)."""
    delta = positions[i] - positions[j]
    dist = np.hypot(delta[:, 0], delta[:, 1])
    mass_product = coefficient * masses[i] * masses[j]
    gap = dist - sizes[i] - sizes[j] if adjust_sizes else None
    return delta * _repulsion_factor(dist, gap, mass_product)[:, None]


def _accumulate(forces: np.ndarray, index: np.ndarray, contribution: np.ndarray) -> None:
    n = forces.shape[0]
    forces[:, 0] += np.bincount(index, weights=contribution[:, 0], minlength=n)
    forces[:, 1] += np.bincount(index, weights=contribution[:, 1], minlength=n)


def all_pairs_repulsion(positions: np.ndarray, masses: np.ndarray, sizes: np.ndarray,
                        coefficient: float, adjust_sizes: bool) -> np.ndarray:
    """Exact O(N^2) repulsion using broadcasting, in row blocks to bound memory.

    The diagonal needs no masking: a node's offset to itself is zero.
    """
    n = positions.shape[0]
    forces = np.zeros((n, 2))
    if n < 2:
        return forces

    x = positions[:, 0]
    y = positions[:, 1]
    rows_per_chunk = max(1, _MAX_PAIRS_PER_CHUNK // n)
    for start in range(0, n, rows_per_chunk):
        stop = min(n, start + rows_per_chunk)
        dx = x[start:stop, None] - x[None, :]
        dy = y[start:stop, None] - y[None, :]
        dist = np.hypot(dx, dy)
        mass_product = coefficient * masses[start:stop, None] * masses[None, :]
        gap = dist - sizes[start:stop, None] - sizes[None, :] if adjust_sizes else None
        factor = _repulsion_factor(dist, gap, mass_product)
        forces[start:stop, 0] = (dx * factor).sum(axis=1)
        forces[start:stop, 1] = (dy * factor).sum(axis=1)
    return forces


@dataclass
class _Level:
    """Occupied cells of one quad-tree depth."""
    resolution: int
    cell_size: float
    # Index of this level's first cell in the tree-wide cell numbering
    offset: int
    cells: np.ndarray       # sorted cell keys (ix * resolution + iy)
    node_cell: np.ndarray   # node index -> position in ``cells``
    counts: np.ndarray
    first_member: np.ndarray
    center_of_mass: np.ndarray
    # Leaf level only: nodes grouped by cell
    order: Optional[np.ndarray] = None
    starts: Optional[np.ndarray] = None


def default_depth(node_count: int) -> int:
    """Tree depth giving about ``LEAF_SIZE`` nodes per leaf bucket."""
    if node_count <= LEAF_SIZE:
        return 1
    return min(MAX_DEPTH, max(1, int(math.ceil(math.log(node_count / LEAF_SIZE, 4)))))


class BarnesHutTree:
    """Quad-tree and interaction lists for one snapshot of node positions."""

    def __init__(self, positions: np.ndarray, masses: np.ndarray, theta: float,
                 depth: Optional[int] = None):
        positions = np.asarray(positions, dtype=float)
        masses = np.asarray(masses, dtype=float)
        self.node_count = positions.shape[0]
        self.theta = theta
        self.depth = depth if depth is not None else default_depth(self.node_count)

        empty = np.zeros(0, dtype=np.int64)
        self.far_nodes, self.far_cells = empty, empty
        self.near_i, self.near_j = empty, empty
        self.member_nodes, self.member_cells = empty, empty
        self.cell_count = 0

        if self.node_count > 1:
            levels = self._build(positions, masses)
            self._index_members(levels)
            self._collect_interactions(levels, positions)

    def _build(self, positions: np.ndarray, masses: np.ndarray) -> List[_Level]:
        x = positions[:, 0]
        y = positions[:, 1]
        min_x, min_y = x.min(), y.min()
        side = max(x.max() - min_x, y.max() - min_y)
        if not side > 0:
            side = 1.0

        u = (x - min_x) / side
        v = (y - min_y) / side

        levels = []
        offset = 0
        for depth in range(self.depth + 1):
            resolution = 1 << depth
            ix = np.minimum((u * resolution).astype(np.int64), resolution - 1)
            iy = np.minimum((v * resolution).astype(np.int64), resolution - 1)
            keys = ix * resolution + iy

            cells, first, inverse, counts = np.unique(
                keys, return_index=True, return_inverse=True, return_counts=True
            )
            inverse = inverse.reshape(-1)
            mass = np.bincount(inverse, weights=masses, minlength=cells.size)
            center_of_mass = np.column_stack((
                np.bincount(inverse, weights=masses * x, minlength=cells.size) / mass,
                np.bincount(inverse, weights=masses * y, minlength=cells.size) / mass,
            ))
            levels.append(_Level(
                resolution=resolution,
                cell_size=side / resolution,
                offset=offset,
                cells=cells,
                node_cell=inverse,
                counts=counts,
                first_member=first,
                center_of_mass=center_of_mass,
            ))
            offset += cells.size

        leaf = levels[-1]
        leaf.order = np.argsort(leaf.node_cell, kind="stable")
        leaf.starts = np.concatenate(([0], np.cumsum(leaf.counts)[:-1]))
        self.cell_count = offset
        return levels

    def _index_members(self, levels: List[_Level]) -> None:
        """Flatten cell membership over every level for fast mass re-aggregation."""
        nodes = np.arange(self.node_count)
        self.member_nodes = np.tile(nodes, len(levels))
        self.member_cells = np.concatenate([level.node_cell + level.offset for level in levels])

    def _children(self, depth: int, levels: List[_Level], nodes: np.ndarray, cells: np.ndarray):
        """Replace each (node, cell) pair by the pairs with the cell's occupied children."""
        parent = levels[depth]
        child = levels[depth + 1]
        keys = parent.cells[cells]
        px = keys // parent.resolution
        py = keys % parent.resolution

        out_nodes, out_cells = [], []
        last = child.cells.size - 1
        for a in (0, 1):
            for b in (0, 1):
                child_keys = (2 * px + a) * child.resolution + (2 * py + b)
                idx = np.minimum(np.searchsorted(child.cells, child_keys), last)
                found = child.cells[idx] == child_keys
                out_nodes.append(nodes[found])
                out_cells.append(idx[found])
        return np.concatenate(out_nodes), np.concatenate(out_cells)

    @staticmethod
    def _leaf_members(leaf: _Level, nodes: np.ndarray, cells: np.ndarray):
        """Expand (node, leaf cell) pairs into (node, other node) pairs."""
        counts = leaf.counts[cells]
        total = int(counts.sum())
        rep_nodes = np.repeat(nodes, counts)
        offsets = np.arange(total) - np.repeat(np.cumsum(counts) - counts, counts)
        others = leaf.order[np.repeat(leaf.starts[cells], counts) + offsets]
        mask = others != rep_nodes
        return rep_nodes[mask], others[mask]

    def _collect_interactions(self, levels: List[_Level], positions: np.ndarray) -> None:
        far_nodes, far_cells, near_i, near_j = [], [], [], []

        nodes = np.arange(self.node_count)
        cells = np.zeros(self.node_count, dtype=np.int64)

        for depth, level in enumerate(levels):
            if nodes.size == 0:
                break

            contains = level.node_cell[nodes] == cells
            counts = level.counts[cells]

            # A cell holding only the node itself exerts nothing
            keep = ~(contains & (counts == 1))
            nodes, cells, contains, counts = nodes[keep], cells[keep], contains[keep], counts[keep]

            # Lone nodes in other cells are handled exactly (size-aware)
            single = ~contains & (counts == 1)
            near_i.append(nodes[single])
            near_j.append(level.first_member[cells[single]])
            nodes, cells, contains = nodes[~single], cells[~single], contains[~single]

            delta = positions[nodes] - level.center_of_mass[cells]
            dist = np.hypot(delta[:, 0], delta[:, 1])
            far = ~contains & (level.cell_size < self.theta * dist)
            far_nodes.append(nodes[far])
            far_cells.append(cells[far] + level.offset)
            nodes, cells = nodes[~far], cells[~far]

            if depth == self.depth:
                i, j = self._leaf_members(level, nodes, cells)
                near_i.append(i)
                near_j.append(j)
            else:
                nodes, cells = self._children(depth, levels, nodes, cells)

        self.far_nodes = np.concatenate(far_nodes)
        self.far_cells = np.concatenate(far_cells)
        self.near_i = np.concatenate(near_i)
        self.near_j = np.concatenate(near_j)
        logger.debug(f"Barnes-Hut tree over {self.node_count} nodes: depth {self.depth}, "
                     f"{self.far_nodes.size} cell and {self.near_i.size} node interactions")

    def repulsion(self, positions: np.ndarray, masses: np.ndarray, sizes: np.ndarray,
                  coefficient: float, adjust_sizes: bool) -> np.ndarray:
        """Approximate repulsion on every node at ``positions``.

        ``positions`` may have moved since the tree was built; cells keep the
        nodes they were built with.
        """
        n = positions.shape[0]
        forces = np.zeros((n, 2))
        if n < 2 or self.cell_count == 0:
            return forces

        if self.far_nodes.size:
            member_mass = masses[self.member_nodes]
            cell_mass = np.bincount(self.member_cells, weights=member_mass, minlength=self.cell_count)
            cell_x = np.bincount(self.member_cells, weights=member_mass * positions[self.member_nodes, 0],
                                 minlength=self.cell_count) / cell_mass
            cell_y = np.bincount(self.member_cells, weights=member_mass * positions[self.member_nodes, 1],
                                 minlength=self.cell_count) / cell_mass

            delta = positions[self.far_nodes] - np.column_stack((cell_x[self.far_cells], cell_y[self.far_cells]))
            dist_sq = delta[:, 0] ** 2 + delta[:, 1] ** 2
            safe = np.where(dist_sq > 0, dist_sq, 1.0)
            factor = np.where(
                dist_sq > 0,
                coefficient * masses[self.far_nodes] * cell_mass[self.far_cells] / safe,
                0.0,
            )
            _accumulate(forces, self.far_nodes, delta * factor[:, None])

        if self.near_i.size:
            _accumulate(forces, self.near_i, pair_repulsion(positions, masses, sizes, self.near_i,
                                                            self.near_j, coefficient, adjust_sizes))
        return forces
