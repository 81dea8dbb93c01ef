"""Spatial hash grid for nearby-node queries."""

import math
import logging
from typing import Dict, List, MutableMapping, MutableSequence, Tuple

logger = logging.getLogger(__name__)

CellKey = Tuple[int, int]


class SpatialGrid:
    """Uniform-cell index over node positions.

    The grid keeps a reference to the live position mapping; positions may move
    after a rebuild, so query results are only as fresh as the last ``rebuild``.
    """

    def __init__(self, positions: MutableMapping[str, MutableSequence[float]], cell_size: float):
        """Index ``positions`` using square cells of side ``cell_size``."""
        if not cell_size > 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self.cell_size = cell_size
        self.positions = positions
        self._cells: Dict[CellKey, List[str]] = {}
        self.rebuild()

    def _cell_key(self, x: float, y: float) -> CellKey:
        return (int(math.floor(x / self.cell_size)),
                int(math.floor(y / self.cell_size)))

    def rebuild(self) -> None:
        """Re-bin every node at its current position."""
        self._cells.clear()
        for node_id, (x, y) in self.positions.items():
            self._cells.setdefault(self._cell_key(x, y), []).append(node_id)

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    def nearby(self, node_id: str, search_radius: float) -> List[str]:
        """Ids in the cells within ``search_radius`` of ``node_id``'s cell, excluding itself."""
        x, y = self.positions[node_id]
        cell_radius = int(math.ceil(search_radius / self.cell_size))
        cx, cy = self._cell_key(x, y)

        found = []
        for dx in range(-cell_radius, cell_radius + 1):
            for dy in range(-cell_radius, cell_radius + 1):
                for other in self._cells.get((cx + dx, cy + dy), ()):
                    if other != node_id:
                        found.append(other)
        return found
