"""Least-recently-used cache of computed layouts."""

import logging
from collections import OrderedDict
from typing import Iterable, Optional

from ..core.models import LayoutResult, PublicationType

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 20


def make_cache_key(center_node_id: str, enabled_types: Optional[Iterable[PublicationType]] = None) -> str:
    """Key a layout by its centre and the set of enabled publication types.

    ``None`` is the same as enabling every type.
    """
    types = list(PublicationType) if enabled_types is None else enabled_types
    values = sorted({PublicationType(t).value for t in types})
    return f"{center_node_id}:{','.join(values)}"


class LayoutCache:
    """Bounded mapping from cache key to positions; not thread-safe."""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: "OrderedDict[str, LayoutResult]" = OrderedDict()

    def get(self, key: str) -> Optional[LayoutResult]:
        positions = self._entries.get(key)
        if positions is None:
            logger.debug(f"Layout cache miss: {key}")
            return None
        self._entries.move_to_end(key)
        logger.debug(f"Layout cache hit: {key}")
        return positions

    def put(self, key: str, positions: LayoutResult) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = positions
        while len(self._entries) > self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted layout {evicted} from cache")

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
