"""Main orchestrator: build a coauthor graph and lay it out."""

import logging
from typing import Iterable, List, Optional, Tuple

from ..config import LayoutConfig
from ..core.models import Author, CoauthorGraph, LayoutResult, Publication, PublicationType
from ..core.network_builder import CoauthorNetworkBuilder
from .execution_host import ExecutionHost
from .layout_cache import LayoutCache, make_cache_key

logger = logging.getLogger(__name__)


class CoauthorLayoutService:
    """Ties the network builder, layout cache and execution host together."""

    def __init__(self, config: Optional[LayoutConfig] = None,
                 host: Optional[ExecutionHost] = None):
        """Initialize with configuration; ``host`` overrides the default execution host."""
        self.config = config or LayoutConfig()
        self.builder = CoauthorNetworkBuilder()
        self.cache = LayoutCache(self.config.cache_size)
        self.host = host or ExecutionHost(self.config)

    async def layout(self, graph: CoauthorGraph, viewport_width: float, viewport_height: float,
                     enabled_types: Optional[Iterable[PublicationType]] = None) -> LayoutResult:
        """Positions for ``graph``, served from the cache when available."""
        if enabled_types is not None:
            enabled_types = list(enabled_types)
        key = make_cache_key(graph.center_node_id, enabled_types)

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        positions = await self.host.compute_layout(
            graph.nodes, graph.edges, viewport_width, viewport_height, graph.center_node_id
        )
        self.cache.put(key, positions)
        logger.info(f"Laid out {len(positions)} nodes for {graph.center_node_id}")
        return positions

    async def build_and_layout(self, center: Author, publications: Iterable[Publication],
                               viewport_width: float, viewport_height: float,
                               enabled_types: Optional[Iterable[PublicationType]] = None
                               ) -> Tuple[CoauthorGraph, LayoutResult]:
        """Filter publications, build the coauthor graph and compute its layout."""
        types: Optional[List[PublicationType]] = list(enabled_types) if enabled_types is not None else None
        graph = self.builder.build(center, publications, types)
        positions = await self.layout(graph, viewport_width, viewport_height, types)
        return graph, positions

    def invalidate(self) -> None:
        """Forget every cached layout."""
        self.cache.clear()

    def close(self) -> None:
        self.host.close()

    async def __aenter__(self) -> "CoauthorLayoutService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
