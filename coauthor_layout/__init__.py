"""Coauthor network layout engine.

This package computes stable, readable 2D positions for coauthor networks
centred on one researcher. It runs a ForceAtlas2 simulation with Barnes-Hut
repulsion until the layout settles, fits the result into a viewport and
pushes overlapping nodes apart.

Main components:
- Coauthor network construction from publication records
- ForceAtlas2 force simulation with adaptive settings by graph size
- Convergence controller with a bounded iteration ceiling
- Viewport normalization and overlap resolution
- Execution host that offloads large graphs to a worker thread with a timeout
- Layout cache keyed by centre researcher and enabled publication types
"""

from .config import LayoutConfig
from .core import (
    Author, CoauthorGraph, CoauthorNetworkBuilder, Edge, Node, Publication,
    PublicationAuthor, PublicationType, compute_layout
)
from .exceptions import (
    LayoutComputationError, LayoutError, LayoutInputError, LayoutTimeoutError,
    WorkerUnavailableError
)
from .runtime import CoauthorLayoutService, ExecutionHost, HostState, LayoutCache

__all__ = [
    "LayoutConfig",
    "Author", "CoauthorGraph", "CoauthorNetworkBuilder", "Edge", "Node",
    "Publication", "PublicationAuthor", "PublicationType", "compute_layout",
    "LayoutError", "LayoutInputError", "LayoutComputationError",
    "LayoutTimeoutError", "WorkerUnavailableError",
    "CoauthorLayoutService", "ExecutionHost", "HostState", "LayoutCache",
]

__version__ = "1.0.0"
