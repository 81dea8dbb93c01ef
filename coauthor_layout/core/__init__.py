"""Core components for the layout pipeline."""

from .models import (
    Node, Edge, LayoutResult, PublicationType, Author, PublicationAuthor,
    Paper, Publication, CoauthorInfo, SharedPapers, PaperStats, CoauthorGraph
)
from .layout_settings import ForceAtlas2Settings, ConvergenceSchedule, adaptive_settings, convergence_schedule
from .force_atlas2 import ForceAtlas2, SimulationState, build_simulation, create_graph
from .convergence import ConvergenceController, ConvergenceReport
from .normalization import CoordinateNormalizer
from .overlap_resolver import OverlapResolver
from .layout_engine import LayoutOutcome, compute_layout, run_layout
from .network_builder import CoauthorNetworkBuilder, filter_publications_by_type, get_graph_stats

__all__ = [
    # Models
    "Node", "Edge", "LayoutResult", "PublicationType", "Author", "PublicationAuthor",
    "Paper", "Publication", "CoauthorInfo", "SharedPapers", "PaperStats", "CoauthorGraph",

    # Layout components
    "ForceAtlas2Settings", "ConvergenceSchedule", "adaptive_settings", "convergence_schedule",
    "ForceAtlas2", "SimulationState", "build_simulation", "create_graph",
    "ConvergenceController", "ConvergenceReport", "CoordinateNormalizer", "OverlapResolver",
    "LayoutOutcome", "compute_layout", "run_layout",

    # Graph builder
    "CoauthorNetworkBuilder", "filter_publications_by_type", "get_graph_stats",
]
