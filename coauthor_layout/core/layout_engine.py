"""Layout pipeline: simulate, normalize, resolve overlaps.

This is the only place the pipeline stages are wired together. It is pure with
respect to its inputs and does not know whether it runs on the caller's thread
or in a worker.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..exceptions import LayoutInputError
from .convergence import ConvergenceController, ConvergenceReport
from .force_atlas2 import ForceAtlas2, build_simulation
from .layout_settings import ConvergenceSchedule, ForceAtlas2Settings, adaptive_settings
from .models import Edge, LayoutResult, Node
from .normalization import DEFAULT_PADDING, CoordinateNormalizer
from .overlap_resolver import OverlapReport, OverlapResolver

logger = logging.getLogger(__name__)

OVERLAP_MAX_ITERATIONS = 50


def default_overlap_distance(node_count: int) -> float:
    return 10.0 if node_count > 500 else 15.0


@dataclass
class LayoutOutcome:
    """Positions plus diagnostics for one layout computation."""
    positions: LayoutResult = field(default_factory=dict)
    convergence: ConvergenceReport = field(default_factory=ConvergenceReport)
    overlap: OverlapReport = field(default_factory=OverlapReport)


def validate_request(nodes: Sequence[Node], viewport_width: float, viewport_height: float) -> None:
    """Reject requests the pipeline cannot lay out."""
    if not (viewport_width > 0 and viewport_height > 0):
        raise LayoutInputError(
            f"Viewport must have positive dimensions, got {viewport_width}x{viewport_height}"
        )
    seen = set()
    for node in nodes:
        if node.id in seen:
            raise LayoutInputError(f"Duplicate node id: {node.id}")
        seen.add(node.id)


def run_layout(nodes: Sequence[Node], edges: Sequence[Edge], viewport_width: float,
               viewport_height: float, center_node_id: str, *,
               settings: Optional[ForceAtlas2Settings] = None,
               schedule: Optional[ConvergenceSchedule] = None,
               padding: float = DEFAULT_PADDING,
               overlap_min_distance: Optional[float] = None,
               overlap_max_iterations: int = OVERLAP_MAX_ITERATIONS,
               time_budget: Optional[float] = None) -> LayoutOutcome:
    """Run the full pipeline and return positions with diagnostics.

    ``time_budget`` caps the wall-clock seconds spent in the force simulation;
    normalization and overlap resolution always run.
    """
    validate_request(nodes, viewport_width, viewport_height)

    node_count = len(nodes)
    if node_count == 0:
        logger.info("Empty graph, nothing to lay out")
        return LayoutOutcome(convergence=ConvergenceReport(final_displacement=0.0, converged=True))

    logger.info(f"Computing layout for {node_count} nodes and {len(edges)} edges "
                f"in a {viewport_width:g}x{viewport_height:g} viewport")

    # Step 1: initial placement
    state = build_simulation(nodes, edges, viewport_width, viewport_height, center_node_id)

    # Step 2: force simulation until settled or a limit is hit
    simulator = ForceAtlas2(settings or adaptive_settings(node_count))
    convergence = ConvergenceController(simulator, schedule, time_budget=time_budget).run(state)

    # Step 3: fit into the viewport
    normalizer = CoordinateNormalizer(viewport_width, viewport_height, padding)
    positions = normalizer.normalize(state.node_ids, state.positions, center_node_id)

    # Step 4: push apart overlapping discs
    sizes = {node.id: node.size for node in nodes}
    resolver = OverlapResolver(
        sizes,
        center_node_id,
        min_distance=overlap_min_distance if overlap_min_distance is not None
        else default_overlap_distance(node_count),
        max_iterations=overlap_max_iterations,
    )
    positions = resolver.resolve(positions)

    return LayoutOutcome(positions=positions, convergence=convergence, overlap=resolver.last_report)


def compute_layout(nodes: Sequence[Node], edges: Sequence[Edge], viewport_width: float,
                   viewport_height: float, center_node_id: str, **options) -> LayoutResult:
    """Compute viewport positions for every node.

    Returns a mapping with exactly one entry per input node; the centre node
    sits at ``(viewport_width / 2, viewport_height / 2)``.
    """
    return run_layout(nodes, edges, viewport_width, viewport_height, center_node_id,
                      **options).positions
