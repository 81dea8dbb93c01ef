"""ForceAtlas2 force simulation for coauthor networks."""

import math
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import networkx as nx
import numpy as np

from .barnes_hut import BarnesHutTree, all_pairs_repulsion
from .layout_settings import ForceAtlas2Settings
from .models import Edge, Node

logger = logging.getLogger(__name__)

# Per-iteration force cap when sizes are taken into account
MAX_FORCE = 10.0
# Initial placement radius as a fraction of the smaller viewport side
SPREAD_RATIO = 0.4
# Up to this many nodes, repulsion is computed exactly
EXACT_REPULSION_MAX_NODES = 200
# Steps between Barnes-Hut tree rebuilds
TREE_REBUILD_INTERVAL = 10


def seeded_random(seed: float) -> float:
    """Deterministic pseudo-random value in [0, 1) derived from ``seed``."""
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def initial_position(index: int, is_center: bool, viewport_width: float,
                     viewport_height: float) -> Tuple[float, float]:
    """Starting coordinates for the node at ``index`` in input order."""
    center_x = viewport_width / 2
    center_y = viewport_height / 2
    if is_center:
        return center_x, center_y

    spread = min(viewport_width, viewport_height) * SPREAD_RATIO
    rand1 = seeded_random(index * 13.37)
    rand2 = seeded_random(index * 42.42 + 100)
    return (center_x + (rand1 - 0.5) * spread * 2,
            center_y + (rand2 - 0.5) * spread * 2)


def create_graph(nodes: Sequence[Node], edges: Sequence[Edge], viewport_width: float,
                 viewport_height: float, center_node_id: str) -> nx.Graph:
    """Build the simulation graph with initial positions, sizes and edge strengths.

    Edges whose endpoints are unknown and repeated node pairs are skipped.
    Attraction strength is ``sqrt(weight)``.
    """
    graph = nx.Graph()

    for i, node in enumerate(nodes):
        is_center = node.id == center_node_id
        x, y = initial_position(i, is_center, viewport_width, viewport_height)
        graph.add_node(node.id, x=x, y=y, size=node.size, fixed=is_center)

    skipped = 0
    for edge in edges:
        if edge.source not in graph or edge.target not in graph:
            logger.debug(f"Skipping edge {edge.id}: unknown endpoint {edge.source} -> {edge.target}")
            skipped += 1
            continue
        if graph.has_edge(edge.source, edge.target):
            logger.debug(f"Skipping edge {edge.id}: duplicate pair {edge.source} -- {edge.target}")
            skipped += 1
            continue
        graph.add_edge(edge.source, edge.target, weight=math.sqrt(edge.weight))

    if skipped:
        logger.debug(f"Skipped {skipped} of {len(edges)} edges while building the simulation graph")

    return graph


@dataclass
class SimulationState:
    """Mutable per-request simulation state; discarded after normalization."""
    node_ids: List[str]
    positions: np.ndarray
    sizes: np.ndarray
    masses: np.ndarray
    fixed: np.ndarray
    edge_source: np.ndarray
    edge_target: np.ndarray
    edge_weight: np.ndarray
    # Gravity pulls toward the centre node's slot
    anchor: Tuple[float, float] = (0.0, 0.0)
    forces: np.ndarray = field(default=None)
    old_forces: np.ndarray = field(default=None)
    convergence: np.ndarray = field(default=None)

    def __post_init__(self):
        n = len(self.node_ids)
        if self.forces is None:
            self.forces = np.zeros((n, 2))
        if self.old_forces is None:
            self.old_forces = np.zeros((n, 2))
        if self.convergence is None:
            self.convergence = np.ones(n)

    @classmethod
    def from_graph(cls, graph: nx.Graph, anchor: Tuple[float, float]) -> "SimulationState":
        node_ids = list(graph.nodes())
        index = {node_id: i for i, node_id in enumerate(node_ids)}

        positions = np.array([[graph.nodes[n]["x"], graph.nodes[n]["y"]] for n in node_ids],
                             dtype=float).reshape(-1, 2)
        sizes = np.array([graph.nodes[n]["size"] for n in node_ids], dtype=float)
        fixed = np.array([bool(graph.nodes[n]["fixed"]) for n in node_ids], dtype=bool)
        # ForceAtlas2 mass: hubs are heavier
        masses = np.array([1.0 + graph.degree(n) for n in node_ids], dtype=float)

        edge_list = list(graph.edges(data="weight"))
        edge_source = np.array([index[u] for u, _, _ in edge_list], dtype=np.int64)
        edge_target = np.array([index[v] for _, v, _ in edge_list], dtype=np.int64)
        edge_weight = np.array([w for _, _, w in edge_list], dtype=float)

        return cls(
            node_ids=node_ids,
            positions=positions,
            sizes=sizes,
            masses=masses,
            fixed=fixed,
            edge_source=edge_source,
            edge_target=edge_target,
            edge_weight=edge_weight,
            anchor=anchor,
        )

    @property
    def node_count(self) -> int:
        return len(self.node_ids)

    def snapshot(self) -> np.ndarray:
        return self.positions.copy()

    def position_map(self) -> Dict[str, Tuple[float, float]]:
        return {node_id: (float(x), float(y))
                for node_id, (x, y) in zip(self.node_ids, self.positions)}


def build_simulation(nodes: Sequence[Node], edges: Sequence[Edge], viewport_width: float,
                     viewport_height: float, center_node_id: str) -> SimulationState:
    """Create the initial simulation state for a layout request."""
    graph = create_graph(nodes, edges, viewport_width, viewport_height, center_node_id)
    anchor = (viewport_width / 2, viewport_height / 2)
    return SimulationState.from_graph(graph, anchor)


class ForceAtlas2:
    """Applies ForceAtlas2 iterations to a SimulationState in place."""

    def __init__(self, settings: ForceAtlas2Settings):
        self.settings = settings

    def run(self, state: SimulationState, iterations: int) -> None:
        """Advance free nodes by ``iterations`` steps.

        The Barnes-Hut interaction lists are rebuilt every
        ``TREE_REBUILD_INTERVAL`` steps; in between, cell centres of mass
        follow the nodes.
        """
        if state.node_count == 0:
            return
        tree = None
        for i in range(iterations):
            if self._uses_tree(state) and i % TREE_REBUILD_INTERVAL == 0:
                tree = BarnesHutTree(state.positions, state.masses, self.settings.barnes_hut_theta)
            self.step(state, tree)

    def step(self, state: SimulationState, tree: Optional[BarnesHutTree] = None) -> None:
        """One iteration: repulsion, gravity, attraction, then speed-adjusted moves."""
        state.old_forces = state.forces
        forces = np.zeros_like(state.positions)

        forces += self._repulsion(state, tree)
        forces += self._gravity(state)
        self._apply_attraction(state, forces)

        state.forces = forces
        self._apply_forces(state)

    def _uses_tree(self, state: SimulationState) -> bool:
        return self.settings.barnes_hut_optimize and state.node_count > EXACT_REPULSION_MAX_NODES

    def _repulsion(self, state: SimulationState, tree: Optional[BarnesHutTree] = None) -> np.ndarray:
        s = self.settings
        if self._uses_tree(state):
            if tree is None:
                tree = BarnesHutTree(state.positions, state.masses, s.barnes_hut_theta)
            return tree.repulsion(state.positions, state.masses, state.sizes,
                                  s.scaling_ratio, s.adjust_sizes)
        return all_pairs_repulsion(state.positions, state.masses, state.sizes,
                                   s.scaling_ratio, s.adjust_sizes)

    def _gravity(self, state: SimulationState) -> np.ndarray:
        s = self.settings
        delta = state.positions - np.asarray(state.anchor)
        if s.strong_gravity_mode:
            factor = state.masses * s.gravity
        else:
            distance = np.hypot(delta[:, 0], delta[:, 1])
            safe = np.where(distance > 0, distance, 1.0)
            factor = np.where(distance > 0, state.masses * s.gravity / safe, 0.0)
        return -delta * factor[:, None]

    def _apply_attraction(self, state: SimulationState, forces: np.ndarray) -> None:
        if state.edge_source.size == 0:
            return
        s = self.settings
        src, dst = state.edge_source, state.edge_target

        coefficient = float(state.masses.mean()) if s.outbound_attraction_distribution else 1.0

        if s.edge_weight_influence == 0:
            weights = np.ones_like(state.edge_weight)
        elif s.edge_weight_influence == 1:
            weights = state.edge_weight
        else:
            weights = state.edge_weight ** s.edge_weight_influence

        delta = state.positions[src] - state.positions[dst]
        distance = np.hypot(delta[:, 0], delta[:, 1])
        if s.adjust_sizes:
            distance = distance - state.sizes[src] - state.sizes[dst]
            active = distance > 0
        elif s.lin_log_mode:
            active = distance > 0
        else:
            active = np.ones_like(distance, dtype=bool)

        factor = -coefficient * weights
        if s.lin_log_mode:
            safe = np.where(active, distance, 1.0)
            factor = factor * np.log1p(np.where(active, distance, 0.0)) / safe
        if s.outbound_attraction_distribution:
            factor = factor / state.masses[src]
        factor = np.where(active, factor, 0.0)

        pull = delta * factor[:, None]
        n = state.node_count
        for axis in (0, 1):
            forces[:, axis] += np.bincount(src, weights=pull[:, axis], minlength=n)
            forces[:, axis] -= np.bincount(dst, weights=pull[:, axis], minlength=n)

    def _apply_forces(self, state: SimulationState) -> None:
        s = self.settings
        forces = state.forces

        if s.adjust_sizes:
            magnitude = np.hypot(forces[:, 0], forces[:, 1])
            scale = np.where(magnitude > MAX_FORCE, MAX_FORCE / np.where(magnitude > 0, magnitude, 1.0), 1.0)
            forces *= scale[:, None]

        diff = state.old_forces - forces
        swinging = state.masses * np.hypot(diff[:, 0], diff[:, 1])
        total = state.old_forces + forces
        traction = np.hypot(total[:, 0], total[:, 1]) / 2

        if s.adjust_sizes:
            speed = 0.1 * np.log1p(traction) / (1 + np.sqrt(swinging))
        else:
            speed = state.convergence * np.log1p(traction) / (1 + np.sqrt(swinging))
            magnitude_sq = forces[:, 0] ** 2 + forces[:, 1] ** 2
            state.convergence = np.minimum(1.0, np.sqrt(speed * magnitude_sq / (1 + np.sqrt(swinging))))

        step = forces * (speed / s.slow_down)[:, None]
        step[state.fixed] = 0.0
        state.positions += step
