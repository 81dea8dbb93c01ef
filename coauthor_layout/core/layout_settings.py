"""ForceAtlas2 tuning and size-adaptive schedules."""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ForceAtlas2Settings:
    """Tuning parameters for the force simulation."""
    # Performance
    barnes_hut_optimize: bool = True
    barnes_hut_theta: float = 0.5
    # Tuning
    gravity: float = 0.5
    scaling_ratio: float = 6.0
    strong_gravity_mode: bool = False
    slow_down: float = 2.0
    # Behavior alternatives
    adjust_sizes: bool = True
    edge_weight_influence: float = 0.5
    lin_log_mode: bool = True
    outbound_attraction_distribution: bool = True

    def __post_init__(self):
        if self.barnes_hut_theta <= 0:
            raise ValueError("barnes_hut_theta must be positive")
        if self.slow_down <= 0:
            raise ValueError("slow_down must be positive")
        if self.scaling_ratio <= 0:
            raise ValueError("scaling_ratio must be positive")


BASE_SETTINGS = ForceAtlas2Settings()


def adaptive_settings(node_count: int) -> ForceAtlas2Settings:
    """Get settings for a graph of ``node_count`` nodes.

    Larger graphs get a coarser Barnes-Hut approximation, more damping and a
    stronger repulsion scale; the largest tier also weakens gravity.
    """
    if node_count <= 200:
        return BASE_SETTINGS

    if node_count <= 500:
        return replace(BASE_SETTINGS, barnes_hut_theta=0.6, slow_down=3.0)

    if node_count <= 1000:
        return replace(BASE_SETTINGS, barnes_hut_theta=0.8, slow_down=4.0, scaling_ratio=8.0)

    return replace(
        BASE_SETTINGS,
        barnes_hut_theta=1.0,
        slow_down=5.0,
        scaling_ratio=10.0,
        gravity=0.3,
    )


@dataclass(frozen=True)
class ConvergenceSchedule:
    """Batching and stopping rule for the convergence controller."""
    batch_size: int
    max_iterations: int
    # Stop once summed per-node displacement over one batch drops below this
    displacement_threshold: float

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")


def convergence_schedule(node_count: int) -> ConvergenceSchedule:
    """Get the batch size, iteration ceiling and threshold for a graph size."""
    batch_size = 150 if node_count > 500 else 100

    if node_count > 1000:
        max_iterations = 1500
    elif node_count > 500:
        max_iterations = 2000
    else:
        max_iterations = 3000

    # Dense graphs do not need pixel-perfect settling
    per_node = 1.0 if node_count > 500 else 0.5

    return ConvergenceSchedule(
        batch_size=batch_size,
        max_iterations=max_iterations,
        displacement_threshold=per_node * node_count,
    )
