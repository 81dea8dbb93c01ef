"""Runtime configuration for the layout host, cache and pipeline."""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _env(name: str, parse: Callable[[str], T], default: T) -> T:
    """Read and parse an environment variable, keeping the default when unset."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r} ({e})") from e


@dataclass
class LayoutConfig:
    """Configuration for layout execution."""
    # Graphs below this node count are laid out inline on the caller's thread
    worker_threshold: int = 150
    timeout_seconds: float = 30.0
    # Wall-clock cap on the force simulation of one request
    compute_budget_seconds: float = 10.0
    use_worker_thread: bool = True
    cache_size: int = 20
    # Viewport padding applied by the coordinate normalizer
    padding: float = 80.0
    # Overlap resolution
    overlap_min_distance_small: float = 15.0
    overlap_min_distance_large: float = 10.0
    overlap_max_iterations: int = 50

    def __post_init__(self):
        if self.worker_threshold < 0:
            raise ValueError("worker_threshold must be non-negative")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.compute_budget_seconds <= 0:
            raise ValueError("compute_budget_seconds must be positive")
        if self.cache_size < 1:
            raise ValueError("cache_size must be at least 1")

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "LayoutConfig":
        """Build a configuration from the environment (and an optional .env file)."""
        load_dotenv(dotenv_path)
        defaults = cls()
        config = cls(
            worker_threshold=_env("COAUTHOR_LAYOUT_WORKER_THRESHOLD", int, defaults.worker_threshold),
            timeout_seconds=_env("COAUTHOR_LAYOUT_TIMEOUT", float, defaults.timeout_seconds),
            compute_budget_seconds=_env("COAUTHOR_LAYOUT_COMPUTE_BUDGET", float,
                                        defaults.compute_budget_seconds),
            use_worker_thread=_env("COAUTHOR_LAYOUT_USE_WORKER", _parse_bool, defaults.use_worker_thread),
            cache_size=_env("COAUTHOR_LAYOUT_CACHE_SIZE", int, defaults.cache_size),
        )
        logger.debug(f"Loaded layout configuration: {config}")
        return config

    def overlap_min_distance(self, node_count: int) -> float:
        """Minimum gap between node discs; denser graphs get a tighter gap."""
        if node_count > 500:
            return self.overlap_min_distance_large
        return self.overlap_min_distance_small
