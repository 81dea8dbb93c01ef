"""Coordinate normalization from simulation space into the viewport."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from .models import LayoutResult

logger = logging.getLogger(__name__)

DEFAULT_PADDING = 80.0


@dataclass(frozen=True)
class ViewportTransform:
    """Uniform scale plus offset mapping simulation coordinates to the viewport."""
    scale: float
    offset_x: float
    offset_y: float

    def apply(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.scale + self.offset_x, y * self.scale + self.offset_y


class CoordinateNormalizer:
    """Fits simulation coordinates into a padded viewport, preserving aspect ratio."""

    def __init__(self, viewport_width: float, viewport_height: float,
                 padding: float = DEFAULT_PADDING):
        """Initialize normalizer for a viewport.

        Args:
            viewport_width: Target width in viewport units
            viewport_height: Target height in viewport units
            padding: Margin kept free on every side
        """
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.padding = padding

    @property
    def center(self) -> Tuple[float, float]:
        return self.viewport_width / 2, self.viewport_height / 2

    def fit(self, positions: np.ndarray) -> ViewportTransform:
        """Compute the transform that centres the bounding box of ``positions``.

        A zero-width or zero-height box falls back to a denominator of 1 on that
        axis, so coincident nodes never cause a division by zero.
        """
        if positions.size == 0:
            return ViewportTransform(1.0, 0.0, 0.0)

        min_x, min_y = positions.min(axis=0)
        max_x, max_y = positions.max(axis=0)
        span_x = max_x - min_x
        span_y = max_y - min_y

        scale_x = (self.viewport_width - 2 * self.padding) / (span_x or 1)
        scale_y = (self.viewport_height - 2 * self.padding) / (span_y or 1)
        scale = min(scale_x, scale_y)

        offset_x = (self.viewport_width - span_x * scale) / 2 - min_x * scale
        offset_y = (self.viewport_height - span_y * scale) / 2 - min_y * scale

        return ViewportTransform(float(scale), float(offset_x), float(offset_y))

    def normalize(self, node_ids, positions: np.ndarray,
                  center_node_id: Optional[str]) -> LayoutResult:
        """Map every node into the viewport; the centre node goes to the exact centre.

        Args:
            node_ids: Node ids, aligned with the rows of ``positions``
            positions: (N, 2) simulation coordinates
            center_node_id: Id pinned to the viewport centre

        Returns:
            Mapping of node id to viewport (x, y)
        """
        transform = self.fit(positions)
        center = self.center

        result: Dict[str, Tuple[float, float]] = {}
        for node_id, (x, y) in zip(node_ids, positions):
            if node_id == center_node_id:
                result[node_id] = center
            else:
                result[node_id] = transform.apply(float(x), float(y))

        logger.debug(f"Normalized {len(result)} positions with scale {transform.scale:.4f}")
        return result
