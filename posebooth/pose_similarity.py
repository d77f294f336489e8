#!/usr/bin/env python3
"""
Pose Similarity Module
Compares two silhouette descriptors (live frame vs. reference pose)

Created: 2025
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

from .log import get_logger
from .types import PersonDescriptor

logger = get_logger(__name__)

DEFAULT_TOLERANCES: Dict[str, float] = {
    "aspect": 1.5,
    "center_x": 0.25,
    "center_y": 0.25,
    "area": 0.3,
}

# Centering and body aspect dominate; area is down-weighted.
DEFAULT_WEIGHTS: Dict[str, float] = {
    "aspect": 0.3,
    "center_x": 0.3,
    "center_y": 0.3,
    "area": 0.1,
}

AXES = ("aspect", "center_x", "center_y", "area")


class PoseSimilarityScorer:
    """Weighted per-axis similarity between two PersonDescriptors"""

    def __init__(
        self,
        tolerances: Optional[Mapping[str, float]] = None,
        weights: Optional[Mapping[str, float]] = None,
    ):
        """
        Initialize scorer
        Args:
            tolerances: Per-axis difference at which that axis scores zero
            weights: Per-axis weight of the final score
        """
        self.tolerances = dict(DEFAULT_TOLERANCES)
        self.tolerances.update(tolerances or {})
        self.weights = dict(DEFAULT_WEIGHTS)
        self.weights.update(weights or {})

    def score(self, current: Optional[PersonDescriptor], reference: Optional[PersonDescriptor]) -> float:
        """
        Score how closely the current silhouette matches the reference
        Args:
            current: Descriptor of the live frame
            reference: Descriptor of the reference pose
        Returns:
            Similarity in [0, 1]; 0 when either descriptor is missing
        """
        if current is None or reference is None:
            return 0.0

        breakdown = self.breakdown(current, reference)
        total_weight = sum(self.weights[axis] for axis in AXES)
        if total_weight <= 0:
            return 0.0

        # Normalised by the weight total: an identical pose scores exactly 1.0.
        similarity = sum(self.weights[axis] * breakdown[axis] for axis in AXES) / total_weight
        similarity = max(0.0, min(1.0, similarity))

        logger.debug(
            "pose similarity %.3f (aspect=%.2f cx=%.2f cy=%.2f area=%.2f)",
            similarity,
            breakdown["aspect"],
            breakdown["center_x"],
            breakdown["center_y"],
            breakdown["area"],
        )
        return similarity

    def breakdown(self, current: PersonDescriptor, reference: PersonDescriptor) -> Dict[str, float]:
        """Per-axis similarities, each in [0, 1]"""
        diffs = {
            "aspect": abs(current.aspect_ratio - reference.aspect_ratio),
            "center_x": abs(current.relative_center_x - reference.relative_center_x),
            "center_y": abs(current.relative_center_y - reference.relative_center_y),
            "area": abs(current.area_ratio - reference.area_ratio),
        }
        return {axis: max(0.0, 1.0 - diffs[axis] / self.tolerances[axis]) for axis in AXES}
