"""Heuristic subject distance from mask occupancy, with EMA smoothing."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from .types import DistanceSample, PersonDescriptor

# (effective ratio lower bound, distance in metres); first match wins.
DEFAULT_LADDER: Tuple[Tuple[float, float], ...] = (
    (0.25, 0.5),
    (0.15, 0.8),
    (0.08, 1.2),
    (0.04, 1.8),
    (0.01, 2.2),
)
FAR_DISTANCE = 2.5
SMOOTHING_FACTOR = 0.3
IN_RANGE_MAX = 1.0


class DistanceEstimator:
    """Bucket occupancy into a distance and damp it across frames.

    The estimator itself is stateless: the previous smoothed value lives in
    the caller's session state and is passed back in on every tick.
    """

    def __init__(
        self,
        *,
        ladder: Sequence[Sequence[float]] = DEFAULT_LADDER,
        far_distance: float = FAR_DISTANCE,
        smoothing_factor: float = SMOOTHING_FACTOR,
        in_range_max: float = IN_RANGE_MAX,
    ) -> None:
        self.ladder = tuple((float(r), float(d)) for r, d in ladder)
        self.far_distance = float(far_distance)
        self.smoothing_factor = float(smoothing_factor)
        self.in_range_max = float(in_range_max)

    def estimate(self, descriptor: Optional[PersonDescriptor]) -> float:
        if descriptor is None:
            return self.far_distance
        return self.distance_for_ratio(descriptor.effective_ratio)

    def distance_for_ratio(self, effective_ratio: float) -> float:
        for lower_bound, distance in self.ladder:
            if effective_ratio > lower_bound:
                return distance
        return self.far_distance

    def smooth(self, raw: float, previous: float) -> float:
        if previous == 0:
            return raw
        alpha = self.smoothing_factor
        return previous * (1.0 - alpha) + raw * alpha

    def in_range(self, distance: float) -> bool:
        return distance <= self.in_range_max

    def update(self, descriptor: Optional[PersonDescriptor], previous: float) -> DistanceSample:
        """Estimate, smooth and range-check one frame.

        A missing subject is never in range, even while the smoothed value
        is still converging towards the far bucket.
        """
        raw = self.estimate(descriptor)
        smoothed = self.smooth(raw, previous)
        in_range = descriptor is not None and self.in_range(smoothed)
        return DistanceSample(raw=raw, smoothed=smoothed, in_range=in_range)
