"""
Incremental great-circle distance accumulation.
"""

import math

from tracker.models.geo import GeoSample
from tracker.utils.geodesy import haversine_distance


def distance_between(a: GeoSample, b: GeoSample) -> float:
    """Great-circle distance in meters between two samples (symmetric, 0 for equal points)."""
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def accumulate(previous_total: float, segment_distance: float) -> float:
    """
    Add one segment to a running total.

    Raises:
        ValueError: if either value is negative or not finite
    """
    if not math.isfinite(previous_total) or previous_total < 0:
        raise ValueError(f"Invalid running total: {previous_total}")
    if not math.isfinite(segment_distance) or segment_distance < 0:
        raise ValueError(f"Invalid segment distance: {segment_distance}")
    return previous_total + segment_distance


class DistanceAccumulator:
    """
    Running distance total for one session.

    The total only grows; `reset()` is the only way back to zero.
    """

    distance_between = staticmethod(distance_between)
    accumulate = staticmethod(accumulate)

    def __init__(self):
        self._total_m = 0.0
        self._segments = 0

    @property
    def total_m(self) -> float:
        return self._total_m

    @property
    def segment_count(self) -> int:
        return self._segments

    def add(self, segment_distance: float) -> float:
        """Add a segment and return the new total."""
        self._total_m = accumulate(self._total_m, segment_distance)
        self._segments += 1
        return self._total_m

    def reset(self) -> None:
        self._total_m = 0.0
        self._segments = 0
