"""
Sample filter.

Decides whether a raw fix may grow the path, may only refresh the
displayed position, or must be dropped outright.
"""

from __future__ import annotations

import logging
from typing import Optional

from tracker.models.geo import GeoSample, PathPoint
from tracker.models.session import (
    ACCURACY_THRESHOLD_M,
    MOVEMENT_THRESHOLD_M,
    FilterDecision,
    FilterReason,
    FilterResult,
)
from tracker.services.distance import distance_between


logger = logging.getLogger(__name__)


class SampleFilter:
    """
    Accuracy gate plus movement threshold.

    Order of checks:
    1. malformed sample -> REJECTED
    2. accuracy above threshold -> REJECTED
    3. no previous point -> ACCEPTED (first fix)
    4. moved less than the movement threshold -> IGNORED
    5. segment duration <= 0 -> IGNORED
    6. otherwise -> ACCEPTED

    Never raises.
    """

    def __init__(
        self,
        accuracy_threshold_m: float = ACCURACY_THRESHOLD_M,
        movement_threshold_m: float = MOVEMENT_THRESHOLD_M,
    ):
        self.accuracy_threshold_m = accuracy_threshold_m
        self.movement_threshold_m = movement_threshold_m

    def evaluate(self, sample: GeoSample, previous: Optional[PathPoint]) -> FilterResult:
        try:
            well_formed = sample.is_well_formed()
        except (AttributeError, TypeError):
            well_formed = False
        if not well_formed:
            logger.debug(f"Rejected malformed sample: {sample!r}")
            return FilterResult(FilterDecision.REJECTED, FilterReason.MALFORMED)

        if sample.accuracy_m > self.accuracy_threshold_m:
            logger.debug(
                f"GPS accuracy too low: {sample.accuracy_m:.0f}m "
                f"(threshold {self.accuracy_threshold_m:.0f}m)"
            )
            return FilterResult(FilterDecision.REJECTED, FilterReason.LOW_ACCURACY)

        if previous is None:
            return FilterResult(FilterDecision.ACCEPTED, FilterReason.FIRST_FIX)

        distance = distance_between(previous.sample, sample)
        duration = (sample.captured_at_ms - previous.captured_at_ms) / 1000.0

        if distance < self.movement_threshold_m:
            return FilterResult(
                FilterDecision.IGNORED,
                FilterReason.BELOW_MOVEMENT_THRESHOLD,
                segment_distance_m=distance,
                segment_duration_s=duration,
            )

        if duration <= 0:
            logger.debug(f"Non-positive segment duration ({duration:.3f}s), sample not accrued")
            return FilterResult(
                FilterDecision.IGNORED,
                FilterReason.NON_POSITIVE_DURATION,
                segment_distance_m=distance,
                segment_duration_s=duration,
            )

        return FilterResult(
            FilterDecision.ACCEPTED,
            FilterReason.MOVED,
            segment_distance_m=distance,
            segment_duration_s=duration,
        )
