"""
Speed statistics derived from accepted path segments.
"""

from dataclasses import dataclass
from typing import Optional

from tracker.models.session import MIN_SEGMENT_DURATION_S


@dataclass(frozen=True)
class SpeedUpdate:
    """Speeds after one accepted segment (all m/s)."""

    segment_speed_mps: float
    max_speed_mps: float
    average_speed_mps: float


class SpeedEstimator:
    """
    Segment, max and average speed for one session.

    Average speed is distance-to-date over time-to-date and is recomputed
    from the totals on every update. Device-reported speed is kept apart
    and never feeds the computed values.
    """

    def __init__(self, epsilon_s: float = MIN_SEGMENT_DURATION_S):
        if epsilon_s <= 0:
            raise ValueError("epsilon_s must be > 0")
        self.epsilon_s = epsilon_s
        self.reset()

    def reset(self) -> None:
        self.current_speed_mps = 0.0
        self.max_speed_mps = 0.0
        self.average_speed_mps = 0.0
        self.reported_speed_mps: Optional[float] = None
        self.max_reported_speed_mps = 0.0

    def segment_speed(self, segment_distance_m: float, segment_duration_s: float) -> float:
        return segment_distance_m / max(segment_duration_s, self.epsilon_s)

    @staticmethod
    def average_speed(total_distance_m: float, elapsed_s: float) -> float:
        if elapsed_s <= 0:
            return 0.0
        return total_distance_m / elapsed_s

    def update(
        self,
        segment_distance_m: float,
        segment_duration_s: float,
        total_distance_m: float,
        elapsed_s: float,
    ) -> SpeedUpdate:
        """
        Fold one accepted segment into the statistics.

        `total_distance_m` must already include the segment.

        Raises:
            ValueError: if the segment duration is not positive
        """
        if segment_duration_s <= 0:
            raise ValueError(f"Segment duration must be positive, got {segment_duration_s}")

        self.current_speed_mps = self.segment_speed(segment_distance_m, segment_duration_s)
        self.max_speed_mps = max(self.max_speed_mps, self.current_speed_mps)
        self.refresh_average(total_distance_m, elapsed_s)

        return SpeedUpdate(
            segment_speed_mps=self.current_speed_mps,
            max_speed_mps=self.max_speed_mps,
            average_speed_mps=self.average_speed_mps,
        )

    def refresh_average(self, total_distance_m: float, elapsed_s: float) -> float:
        self.average_speed_mps = self.average_speed(total_distance_m, elapsed_s)
        return self.average_speed_mps

    def observe_reported(self, speed_mps: Optional[float]) -> None:
        """Track the source's own speed field; None or negative clears it."""
        if speed_mps is None or not speed_mps >= 0:
            self.reported_speed_mps = None
            return
        self.reported_speed_mps = float(speed_mps)
        self.max_reported_speed_mps = max(self.max_reported_speed_mps, self.reported_speed_mps)
