"""
Tracking session model (v1).

State enums, filter outcomes, engine configuration and the immutable
snapshot published to subscribers after every change.
"""

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from tracker.models.geo import GeoSample, PathPoint


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def _env_optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    if not raw or raw in ("0", "none", "None"):
        return None
    return int(raw)


ACCURACY_THRESHOLD_M = _env_float("GPSTRACK_ACCURACY_THRESHOLD_M", "50")
MOVEMENT_THRESHOLD_M = _env_float("GPSTRACK_MOVEMENT_THRESHOLD_M", "3")
MIN_SEGMENT_DURATION_S = 1e-3
SNAPSHOT_PATH_LIMIT = _env_optional_int("GPSTRACK_SNAPSHOT_PATH_LIMIT")
MAX_PATH_POINTS = _env_optional_int("GPSTRACK_MAX_PATH_POINTS")


class SessionState(Enum):
    """Lifecycle state of a tracking session."""

    IDLE = "idle"
    TRACKING = "tracking"
    STOPPED = "stopped"
    FAILED = "failed"


class FilterDecision(Enum):
    """What a sample is allowed to change."""

    ACCEPTED = "accepted"   # becomes the next path point
    IGNORED = "ignored"     # refreshes current position only
    REJECTED = "rejected"   # no effect at all


class FilterReason(Enum):
    FIRST_FIX = "first_fix"
    MOVED = "moved"
    MALFORMED = "malformed"
    LOW_ACCURACY = "low_accuracy"
    BELOW_MOVEMENT_THRESHOLD = "below_movement_threshold"
    NON_POSITIVE_DURATION = "non_positive_duration"


@dataclass(frozen=True)
class FilterResult:
    """Outcome of running one sample through the filter."""

    decision: FilterDecision
    reason: FilterReason
    segment_distance_m: float = 0.0
    segment_duration_s: float = 0.0

    @property
    def accepted(self) -> bool:
        return self.decision is FilterDecision.ACCEPTED

    @property
    def refreshes_position(self) -> bool:
        return self.decision is not FilterDecision.REJECTED


@dataclass(frozen=True)
class TrackingConfig:
    """Tuning knobs for a tracking session."""

    accuracy_threshold_m: float = ACCURACY_THRESHOLD_M
    movement_threshold_m: float = MOVEMENT_THRESHOLD_M
    min_segment_duration_s: float = MIN_SEGMENT_DURATION_S
    snapshot_path_limit: Optional[int] = SNAPSHOT_PATH_LIMIT   # None = whole path
    max_path_points: Optional[int] = MAX_PATH_POINTS           # None = unbounded

    def __post_init__(self):
        if self.accuracy_threshold_m < 0:
            raise ValueError("accuracy_threshold_m must be >= 0")
        if self.movement_threshold_m < 0:
            raise ValueError("movement_threshold_m must be >= 0")
        if self.min_segment_duration_s <= 0:
            raise ValueError("min_segment_duration_s must be > 0")
        for name in ("snapshot_path_limit", "max_path_points"):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValueError(f"{name} must be >= 1 or None")

    def with_overrides(self, **overrides) -> "TrackingConfig":
        """Copy with the given non-None fields replaced."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass(frozen=True)
class PositionSourceOptions:
    """Watch options advertised to clients for their position source."""

    enable_high_accuracy: bool = True
    timeout_ms: int = int(os.getenv("GPSTRACK_WATCH_TIMEOUT_MS", "10000"))
    maximum_age_ms: int = int(os.getenv("GPSTRACK_WATCH_MAXIMUM_AGE_MS", "1000"))


@dataclass
class SampleCounters:
    """Per-session sample bookkeeping."""

    accepted: int = 0
    ignored: int = 0
    rejected: int = 0
    dropped: int = 0   # delivered while not tracking

    def copy(self) -> "SampleCounters":
        return replace(self)


@dataclass(frozen=True)
class SessionSnapshot:
    """
    Read-only view of a session, published on every change.

    `path` holds at most `snapshot_path_limit` of the most recent points;
    `path_length` is the number of points the session currently retains.
    """

    session_id: str
    state: SessionState
    current_position: Optional[GeoSample]
    path: tuple[PathPoint, ...]
    path_length: int
    total_distance_m: float
    average_speed_mps: float
    max_speed_mps: float
    current_speed_mps: float
    reported_speed_mps: Optional[float]
    max_reported_speed_mps: float
    elapsed_s: float
    started_at_ms: Optional[int]
    last_error: Optional[str]
    counters: SampleCounters = field(default_factory=SampleCounters)

    @property
    def accuracy_m(self) -> Optional[float]:
        if self.current_position is None:
            return None
        return self.current_position.accuracy_m
