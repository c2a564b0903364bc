"""
Tracking session engine.

Turns a stream of raw fixes into an ordered path with distance and speed
statistics. One session belongs to one controller (the only caller of
start/ingest/stop/fail/reset); any number of read-only observers can
subscribe to the snapshots it publishes.

State machine:

    Idle --start()--> Tracking
    Tracking --ingest()--> Tracking
    Tracking --stop()--> Stopped
    Tracking --fail()--> Failed
    Stopped --start()--> Tracking
    any --reset()--> Idle

The engine is synchronous and has no timers. Per-sample anomalies are
filtered and logged, never raised.
"""

import itertools
import logging
import time
import uuid
from collections import deque
from typing import Callable, Iterable, Optional, Union

from tracker.models.errors import PositionSourceError, SessionStateError
from tracker.models.geo import GeoSample, PathPoint
from tracker.models.session import (
    FilterDecision,
    SampleCounters,
    SessionSnapshot,
    SessionState,
    TrackingConfig,
)
from tracker.services.distance import DistanceAccumulator
from tracker.services.sample_filter import SampleFilter
from tracker.services.speed import SpeedEstimator
from tracker.utils.geodesy import initial_bearing


logger = logging.getLogger(__name__)

Clock = Callable[[], int]
Subscriber = Callable[[SessionSnapshot], None]


def wall_clock_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


class TrackingSession:
    """In-memory tracking session with its own path and accumulators."""

    def __init__(
        self,
        config: Optional[TrackingConfig] = None,
        session_id: Optional[str] = None,
        clock: Optional[Clock] = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex[:16]
        self.config = config or TrackingConfig()
        self._clock = clock or wall_clock_ms

        self._filter = SampleFilter(
            accuracy_threshold_m=self.config.accuracy_threshold_m,
            movement_threshold_m=self.config.movement_threshold_m,
        )
        self._distance = DistanceAccumulator()
        self._speed = SpeedEstimator(epsilon_s=self.config.min_segment_duration_s)
        self._subscribers: list[Subscriber] = []

        self._state = SessionState.IDLE
        self._clear()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def path(self) -> tuple[PathPoint, ...]:
        return tuple(self._path)

    @property
    def current_position(self) -> Optional[GeoSample]:
        return self._current_position

    @property
    def total_distance_m(self) -> float:
        return self._distance.total_m

    @property
    def max_speed_mps(self) -> float:
        return self._speed.max_speed_mps

    @property
    def average_speed_mps(self) -> float:
        return self._speed.average_speed_mps

    @property
    def started_at_ms(self) -> Optional[int]:
        return self._started_at_ms

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def counters(self) -> SampleCounters:
        return self._counters.copy()

    @property
    def elapsed_s(self) -> float:
        """
        Seconds from start to the latest fix seen.

        Once stopped or failed, measured up to that moment instead.
        """
        if self._started_at_ms is None:
            return 0.0
        end_ms = self._started_at_ms
        if self._last_seen_ms is not None:
            end_ms = max(end_ms, self._last_seen_ms)
        if self._state in (SessionState.STOPPED, SessionState.FAILED) and self._ended_at_ms is not None:
            end_ms = max(end_ms, self._ended_at_ms)
        return (end_ms - self._started_at_ms) / 1000.0

    def snapshot(self, path_limit: Optional[int] = None) -> SessionSnapshot:
        """
        Build a snapshot of the current session.

        Args:
            path_limit: Most recent points to include; defaults to the
                configured snapshot_path_limit (None = whole path)
        """
        limit = path_limit if path_limit is not None else self.config.snapshot_path_limit
        if limit is None or limit >= len(self._path):
            path = tuple(self._path)
        else:
            path = tuple(itertools.islice(self._path, len(self._path) - max(limit, 0), None))

        return SessionSnapshot(
            session_id=self.session_id,
            state=self._state,
            current_position=self._current_position,
            path=path,
            path_length=len(self._path),
            total_distance_m=self._distance.total_m,
            average_speed_mps=self._speed.average_speed_mps,
            max_speed_mps=self._speed.max_speed_mps,
            current_speed_mps=self._speed.current_speed_mps,
            reported_speed_mps=self._speed.reported_speed_mps,
            max_reported_speed_mps=self._speed.max_reported_speed_mps,
            elapsed_s=self.elapsed_s,
            started_at_ms=self._started_at_ms,
            last_error=self._last_error,
            counters=self._counters.copy(),
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a snapshot observer.

        Returns:
            A callable that removes the subscription (safe to call twice)
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _publish(self) -> SessionSnapshot:
        snap = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snap)
            except Exception:
                logger.exception(f"Snapshot subscriber failed for session {self.session_id}")
        return snap

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> SessionSnapshot:
        """
        Begin (or re-arm) tracking: clears path and statistics.

        Raises:
            SessionStateError: if the session is Failed (reset() first)
        """
        if self._state is SessionState.FAILED:
            raise SessionStateError(
                f"Session {self.session_id} has failed ({self._last_error}); call reset() before start()"
            )
        if self._state is SessionState.TRACKING:
            logger.warning(f"start() ignored, session {self.session_id} is already tracking")
            return self.snapshot()

        self._clear()
        self._started_at_ms = self._clock()
        self._state = SessionState.TRACKING
        logger.info(f"Session {self.session_id} started tracking")
        return self._publish()

    def stop(self) -> SessionSnapshot:
        """Stop tracking and keep the path for inspection. Idempotent."""
        if self._state is not SessionState.TRACKING:
            logger.debug(f"stop() ignored, session {self.session_id} is {self._state.value}")
            return self.snapshot()

        self._ended_at_ms = self._clock()
        self._state = SessionState.STOPPED
        logger.info(
            f"Session {self.session_id} stopped: {len(self._path)} points, "
            f"{self._distance.total_m:.1f} m"
        )
        return self._publish()

    def fail(self, error: Union[PositionSourceError, BaseException, str]) -> SessionSnapshot:
        """
        Record a fatal position source error and move to Failed.

        Ignored unless the session is tracking.
        """
        if self._state is not SessionState.TRACKING:
            logger.warning(f"Source error ignored, session {self.session_id} is {self._state.value}: {error}")
            return self.snapshot()

        if isinstance(error, PositionSourceError):
            message = error.message
        else:
            message = str(error) or type(error).__name__

        self._ended_at_ms = self._clock()
        self._last_error = message
        self._state = SessionState.FAILED
        logger.error(f"Session {self.session_id} failed: {message}")
        return self._publish()

    def reset(self) -> SessionSnapshot:
        """Discard everything and return to Idle."""
        self._clear()
        self._state = SessionState.IDLE
        logger.info(f"Session {self.session_id} reset")
        return self._publish()

    def _clear(self) -> None:
        self._path: deque[PathPoint] = deque(maxlen=self.config.max_path_points)
        self._current_position: Optional[GeoSample] = None
        self._started_at_ms: Optional[int] = None
        self._ended_at_ms: Optional[int] = None
        self._last_seen_ms: Optional[int] = None
        self._last_error: Optional[str] = None
        self._counters = SampleCounters()
        self._distance.reset()
        self._speed.reset()

    # ------------------------------------------------------------------
    # Sample pipeline
    # ------------------------------------------------------------------

    def ingest(self, sample: GeoSample) -> SessionSnapshot:
        """
        Run one fix through the filter and fold it into the statistics.

        Outside Tracking the sample is dropped with a warning.
        """
        if self._state is not SessionState.TRACKING:
            self._counters.dropped += 1
            logger.warning(f"Sample dropped, session {self.session_id} is {self._state.value}")
            return self.snapshot()

        previous = self._path[-1] if self._path else None
        result = self._filter.evaluate(sample, previous)

        if result.decision is FilterDecision.REJECTED:
            self._counters.rejected += 1
            return self.snapshot()

        self._current_position = sample
        if self._last_seen_ms is None or sample.captured_at_ms > self._last_seen_ms:
            self._last_seen_ms = sample.captured_at_ms
        self._speed.observe_reported(sample.speed_mps)

        if result.decision is FilterDecision.IGNORED:
            self._counters.ignored += 1
            return self._publish()

        if previous is None:
            point = PathPoint(
                sample=sample,
                cumulative_distance_m=self._distance.total_m,
                course_deg=sample.valid_heading_deg,
            )
            self._speed.refresh_average(self._distance.total_m, self._elapsed_at(sample))
        else:
            total = self._distance.add(result.segment_distance_m)
            update = self._speed.update(
                segment_distance_m=result.segment_distance_m,
                segment_duration_s=result.segment_duration_s,
                total_distance_m=total,
                elapsed_s=self._elapsed_at(sample),
            )
            course = sample.valid_heading_deg
            if course is None:
                course = initial_bearing(
                    previous.latitude, previous.longitude, sample.latitude, sample.longitude
                )
            point = PathPoint(
                sample=sample,
                cumulative_distance_m=total,
                segment_distance_m=result.segment_distance_m,
                segment_speed_mps=update.segment_speed_mps,
                course_deg=course,
            )

        self._path.append(point)
        self._counters.accepted += 1
        logger.debug(
            f"Session {self.session_id}: point {self._counters.accepted} "
            f"+{point.segment_distance_m:.1f} m, total {point.cumulative_distance_m:.1f} m"
        )
        return self._publish()

    def ingest_many(self, samples: Iterable[GeoSample]) -> SessionSnapshot:
        """Ingest samples in the given order and return the final snapshot."""
        snap = None
        for sample in samples:
            snap = self.ingest(sample)
        return snap if snap is not None else self.snapshot()

    def _elapsed_at(self, sample: GeoSample) -> float:
        if self._started_at_ms is None:
            return 0.0
        return (sample.captured_at_ms - self._started_at_ms) / 1000.0
