"""
Tests for the tracking session engine.
"""

import math

import pytest
from numpy.testing import assert_allclose

from tracker.models.errors import PositionErrorCode, PositionSourceError, SessionStateError
from tracker.models.geo import GeoSample
from tracker.models.session import SessionState, TrackingConfig
from tracker.services.distance import distance_between
from tracker.services.session import TrackingSession
from tracker.utils.simulation import generate_stationary, generate_walk


@pytest.fixture
def session(clock):
    """Idle session with default thresholds and a controllable clock."""
    return TrackingSession(config=TrackingConfig(), session_id="test", clock=clock)


@pytest.fixture
def tracking(session):
    session.start()
    return session


class TestLifecycle:
    """Tests for state transitions."""

    def test_created_idle(self, session):
        """A new session is idle with nothing recorded."""
        assert session.state is SessionState.IDLE
        assert session.path == ()
        assert session.started_at_ms is None
        assert session.last_error is None

    def test_start(self, session, clock):
        """start() enters Tracking and stamps the start time."""
        clock.now_ms = 5000
        snap = session.start()

        assert snap.state is SessionState.TRACKING
        assert session.started_at_ms == 5000

    def test_start_while_tracking_is_noop(self, tracking, make_fix, clock):
        """A second start() keeps the running path and start time."""
        tracking.ingest(make_fix(14.0, 78.0, 1))
        clock.advance(30)
        tracking.start()

        assert tracking.state is SessionState.TRACKING
        assert len(tracking.path) == 1
        assert tracking.started_at_ms == 0

    def test_stop_is_idempotent(self, tracking):
        """Stopping twice stays Stopped."""
        tracking.stop()
        snap = tracking.stop()
        assert snap.state is SessionState.STOPPED

    def test_stop_from_idle_is_noop(self, session):
        """stop() on an idle session changes nothing."""
        assert session.stop().state is SessionState.IDLE

    def test_fail(self, tracking):
        """A source error moves the session to Failed with its message."""
        snap = tracking.fail(PositionSourceError(PositionErrorCode.PERMISSION_DENIED))

        assert snap.state is SessionState.FAILED
        assert "Location access denied" in snap.last_error

    def test_fail_with_plain_exception(self, tracking):
        """Any exception's text becomes the last error."""
        tracking.fail(RuntimeError("hardware unavailable"))
        assert tracking.last_error == "hardware unavailable"

    def test_fail_outside_tracking_is_ignored(self, session):
        """Errors arriving while idle are logged, not recorded."""
        session.fail("late error")
        assert session.state is SessionState.IDLE
        assert session.last_error is None

    def test_start_from_failed_requires_reset(self, tracking):
        """A failed session refuses to restart until reset."""
        tracking.fail("boom")
        with pytest.raises(SessionStateError):
            tracking.start()
        assert tracking.state is SessionState.FAILED

    def test_reset_returns_to_idle(self, tracking, make_fix):
        """reset() clears path, totals and error from any state."""
        tracking.ingest(make_fix(14.0, 78.0, 1))
        tracking.fail("boom")
        snap = tracking.reset()

        assert snap.state is SessionState.IDLE
        assert snap.path == ()
        assert snap.total_distance_m == 0.0
        assert snap.last_error is None
        assert snap.started_at_ms is None
        assert tracking.start().state is SessionState.TRACKING


class TestScenarios:
    """End-to-end scenarios over a short drive."""

    A = (14.4673, 78.8242)
    B = (14.4800, 78.8300)

    def _drive(self, session, make_fix):
        session.start()
        session.ingest(make_fix(*self.A, t_s=0, accuracy=5))
        return session.ingest(make_fix(*self.B, t_s=10, accuracy=4))

    def test_two_fixes(self, session, make_fix):
        """Two good fixes give one segment and consistent speeds."""
        snap = self._drive(session, make_fix)

        expected = distance_between(make_fix(*self.A, 0), make_fix(*self.B, 10))
        assert snap.path_length == 2
        assert snap.total_distance_m == pytest.approx(expected)
        assert_allclose(snap.total_distance_m, 1544.1, rtol=0.001)
        assert snap.current_speed_mps == pytest.approx(expected / 10)
        assert snap.max_speed_mps == pytest.approx(expected / 10)
        assert snap.average_speed_mps == pytest.approx(expected / 10)
        assert snap.elapsed_s == pytest.approx(10.0)

    def test_near_duplicate_fix_does_not_grow_path(self, session, make_fix):
        """A sub-threshold move refreshes position only."""
        before = self._drive(session, make_fix)
        snap = session.ingest(make_fix(14.480005, 78.8300, t_s=11, accuracy=4))

        assert snap.path_length == 2
        assert snap.total_distance_m == before.total_distance_m
        assert snap.current_position.latitude == 14.480005
        assert snap.counters.ignored == 1

    def test_low_accuracy_fix_rejected_outright(self, session, make_fix):
        """An inaccurate fix leaves position and totals alone."""
        before = self._drive(session, make_fix)
        snap = session.ingest(make_fix(14.49, 78.84, t_s=20, accuracy=80))

        assert snap.path_length == 2
        assert snap.total_distance_m == before.total_distance_m
        assert snap.current_position == before.current_position
        assert snap.counters.rejected == 1

    def test_ingest_after_stop(self, session, make_fix):
        """Fixes after stop() are dropped."""
        before = self._drive(session, make_fix)
        session.stop()
        snap = session.ingest(make_fix(14.49, 78.84, t_s=20, accuracy=4))

        assert snap.state is SessionState.STOPPED
        assert snap.path == before.path
        assert snap.total_distance_m == before.total_distance_m
        assert snap.counters.dropped == 1

    def test_restart_after_stop(self, session, make_fix, clock):
        """Restarting clears the previous run."""
        self._drive(session, make_fix)
        session.stop()
        clock.advance(60)
        snap = session.start()

        assert snap.state is SessionState.TRACKING
        assert snap.path == ()
        assert snap.total_distance_m == 0.0
        assert snap.max_speed_mps == 0.0
        assert snap.started_at_ms == 60000


class TestProperties:
    """Invariants over longer feeds."""

    def test_totals_monotonic(self, tracking):
        """Total distance and max speed never decrease."""
        walk = generate_walk(n_samples=80, speed_mps=4.0, turn_rate_deg_s=5.0, jitter_m=2.0, seed=7)
        totals = []
        max_speeds = []
        for sample in walk:
            snap = tracking.ingest(sample)
            totals.append(snap.total_distance_m)
            max_speeds.append(snap.max_speed_mps)

        assert totals == sorted(totals)
        assert max_speeds == sorted(max_speeds)
        assert totals[-1] > 0

    def test_stationary_jitter(self, tracking):
        """Standing still with GPS jitter adds no distance."""
        fixes = generate_stationary(n_samples=30, jitter_m=1.0, seed=3)
        snap = tracking.ingest_many(fixes)

        assert snap.path_length == 1
        assert snap.total_distance_m == 0.0
        assert snap.current_position == fixes[-1]
        assert snap.counters.ignored == 29

    def test_accuracy_gate(self, clock):
        """Low-accuracy fixes never change the outcome of a feed."""
        walk = generate_walk(n_samples=60, speed_mps=5.0, dropout_rate=0.3, seed=11)
        good = [s for s in walk if s.accuracy_m <= 50.0]
        assert len(good) < len(walk)

        noisy = TrackingSession(clock=clock)
        noisy.start()
        noisy.ingest_many(walk)
        clean = TrackingSession(clock=clock)
        clean.start()
        clean.ingest_many(good)

        assert noisy.path == clean.path
        assert noisy.total_distance_m == clean.total_distance_m
        assert all(p.sample.accuracy_m <= 50.0 for p in noisy.path)

    @pytest.mark.parametrize("state", ["idle", "stopped", "failed"])
    def test_state_guard(self, session, make_fix, state):
        """Outside Tracking, ingest only bumps the dropped counter."""
        if state != "idle":
            session.start()
            session.ingest(make_fix(14.0, 78.0, 0))
            if state == "stopped":
                session.stop()
            else:
                session.fail("boom")
        before = session.snapshot()

        session.ingest(make_fix(14.01, 78.0, 60))

        after = session.snapshot()
        assert after.path == before.path
        assert after.total_distance_m == before.total_distance_m
        assert after.counters.dropped == before.counters.dropped + 1

    def test_walk_distance(self, tracking):
        """A steady walk accrues roughly speed times duration."""
        walk = generate_walk(n_samples=60, speed_mps=5.0, jitter_m=0.5, seed=1)
        snap = tracking.ingest_many(walk)

        assert snap.path_length == 60
        assert_allclose(snap.total_distance_m, 5.0 * 59, rtol=0.2)


class TestPathPoints:
    """Per-point annotations."""

    def test_cumulative_and_course(self, tracking, make_fix):
        """Points carry running distance and a course."""
        tracking.ingest(make_fix(14.0, 78.0, 0))
        tracking.ingest(make_fix(14.0001, 78.0, 5))
        tracking.ingest(make_fix(14.0001, 78.0001, 10, heading=95.0))
        first, second, third = tracking.path

        assert first.cumulative_distance_m == 0.0
        assert first.course_deg is None
        assert second.cumulative_distance_m == pytest.approx(second.segment_distance_m)
        assert second.course_deg == pytest.approx(0.0, abs=0.01)
        assert third.cumulative_distance_m == pytest.approx(
            second.segment_distance_m + third.segment_distance_m
        )
        # reported heading wins over the computed bearing
        assert third.course_deg == 95.0
        assert third.segment_speed_mps == pytest.approx(third.segment_distance_m / 5.0)

    def test_duplicate_timestamp_refreshes_position_only(self, tracking, make_fix):
        """A fix with the previous timestamp is not accrued."""
        tracking.ingest(make_fix(14.0, 78.0, 5))
        snap = tracking.ingest(make_fix(14.001, 78.0, 5))

        assert snap.path_length == 1
        assert snap.total_distance_m == 0.0
        assert snap.current_position.latitude == 14.001

    def test_reported_speed_not_substituted(self, tracking, make_fix):
        """Device-reported speed is kept apart from computed speed."""
        tracking.ingest(make_fix(14.0, 78.0, 0, speed=40.0))
        snap = tracking.ingest(make_fix(14.0001, 78.0, 10, speed=40.0))

        assert snap.reported_speed_mps == 40.0
        assert snap.max_speed_mps == pytest.approx(snap.total_distance_m / 10.0)


class TestPathRetention:
    """Bounded path retention and snapshot slicing."""

    def test_max_path_points(self, clock):
        """Retention drops the oldest points but keeps their distance."""
        session = TrackingSession(config=TrackingConfig(max_path_points=5), clock=clock)
        session.start()
        walk = generate_walk(n_samples=20, speed_mps=5.0, jitter_m=0.0, seed=2)
        snap = session.ingest_many(walk)

        assert snap.path_length == 5
        assert snap.path[-1].sample == walk[-1]
        # totals keep the evicted segments
        assert snap.total_distance_m == pytest.approx(snap.path[-1].cumulative_distance_m)
        assert_allclose(snap.total_distance_m, 5.0 * 19, rtol=0.01)

    def test_snapshot_path_limit(self, clock):
        """Snapshots carry only the most recent points."""
        session = TrackingSession(config=TrackingConfig(snapshot_path_limit=3), clock=clock)
        session.start()
        session.ingest_many(generate_walk(n_samples=10, speed_mps=5.0, jitter_m=0.0))

        snap = session.snapshot()
        assert len(snap.path) == 3
        assert snap.path_length == 10
        assert len(session.snapshot(path_limit=0).path) == 0
        assert len(session.snapshot(path_limit=100).path) == 10


class TestSubscriptions:
    """Snapshot notifications."""

    def test_notified_on_transitions_and_accepted(self, session, make_fix):
        """Subscribers see transitions and path changes, not rejections."""
        seen = []
        session.subscribe(seen.append)

        session.start()
        session.ingest(make_fix(14.0, 78.0, 0))
        session.ingest(make_fix(14.0, 78.0, 1, accuracy=99.0))   # rejected, silent
        session.ingest(make_fix(14.001, 78.0, 10))
        session.stop()
        session.stop()                                            # no transition

        states = [s.state for s in seen]
        assert states == [
            SessionState.TRACKING,
            SessionState.TRACKING,
            SessionState.TRACKING,
            SessionState.STOPPED,
        ]
        assert [s.path_length for s in seen] == [0, 1, 2, 2]

    def test_unsubscribe(self, session):
        """Unsubscribing stops notifications and is idempotent."""
        seen = []
        unsubscribe = session.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        session.start()

        assert seen == []
        assert session.subscriber_count == 0

    def test_failing_subscriber_does_not_break_ingest(self, tracking, make_fix):
        """A crashing subscriber does not block the others."""
        def broken(snapshot):
            raise RuntimeError("renderer crashed")

        seen = []
        tracking.subscribe(broken)
        tracking.subscribe(seen.append)
        snap = tracking.ingest(make_fix(14.0, 78.0, 0))

        assert snap.path_length == 1
        assert len(seen) == 1


class TestMalformedTimestamps:
    """Fixes without a usable timestamp never reach the statistics."""

    @pytest.mark.parametrize("captured_at_ms", [None, math.nan])
    def test_first_fix_rejected(self, tracking, captured_at_ms):
        """A bad first fix is counted as rejected instead of raising."""
        snap = tracking.ingest(GeoSample(14.0, 78.0, 5.0, captured_at_ms))

        assert snap.path_length == 0
        assert snap.current_position is None
        assert snap.counters.rejected == 1

    @pytest.mark.parametrize("captured_at_ms", [None, math.nan])
    def test_later_fix_leaves_speeds_finite(self, tracking, make_fix, captured_at_ms):
        """A bad fix after a good one leaves totals and speeds untouched."""
        before = tracking.ingest(make_fix(14.0, 78.0, 0))
        snap = tracking.ingest(GeoSample(14.001, 78.0, 5.0, captured_at_ms))

        assert snap.path_length == 1
        assert snap.total_distance_m == before.total_distance_m
        assert snap.average_speed_mps == 0.0
        assert math.isfinite(snap.average_speed_mps)
        assert math.isfinite(snap.max_speed_mps)
        assert snap.counters.rejected == 1


class TestHeading:
    """Reported headings outside 0..360 never become a course."""

    @pytest.mark.parametrize("heading", [-10.0, 400.0, math.nan])
    def test_out_of_range_heading_falls_back_to_bearing(self, tracking, make_fix, heading):
        """The computed bearing replaces an unusable heading."""
        tracking.ingest(make_fix(14.0, 78.0, 0, heading=heading))
        tracking.ingest(make_fix(14.0001, 78.0, 5, heading=heading))
        first, second = tracking.path

        assert first.course_deg is None
        assert second.course_deg == pytest.approx(0.0, abs=0.01)
