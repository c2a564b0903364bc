"""
API routes for tracking sessions.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from tracker.api.schemas import (
    CreateSessionRequest,
    GeoJsonResponse,
    GeoSampleResponse,
    PathPointResponse,
    PositionOptionsResponse,
    SampleCountersResponse,
    SamplesRequest,
    SessionSnapshotResponse,
    SessionSummaryResponse,
    SimulateRequest,
    SourceErrorRequest,
    SummaryResponse,
)
from tracker.models.errors import (
    PositionErrorCode,
    PositionSourceError,
    SessionNotFoundError,
    SessionStateError,
)
from tracker.models.geo import GeoSample
from tracker.models.session import PositionSourceOptions, SessionSnapshot, SessionState
from tracker.services.registry import get_registry
from tracker.services.renderers import GeoJsonRenderer, SummaryRenderer
from tracker.utils.simulation import DEFAULT_LAT, DEFAULT_LON, generate_walk


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _not_found(exc: SessionNotFoundError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


def _sample_response(sample: Optional[GeoSample]) -> Optional[GeoSampleResponse]:
    if sample is None:
        return None
    return GeoSampleResponse(**sample.to_dict())


def _build_snapshot_response(snap: SessionSnapshot, label: Optional[str] = None) -> SessionSnapshotResponse:
    """Build snapshot response from SessionSnapshot."""
    return SessionSnapshotResponse(
        session_id=snap.session_id,
        label=label,
        state=snap.state.value,
        current_position=_sample_response(snap.current_position),
        accuracy_m=snap.accuracy_m,
        path=[PathPointResponse(**p.to_dict()) for p in snap.path],
        path_length=snap.path_length,
        total_distance_m=snap.total_distance_m,
        average_speed_mps=snap.average_speed_mps,
        max_speed_mps=snap.max_speed_mps,
        current_speed_mps=snap.current_speed_mps,
        reported_speed_mps=snap.reported_speed_mps,
        max_reported_speed_mps=snap.max_reported_speed_mps,
        elapsed_s=snap.elapsed_s,
        started_at_ms=snap.started_at_ms,
        last_error=snap.last_error,
        counters=SampleCountersResponse(
            accepted=snap.counters.accepted,
            ignored=snap.counters.ignored,
            rejected=snap.counters.rejected,
            dropped=snap.counters.dropped,
        ),
    )


def _snapshot(session_id: str, path_limit: Optional[int] = None) -> SessionSnapshotResponse:
    registry = get_registry()
    try:
        with registry.locked(session_id) as session:
            snap = session.snapshot(path_limit=path_limit)
        return _build_snapshot_response(snap, registry.label(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.post("", response_model=SessionSnapshotResponse, status_code=201)
def create_session(request: Optional[CreateSessionRequest] = None):
    """
    Create a new Idle tracking session.

    Thresholds not given fall back to the server defaults.
    """
    request = request or CreateSessionRequest()
    registry = get_registry()

    try:
        config = registry.default_config.with_overrides(
            accuracy_threshold_m=request.accuracy_threshold_m,
            movement_threshold_m=request.movement_threshold_m,
            snapshot_path_limit=request.snapshot_path_limit,
            max_path_points=request.max_path_points,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    session = registry.create(config=config, label=request.label)
    return _build_snapshot_response(session.snapshot(), request.label)


@router.get("", response_model=list[SessionSummaryResponse])
def list_sessions():
    """List all live sessions."""
    registry = get_registry()
    summaries = []
    for session_id in registry.list_ids():
        try:
            with registry.locked(session_id) as session:
                snap = session.snapshot(path_limit=0)
            label = registry.label(session_id)
        except SessionNotFoundError:
            # removed while listing
            continue
        summaries.append(SessionSummaryResponse(
            session_id=snap.session_id,
            label=label,
            state=snap.state.value,
            path_length=snap.path_length,
            total_distance_m=snap.total_distance_m,
            elapsed_s=snap.elapsed_s,
        ))
    return summaries


@router.get("/{session_id}", response_model=SessionSnapshotResponse)
def get_session(
    session_id: str,
    path_limit: Optional[int] = Query(None, ge=0, description="Most recent path points to return"),
):
    """Get the current snapshot of a session."""
    return _snapshot(session_id, path_limit)


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str):
    """Stop and discard a session."""
    try:
        get_registry().remove(session_id)
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.post("/{session_id}/start", response_model=SessionSnapshotResponse)
def start_session(session_id: str):
    """
    Start (or restart) tracking.

    Clears the previous path and statistics. A failed session must be
    reset first.
    """
    registry = get_registry()
    try:
        with registry.locked(session_id) as session:
            snap = session.start()
        return _build_snapshot_response(snap, registry.label(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{session_id}/stop", response_model=SessionSnapshotResponse)
def stop_session(session_id: str):
    """Stop tracking; the path is kept for inspection."""
    registry = get_registry()
    try:
        with registry.locked(session_id) as session:
            snap = session.stop()
        return _build_snapshot_response(snap, registry.label(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.post("/{session_id}/reset", response_model=SessionSnapshotResponse)
def reset_session(session_id: str):
    """Discard the path and return the session to Idle."""
    registry = get_registry()
    try:
        with registry.locked(session_id) as session:
            snap = session.reset()
        return _build_snapshot_response(snap, registry.label(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.post("/{session_id}/samples", response_model=SessionSnapshotResponse)
def ingest_samples(session_id: str, request: SamplesRequest):
    """
    Feed fixes into a session, in list order.

    Samples arriving while the session is not tracking are dropped; the
    response counters show what happened to each batch.

    Elapsed time (and so average speed) runs from the server-side start
    time to each fix's captured_at_ms, so clients must stamp fixes with
    epoch milliseconds from a clock synchronised with the server. Fixes
    stamped before the start keep the average speed at 0.
    """
    registry = get_registry()
    samples = [GeoSample(**s.model_dump()) for s in request.samples]
    try:
        with registry.locked(session_id) as session:
            snap = session.ingest_many(samples)
        return _build_snapshot_response(snap, registry.label(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.post("/{session_id}/error", response_model=SessionSnapshotResponse)
def report_source_error(session_id: str, request: SourceErrorRequest):
    """Report a fatal position source error; a tracking session moves to Failed."""
    registry = get_registry()
    error = PositionSourceError(PositionErrorCode(request.code), request.message)
    try:
        with registry.locked(session_id) as session:
            snap = session.fail(error)
        return _build_snapshot_response(snap, registry.label(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.post("/{session_id}/simulate", response_model=SessionSnapshotResponse)
def simulate_movement(session_id: str, request: SimulateRequest):
    """
    Feed a synthetic walk into a tracking session.

    The walk starts at the given coordinates, else at the session's
    current position, and is timestamped from the session's latest fix.
    """
    registry = get_registry()
    try:
        with registry.locked(session_id) as session:
            if session.state is not SessionState.TRACKING:
                raise HTTPException(status_code=409, detail=f"Session is not tracking: {session_id}")

            current = session.current_position
            start_lat = request.start_lat
            start_lon = request.start_lon
            if start_lat is None or start_lon is None:
                start_lat = current.latitude if current else DEFAULT_LAT
                start_lon = current.longitude if current else DEFAULT_LON
            if current is not None:
                start_ms = current.captured_at_ms + int(request.interval_s * 1000)
            else:
                start_ms = session.started_at_ms or 0

            samples = generate_walk(
                n_samples=request.n_samples,
                start_lat=start_lat,
                start_lon=start_lon,
                start_ms=start_ms,
                interval_s=request.interval_s,
                speed_mps=request.speed_mps,
                heading_deg=request.heading_deg,
                turn_rate_deg_s=request.turn_rate_deg_s,
                jitter_m=request.jitter_m,
                accuracy_m=request.accuracy_m,
                dropout_rate=request.dropout_rate,
                seed=request.seed,
            )
            snap = session.ingest_many(samples)
        logger.info(f"Simulated {len(samples)} samples for session {session_id}")
        return _build_snapshot_response(snap, registry.label(session_id))
    except SessionNotFoundError as e:
        raise _not_found(e)


@router.get("/{session_id}/geojson", response_model=GeoJsonResponse)
def get_session_geojson(session_id: str):
    """Path and current position as a GeoJSON FeatureCollection."""
    registry = get_registry()
    try:
        with registry.locked(session_id) as session:
            snap = session.snapshot()
    except SessionNotFoundError as e:
        raise _not_found(e)
    return GeoJsonRenderer().render(snap)


@router.get("/{session_id}/summary", response_model=SummaryResponse)
def get_session_summary(session_id: str):
    """Formatted statistics (duration, distance, speeds) for display."""
    registry = get_registry()
    try:
        with registry.locked(session_id) as session:
            snap = session.snapshot(path_limit=0)
    except SessionNotFoundError as e:
        raise _not_found(e)
    return SummaryRenderer().render(snap)


# ============================================================================
# Position Source Routes
# ============================================================================

options_router = APIRouter(prefix="/position-options", tags=["position-source"])


@options_router.get("", response_model=PositionOptionsResponse)
def get_position_options():
    """Watch options and filter thresholds clients should use."""
    options = PositionSourceOptions()
    config = get_registry().default_config
    return PositionOptionsResponse(
        enable_high_accuracy=options.enable_high_accuracy,
        timeout_ms=options.timeout_ms,
        maximum_age_ms=options.maximum_age_ms,
        accuracy_threshold_m=config.accuracy_threshold_m,
        movement_threshold_m=config.movement_threshold_m,
    )
