"""
API schemas (Pydantic models) for request/response validation.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Sample Schemas
# ============================================================================

class GeoSampleRequest(BaseModel):
    """One raw fix as delivered by a position source."""
    latitude: float
    longitude: float
    accuracy_m: float
    captured_at_ms: int
    speed_mps: Optional[float] = Field(default=None, ge=0.0)
    heading_deg: Optional[float] = Field(default=None, ge=0.0, le=360.0)


class SamplesRequest(BaseModel):
    """Batch of fixes, processed in list order."""
    samples: list[GeoSampleRequest] = Field(min_length=1)


class GeoSampleResponse(BaseModel):
    latitude: float
    longitude: float
    accuracy_m: float
    captured_at_ms: int
    speed_mps: Optional[float] = None
    heading_deg: Optional[float] = None


class PathPointResponse(GeoSampleResponse):
    """Accepted path point with running statistics."""
    cumulative_distance_m: float
    segment_distance_m: float
    segment_speed_mps: float
    course_deg: Optional[float] = None


# ============================================================================
# Session Schemas
# ============================================================================

class CreateSessionRequest(BaseModel):
    """Optional per-session overrides of the default tracking config."""
    label: Optional[str] = None
    accuracy_threshold_m: Optional[float] = Field(default=None, ge=0.0)
    movement_threshold_m: Optional[float] = Field(default=None, ge=0.0)
    snapshot_path_limit: Optional[int] = Field(default=None, ge=1)
    max_path_points: Optional[int] = Field(default=None, ge=1)


class SampleCountersResponse(BaseModel):
    accepted: int
    ignored: int
    rejected: int
    dropped: int


class SessionSnapshotResponse(BaseModel):
    """Full state of a tracking session."""
    session_id: str
    label: Optional[str] = None
    state: str
    current_position: Optional[GeoSampleResponse] = None
    accuracy_m: Optional[float] = None
    path: list[PathPointResponse]
    path_length: int
    total_distance_m: float
    average_speed_mps: float
    max_speed_mps: float
    current_speed_mps: float
    reported_speed_mps: Optional[float] = None
    max_reported_speed_mps: float
    elapsed_s: float
    started_at_ms: Optional[int] = None
    last_error: Optional[str] = None
    counters: SampleCountersResponse


class SessionSummaryResponse(BaseModel):
    """Lightweight summary of a session for listing."""
    session_id: str
    label: Optional[str] = None
    state: str
    path_length: int
    total_distance_m: float
    elapsed_s: float


class SourceErrorRequest(BaseModel):
    """Fatal error reported by the client's position source."""
    code: int = Field(default=0, ge=0, le=3)
    message: Optional[str] = None


class SimulateRequest(BaseModel):
    """Parameters for feeding a synthetic walk into a session."""
    n_samples: int = Field(default=30, ge=1, le=5000)
    interval_s: float = Field(default=1.0, gt=0.0)
    speed_mps: float = Field(default=1.4, ge=0.0)
    heading_deg: float = Field(default=45.0, ge=0.0, le=360.0)
    turn_rate_deg_s: float = 0.0
    jitter_m: float = Field(default=0.5, ge=0.0)
    accuracy_m: float = Field(default=5.0, ge=0.0)
    dropout_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    start_lat: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    start_lon: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    seed: Optional[int] = None


# ============================================================================
# Rendering Schemas
# ============================================================================

class SummaryResponse(BaseModel):
    """Formatted statistics for display."""
    state: str
    duration: str
    distance: str
    current_speed: str
    average_speed: str
    max_speed: str
    reported_speed: str
    accuracy: str
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    points: str
    error: Optional[str] = None


class GeoJsonResponse(BaseModel):
    type: str
    features: list[dict[str, Any]]
    properties: dict[str, Any]
    bbox: Optional[list[float]] = None


# ============================================================================
# Position Source Schemas
# ============================================================================

class PositionOptionsResponse(BaseModel):
    """Watch options clients should pass to their position source."""
    enable_high_accuracy: bool
    timeout_ms: int
    maximum_age_ms: int
    accuracy_threshold_m: float
    movement_threshold_m: float

