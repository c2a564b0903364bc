"""
Snapshot renderers.

Map providers and UI panels only ever see snapshots. Each one implements
`render(snapshot)` and turns it into whatever its surface consumes; no
tracking logic lives here.
"""

import logging
from typing import Any, Callable, Optional, Protocol

from tracker.models.session import SessionSnapshot
from tracker.services.session import TrackingSession
from tracker.utils.formatting import (
    format_accuracy,
    format_coordinate,
    format_distance,
    format_duration,
    format_speed,
)
from tracker.utils.geodesy import path_bounds


logger = logging.getLogger(__name__)


class SnapshotRenderer(Protocol):
    """Anything that can draw a session snapshot."""

    def render(self, snapshot: SessionSnapshot) -> Any: ...


class GeoJsonRenderer:
    """
    Render a snapshot as a GeoJSON FeatureCollection.

    Produces a LineString for the path (once it has two points), a Point
    for the current position and a bbox covering both, which is enough
    for any web map to draw the polyline, place the marker and fit the
    camera.
    """

    def __init__(self, include_statistics: bool = True):
        self.include_statistics = include_statistics

    def render(self, snapshot: SessionSnapshot) -> dict:
        features = []
        lats = [p.latitude for p in snapshot.path]
        lons = [p.longitude for p in snapshot.path]

        if len(snapshot.path) >= 2:
            properties = {"kind": "path", "points": len(snapshot.path)}
            if self.include_statistics:
                properties.update({
                    "total_distance_m": snapshot.total_distance_m,
                    "average_speed_mps": snapshot.average_speed_mps,
                    "max_speed_mps": snapshot.max_speed_mps,
                })
            features.append({
                "type": "Feature",
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[lon, lat] for lat, lon in zip(lats, lons)],
                },
                "properties": properties,
            })
        elif len(snapshot.path) == 1:
            features.append({
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [lons[0], lats[0]]},
                "properties": {"kind": "start"},
            })

        position = snapshot.current_position
        if position is not None:
            lats.append(position.latitude)
            lons.append(position.longitude)
            features.append({
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [position.longitude, position.latitude]},
                "properties": {
                    "kind": "current",
                    "accuracy_m": position.accuracy_m,
                    "heading_deg": position.heading_deg,
                    "captured_at_ms": position.captured_at_ms,
                },
            })

        collection = {
            "type": "FeatureCollection",
            "features": features,
            "properties": {"session_id": snapshot.session_id, "state": snapshot.state.value},
        }
        bbox = path_bounds(lats, lons)
        if bbox is not None:
            collection["bbox"] = list(bbox)
        return collection


class SummaryRenderer:
    """Human-readable statistics for a tracking panel."""

    def render(self, snapshot: SessionSnapshot) -> dict:
        position = snapshot.current_position
        return {
            "state": snapshot.state.value,
            "duration": format_duration(snapshot.elapsed_s * 1000),
            "distance": format_distance(snapshot.total_distance_m),
            "current_speed": format_speed(snapshot.current_speed_mps),
            "average_speed": format_speed(snapshot.average_speed_mps),
            "max_speed": format_speed(snapshot.max_speed_mps),
            "reported_speed": format_speed(snapshot.reported_speed_mps),
            "accuracy": format_accuracy(snapshot.accuracy_m),
            "latitude": format_coordinate(position.latitude) if position else None,
            "longitude": format_coordinate(position.longitude) if position else None,
            "points": str(snapshot.path_length),
            "error": snapshot.last_error,
        }


def attach_renderer(
    session: TrackingSession,
    renderer: SnapshotRenderer,
    sink: Optional[Callable[[Any], None]] = None,
) -> Callable[[], None]:
    """
    Subscribe a renderer to a session.

    Every published snapshot is rendered and the result handed to `sink`
    (if given). Returns the unsubscribe callable.
    """
    def on_snapshot(snapshot: SessionSnapshot) -> None:
        output = renderer.render(snapshot)
        if sink is not None:
            sink(output)

    logger.debug(f"Attached {type(renderer).__name__} to session {session.session_id}")
    return session.subscribe(on_snapshot)
