"""
Position data model.

A GeoSample is one raw fix from a position source (WGS84 degrees).
A PathPoint is a sample that made it through filtering, annotated with
the running statistics at that point.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class GeoSample:
    """One raw position reading."""

    latitude: float                       # degrees, -90..90
    longitude: float                      # degrees, -180..180
    accuracy_m: float                     # 68% confidence radius
    captured_at_ms: int                   # epoch milliseconds
    speed_mps: Optional[float] = None     # source-reported, may be absent
    heading_deg: Optional[float] = None   # 0..360, may be absent

    def is_well_formed(self) -> bool:
        """True when coordinates, accuracy and timestamp are finite and in range."""
        values = (self.latitude, self.longitude, self.accuracy_m, self.captured_at_ms)
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in values):
            return False
        if not -90.0 <= self.latitude <= 90.0:
            return False
        if not -180.0 <= self.longitude <= 180.0:
            return False
        return self.accuracy_m >= 0.0

    @property
    def valid_heading_deg(self) -> Optional[float]:
        """Reported heading, or None when absent or outside 0..360."""
        heading = self.heading_deg
        if heading is None or not math.isfinite(heading) or not 0.0 <= heading <= 360.0:
            return None
        return heading

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GeoSample":
        """
        Build a sample from a mapping.

        Accepts the snake_case field names as well as the browser
        Geolocation shape (latitude, longitude, accuracy, speed,
        heading, timestamp). Missing or null speed/heading become None.

        Raises:
            KeyError: if latitude, longitude, accuracy or timestamp is missing
            ValueError: if a value cannot be converted
        """
        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            raise KeyError(keys[0])

        return cls(
            latitude=float(pick("latitude", "lat")),
            longitude=float(pick("longitude", "lng", "lon")),
            accuracy_m=float(pick("accuracy_m", "accuracy")),
            captured_at_ms=int(pick("captured_at_ms", "timestamp")),
            speed_mps=_optional_float(data.get("speed_mps", data.get("speed"))),
            heading_deg=_optional_float(data.get("heading_deg", data.get("heading"))),
        )

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy_m": self.accuracy_m,
            "captured_at_ms": self.captured_at_ms,
            "speed_mps": self.speed_mps,
            "heading_deg": self.heading_deg,
        }


@dataclass(frozen=True)
class PathPoint:
    """A sample accepted into the session path."""

    sample: GeoSample
    cumulative_distance_m: float
    segment_distance_m: float = 0.0
    segment_speed_mps: float = 0.0
    course_deg: Optional[float] = None   # reported heading, else bearing from previous point

    @property
    def latitude(self) -> float:
        return self.sample.latitude

    @property
    def longitude(self) -> float:
        return self.sample.longitude

    @property
    def captured_at_ms(self) -> int:
        return self.sample.captured_at_ms

    def to_dict(self) -> dict:
        return {
            **self.sample.to_dict(),
            "cumulative_distance_m": self.cumulative_distance_m,
            "segment_distance_m": self.segment_distance_m,
            "segment_speed_mps": self.segment_speed_mps,
            "course_deg": self.course_deg,
        }
