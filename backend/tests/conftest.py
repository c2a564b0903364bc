"""
Shared fixtures for the tracker tests.
"""

from typing import Optional

import pytest

from tracker.models.geo import GeoSample


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now_ms: int = 0):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


def _make_fix(
    lat: float,
    lon: float,
    t_s: float,
    accuracy: float = 5.0,
    speed: Optional[float] = None,
    heading: Optional[float] = None,
) -> GeoSample:
    return GeoSample(
        latitude=lat,
        longitude=lon,
        accuracy_m=accuracy,
        captured_at_ms=int(round(t_s * 1000)),
        speed_mps=speed,
        heading_deg=heading,
    )


@pytest.fixture
def make_fix():
    """Factory for GeoSamples timestamped in seconds."""
    return _make_fix


@pytest.fixture
def clock():
    """Clock starting at t=0 ms."""
    return FakeClock(0)
