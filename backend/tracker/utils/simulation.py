"""
Synthetic position feeds for demos and testing.

Generates realistic-looking fixes: steady movement along a (possibly
curving) course, GPS jitter, and the occasional low-accuracy dropout.
"""

from typing import Optional

import numpy as np

from tracker.models.geo import GeoSample
from tracker.utils.geodesy import destination_point


DEFAULT_LAT = 14.4673
DEFAULT_LON = 78.8242


def _jitter(
    rng: np.random.Generator,
    lat: float,
    lon: float,
    max_jitter_m: float,
) -> tuple[float, float]:
    """Displace a point by at most `max_jitter_m` in a random direction."""
    if max_jitter_m <= 0:
        return lat, lon
    return destination_point(
        lat,
        lon,
        float(rng.uniform(0.0, max_jitter_m)),
        float(rng.uniform(0.0, 360.0)),
    )


def generate_walk(
    n_samples: int = 60,
    start_lat: float = DEFAULT_LAT,
    start_lon: float = DEFAULT_LON,
    start_ms: int = 0,
    interval_s: float = 1.0,
    speed_mps: float = 1.4,
    heading_deg: float = 45.0,
    turn_rate_deg_s: float = 0.0,
    jitter_m: float = 0.5,
    accuracy_m: float = 5.0,
    dropout_rate: float = 0.0,
    dropout_accuracy_m: float = 80.0,
    seed: Optional[int] = None,
) -> list[GeoSample]:
    """
    Generate a walk (or drive) as a list of fixes.

    The true track advances `speed_mps * interval_s` per sample along a
    heading that changes by `turn_rate_deg_s`. Reported positions are
    displaced by up to `jitter_m`; a fraction `dropout_rate` of samples
    carry `dropout_accuracy_m` instead of a good accuracy.
    """
    if n_samples <= 0:
        return []

    rng = np.random.default_rng(seed)
    step_m = speed_mps * interval_s

    samples = []
    lat, lon, heading = start_lat, start_lon, heading_deg
    for i in range(n_samples):
        if i > 0:
            lat, lon = destination_point(lat, lon, step_m, heading)
            heading = (heading + turn_rate_deg_s * interval_s) % 360

        fix_lat, fix_lon = _jitter(rng, lat, lon, jitter_m)
        accuracy = accuracy_m + abs(float(rng.normal(0.0, 1.0)))
        if dropout_rate > 0 and rng.random() < dropout_rate:
            accuracy = dropout_accuracy_m

        reported_speed = max(0.0, speed_mps + float(rng.normal(0.0, 0.1)))

        samples.append(GeoSample(
            latitude=fix_lat,
            longitude=fix_lon,
            accuracy_m=round(accuracy, 1),
            captured_at_ms=start_ms + int(round(i * interval_s * 1000)),
            speed_mps=round(reported_speed, 2),
            heading_deg=round(heading, 1),
        ))

    return samples


def generate_stationary(
    n_samples: int = 30,
    lat: float = DEFAULT_LAT,
    lon: float = DEFAULT_LON,
    start_ms: int = 0,
    interval_s: float = 1.0,
    jitter_m: float = 1.0,
    accuracy_m: float = 5.0,
    seed: Optional[int] = None,
) -> list[GeoSample]:
    """
    Generate fixes for a device standing still.

    Every fix lies within `jitter_m` of (lat, lon); the first one is exact.
    """
    rng = np.random.default_rng(seed)

    samples = []
    for i in range(n_samples):
        fix_lat, fix_lon = (lat, lon) if i == 0 else _jitter(rng, lat, lon, jitter_m)
        samples.append(GeoSample(
            latitude=fix_lat,
            longitude=fix_lon,
            accuracy_m=accuracy_m,
            captured_at_ms=start_ms + int(round(i * interval_s * 1000)),
            speed_mps=0.0,
        ))

    return samples


if __name__ == "__main__":
    # Print a short walk when run directly
    for s in generate_walk(n_samples=10, seed=1):
        print(f"{s.captured_at_ms:>6} ms  {s.latitude:.6f}, {s.longitude:.6f}  ±{s.accuracy_m}m")
