"""
Spherical-Earth geodesy helpers.

All functions take WGS84 degrees and work on a sphere of mean radius
6,371,000 m, which is accurate to ~0.5% and is what the tracking
statistics are defined against.
"""

from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray


EARTH_RADIUS_M = 6371000.0  # mean radius


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate great-circle distance between two points.

    The arcsine argument is clamped to [-1, 1] so that floating point
    overshoot near antipodal or polar points cannot produce NaN.

    Args:
        lat1, lon1: First point coordinates in degrees
        lat2, lon2: Second point coordinates in degrees

    Returns:
        Distance in meters
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlat = np.radians(lat2 - lat1)
    dlon = np.radians(lon2 - lon1)

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(dlon / 2) ** 2
    c = 2 * np.arcsin(np.clip(np.sqrt(a), -1.0, 1.0))

    return float(EARTH_RADIUS_M * c)


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Initial great-circle bearing from point 1 towards point 2.

    Returns:
        Compass heading in degrees (0=North, 90=East), in [0, 360)
    """
    lat1_rad = np.radians(lat1)
    lat2_rad = np.radians(lat2)
    dlon = np.radians(lon2 - lon1)

    y = np.sin(dlon) * np.cos(lat2_rad)
    x = np.cos(lat1_rad) * np.sin(lat2_rad) - np.sin(lat1_rad) * np.cos(lat2_rad) * np.cos(dlon)

    return float(np.degrees(np.arctan2(y, x)) % 360)


def destination_point(
    lat: float,
    lon: float,
    distance_m: float,
    bearing_deg: float,
) -> tuple[float, float]:
    """
    Point reached by travelling `distance_m` along a great circle.

    Returns:
        Tuple of (lat, lon) in degrees, longitude normalised to [-180, 180)
    """
    lat_rad = np.radians(lat)
    lon_rad = np.radians(lon)
    bearing = np.radians(bearing_deg)
    delta = distance_m / EARTH_RADIUS_M

    lat2 = np.arcsin(np.clip(
        np.sin(lat_rad) * np.cos(delta) + np.cos(lat_rad) * np.sin(delta) * np.cos(bearing),
        -1.0,
        1.0,
    ))
    lon2 = lon_rad + np.arctan2(
        np.sin(bearing) * np.sin(delta) * np.cos(lat_rad),
        np.cos(delta) - np.sin(lat_rad) * np.sin(lat2),
    )

    lon2_deg = (np.degrees(lon2) + 540.0) % 360.0 - 180.0
    return float(np.degrees(lat2)), float(lon2_deg)


def path_bounds(
    lat: Sequence[float] | NDArray[np.float64],
    lon: Sequence[float] | NDArray[np.float64],
) -> Optional[tuple[float, float, float, float]]:
    """
    Bounding box of a path.

    Returns:
        (min_lon, min_lat, max_lon, max_lat), GeoJSON bbox order,
        or None for an empty path
    """
    lat_arr = np.asarray(lat, dtype=np.float64)
    lon_arr = np.asarray(lon, dtype=np.float64)
    if lat_arr.size == 0:
        return None

    return (
        float(np.min(lon_arr)),
        float(np.min(lat_arr)),
        float(np.max(lon_arr)),
        float(np.max(lat_arr)),
    )
