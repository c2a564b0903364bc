"""
Display formatting for tracking statistics.
"""

from typing import Optional

MPS_TO_KMH = 3.6


def format_duration(ms: float) -> str:
    """Format a duration as '1h 2m 3s', '2m 3s' or '3s'."""
    seconds = int(max(ms, 0) // 1000)
    minutes = seconds // 60
    hours = minutes // 60

    if hours > 0:
        return f"{hours}h {minutes % 60}m {seconds % 60}s"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def format_distance(meters: float) -> str:
    """Kilometres with two decimals from 1 km upwards, whole metres below."""
    if meters >= 1000:
        return f"{meters / 1000:.2f} km"
    return f"{meters:.0f} m"


def format_speed(mps: Optional[float]) -> str:
    """Format a speed given in m/s as km/h."""
    if mps is None:
        return "-- km/h"
    return f"{mps * MPS_TO_KMH:.1f} km/h"


def format_accuracy(accuracy_m: Optional[float]) -> str:
    if accuracy_m is None:
        return "±?m"
    return f"±{accuracy_m:.0f}m"


def format_coordinate(value: float) -> str:
    return f"{value:.6f}"
