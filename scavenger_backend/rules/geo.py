"""
Geodesy helpers for proximity gating.
"""

import math

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in meters between two points given in degrees.

    Example:
        >>> round(haversine_distance(0.0, 0.0, 0.0, 180.0))
        20015087
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push a just past 1 for near-antipodal points
    a = min(a, 1.0)
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_within_radius(distance_meters: float, radius_meters: float) -> bool:
    """A point exactly on the boundary counts as inside."""
    return not distance_meters > radius_meters
