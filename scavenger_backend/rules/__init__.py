"""
Challenge unlock rules for Scavenger Backend.
"""

from scavenger_backend.rules.geo import EARTH_RADIUS_METERS, haversine_distance, is_within_radius
from scavenger_backend.rules.unlock import (
    Position,
    check_attempt,
    passwords_match,
    pending_prerequisites,
)

__all__ = [
    "EARTH_RADIUS_METERS",
    "Position",
    "check_attempt",
    "haversine_distance",
    "is_within_radius",
    "passwords_match",
    "pending_prerequisites",
]
