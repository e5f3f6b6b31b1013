"""
Unlock rules applied to a challenge attempt.

Pure functions: callers load the challenge and the player's progress and
pass them in. Checks run in a fixed order (order, proximity, password) so
a player who is too far away never learns whether the password was right.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from scavenger_backend.errors import AuthError, LockedError, ProximityError
from scavenger_backend.models.challenge import Challenge
from scavenger_backend.rules.geo import haversine_distance, is_within_radius


@dataclass(frozen=True)
class Position:
    """A reported GPS fix, in degrees."""

    latitude: float
    longitude: float


def passwords_match(submitted: str, expected: str) -> bool:
    """Case-insensitive comparison ignoring surrounding whitespace."""
    return submitted.strip().lower() == expected.strip().lower()


def distance_to(challenge: Challenge, position: Position) -> float:
    return haversine_distance(
        position.latitude,
        position.longitude,
        challenge.latitude,
        challenge.longitude,
    )


def pending_prerequisites(
    challenge: Challenge,
    active_challenges: Iterable[Challenge],
    completed_ids: set[UUID],
) -> list[Challenge]:
    """Active challenges ordered before ``challenge`` that are not yet completed."""
    return [
        other
        for other in active_challenges
        if other.sort_order < challenge.sort_order and other.id not in completed_ids
    ]


def check_attempt(
    challenge: Challenge,
    position: Position,
    password: str,
    *,
    pending: list[Challenge] | None = None,
    expose_distance: bool = True,
) -> float:
    """
    Validate an attempt and return the distance to the challenge in meters.

    Raises:
        LockedError: ``pending`` lists earlier challenges still to complete
        ProximityError: the position is outside ``radius_meters``
        AuthError: the password does not match
    """
    if pending:
        raise LockedError(
            "Complete earlier challenges first",
            {"pending": [str(other.id) for other in pending]},
        )

    distance = distance_to(challenge, position)
    if not is_within_radius(distance, challenge.radius_meters):
        details = {"distance": round(distance)} if expose_distance else None
        raise ProximityError("Too far from challenge location", details)

    if not passwords_match(password, challenge.password):
        raise AuthError("Wrong password")

    return distance
