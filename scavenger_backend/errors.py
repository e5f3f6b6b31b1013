"""
Domain exceptions for Scavenger Backend.

Route handlers raise these; the handlers registered in ``main`` render
every one of them as ``{"error": message, **details}`` with the exception's
HTTP status.
"""

from typing import Any


class HuntError(Exception):
    """
    Base class for player-facing errors.

    Args:
        message: Human-readable error, returned verbatim as ``error``
        details: Extra JSON fields merged into the response body
    """

    status_code: int = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


class InvalidInputError(HuntError):
    """Malformed body, unknown action, bad UUID or out-of-range value."""

    status_code = 400


class AuthError(HuntError):
    """Unknown or inactive credential, or a wrong challenge password."""

    status_code = 401


class ProximityError(HuntError):
    """Player is outside the challenge unlock radius."""

    status_code = 403


class LockedError(HuntError):
    """Challenge is gated behind earlier, uncompleted challenges."""

    status_code = 403


class NotFoundError(HuntError):
    status_code = 404


class ConflictError(HuntError):
    status_code = 409
