"""
SQLAlchemy models for Scavenger Backend.
"""

from scavenger_backend.models.player import Player
from scavenger_backend.models.challenge import Challenge
from scavenger_backend.models.location import PlayerLocation
from scavenger_backend.models.progress import PlayerProgress

__all__ = ["Player", "Challenge", "PlayerLocation", "PlayerProgress"]
