"""
PlayerProgress model for Scavenger Backend.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scavenger_backend.database import Base, utcnow

if TYPE_CHECKING:
    from scavenger_backend.models.challenge import Challenge
    from scavenger_backend.models.player import Player


class PlayerProgress(Base):
    """
    Record that a player has unlocked a challenge.
    At most one row per (player, challenge); the unique constraint is what
    makes repeated unlocks idempotent.
    """

    __tablename__ = "player_progress"
    __table_args__ = (
        UniqueConstraint("player_id", "challenge_id", name="uq_player_progress_player_challenge"),
    )

    id: Mapped[Uuid] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    player_id: Mapped[Uuid] = mapped_column(
        Uuid,
        ForeignKey("players.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    challenge_id: Mapped[Uuid] = mapped_column(
        Uuid,
        ForeignKey("challenges.id", ondelete="CASCADE"),
        nullable=False,
    )
    completed_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    # Relationships
    player: Mapped["Player"] = relationship(
        "Player",
        back_populates="progress",
    )
    challenge: Mapped["Challenge"] = relationship(
        "Challenge",
        back_populates="progress",
    )

    def __repr__(self) -> str:
        return f"<PlayerProgress(player_id={self.player_id}, challenge_id={self.challenge_id})>"
