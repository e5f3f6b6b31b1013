"""
PlayerLocation model for Scavenger Backend.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import DateTime, Float, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scavenger_backend.database import Base, utcnow

if TYPE_CHECKING:
    from scavenger_backend.models.player import Player


class PlayerLocation(Base):
    """
    One GPS ping reported by a player.
    Append-only; rows past the retention window are pruned on insert.
    """

    __tablename__ = "player_locations"

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
    latitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    longitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        index=True,
        nullable=False,
    )

    # Relationships
    player: Mapped["Player"] = relationship(
        "Player",
        back_populates="locations",
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerLocation(player_id={self.player_id}, "
            f"lat={self.latitude}, lon={self.longitude})>"
        )
