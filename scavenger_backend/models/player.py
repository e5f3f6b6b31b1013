"""
Player model for Scavenger Backend.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scavenger_backend.database import Base, utcnow

if TYPE_CHECKING:
    from scavenger_backend.models.location import PlayerLocation
    from scavenger_backend.models.progress import PlayerProgress


class Player(Base):
    """
    Hunt participant.
    Players are created by an operator and log in with their access code.
    """

    __tablename__ = "players"

    id: Mapped[Uuid] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    # Always stored uppercase; login compares against the uppercased input
    code: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    # Relationships
    locations: Mapped[list["PlayerLocation"]] = relationship(
        "PlayerLocation",
        back_populates="player",
        cascade="all, delete-orphan",
    )
    progress: Mapped[list["PlayerProgress"]] = relationship(
        "PlayerProgress",
        back_populates="player",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name={self.name})>"
