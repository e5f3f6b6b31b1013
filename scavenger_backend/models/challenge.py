"""
Challenge model for Scavenger Backend.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from scavenger_backend.database import Base, utcnow

if TYPE_CHECKING:
    from scavenger_backend.models.progress import PlayerProgress


class Challenge(Base):
    """
    A location + password pair that reveals one letter of the hidden message.
    Challenges are presented in ``sort_order``.
    """

    __tablename__ = "challenges"

    id: Mapped[Uuid] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    password: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    letter: Mapped[str] = mapped_column(
        String(10),
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
    radius_meters: Mapped[int] = mapped_column(
        Integer,
        default=100,
        nullable=False,
    )
    sort_order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        index=True,
        nullable=False,
    )
    gift_description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
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
    progress: Mapped[list["PlayerProgress"]] = relationship(
        "PlayerProgress",
        back_populates="challenge",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Challenge(id={self.id}, title={self.title}, order={self.sort_order})>"
