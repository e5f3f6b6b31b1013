"""
Operator console API for Scavenger Backend.
All routes except login require an admin bearer token.
"""

import logging
from datetime import datetime, timedelta
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from scavenger_backend.api.utils import create_admin_token, decode_admin_token, verify_password
from scavenger_backend.config import Settings, get_settings
from scavenger_backend.database import get_db
from scavenger_backend.errors import AuthError, ConflictError, NotFoundError
from scavenger_backend.models.challenge import Challenge
from scavenger_backend.models.location import PlayerLocation
from scavenger_backend.models.player import Player

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)


# Request/Response schemas
class AdminLoginRequest(BaseModel):
    username: str = Field(...)
    password: str = Field(...)


class TokenResponse(BaseModel):
    token: str


class ChallengeWriteRequest(BaseModel):
    """Full challenge definition, used for both create and replace."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    password: str = Field(..., min_length=1, max_length=100)
    letter: str = Field(..., min_length=1, max_length=10)
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    radius_meters: int = Field(default=100, ge=0)
    sort_order: int = Field(default=0)
    gift_description: str | None = None
    is_active: bool = True

    @field_validator("description", "gift_description")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class ChallengeAdminResponse(BaseModel):
    """Challenge including its password, for operators only."""

    id: UUID
    title: str
    description: str | None
    password: str
    letter: str
    latitude: float
    longitude: float
    radius_meters: int
    sort_order: int
    gift_description: str | None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ChallengeListResponse(BaseModel):
    challenges: list[ChallengeAdminResponse]


class PlayerCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=50)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("code must not be blank")
        return value


class PlayerUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    is_active: bool | None = None


class PlayerAdminResponse(BaseModel):
    id: UUID
    name: str
    code: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PlayerListResponse(BaseModel):
    players: list[PlayerAdminResponse]


class LocationResponse(BaseModel):
    id: UUID
    player_id: UUID
    player_name: str
    latitude: float
    longitude: float
    recorded_at: datetime


class LocationListResponse(BaseModel):
    locations: list[LocationResponse]


async def get_admin(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """
    Dependency returning the authenticated operator's username.
    Raises AuthError if the bearer token is missing, invalid or expired.
    """
    if credentials is None:
        raise AuthError("Authentication required")

    claims = decode_admin_token(credentials.credentials, settings.secret_key, settings.algorithm)
    if claims is None:
        raise AuthError("Invalid or expired token")

    return claims["sub"]


async def _get_challenge(db: AsyncSession, challenge_id: UUID) -> Challenge:
    result = await db.execute(
        select(Challenge)
        .where(Challenge.id == challenge_id)
        .options(selectinload(Challenge.progress))
    )
    challenge = result.scalar_one_or_none()
    if challenge is None:
        raise NotFoundError("Challenge not found")
    return challenge


async def _get_player(db: AsyncSession, player_id: UUID) -> Player:
    result = await db.execute(
        select(Player)
        .where(Player.id == player_id)
        .options(selectinload(Player.locations), selectinload(Player.progress))
    )
    player = result.scalar_one_or_none()
    if player is None:
        raise NotFoundError("Player not found")
    return player


# Routes
@router.post("/login", response_model=TokenResponse)
async def admin_login(
    request: AdminLoginRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenResponse:
    """
    Exchange the operator credentials for a bearer token.
    """
    if not settings.admin_password_hash:
        raise AuthError("Admin login is not configured")

    # Generic error message to prevent info leakage
    if (
        request.username != settings.admin_username
        or not verify_password(request.password, settings.admin_password_hash)
    ):
        logger.warning("Rejected admin login")
        raise AuthError("Invalid username or password")

    expires = None
    if settings.admin_token_ttl_seconds > 0:
        expires = timedelta(seconds=settings.admin_token_ttl_seconds)

    token = create_admin_token(
        request.username,
        settings.secret_key,
        settings.algorithm,
        expires_delta=expires,
    )
    logger.info(f"Admin {request.username} logged in")
    return TokenResponse(token=token)


@router.get("/challenges", response_model=ChallengeListResponse)
async def list_challenges(
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ChallengeListResponse:
    """
    List every challenge, active or not, in sort order.
    """
    result = await db.execute(select(Challenge).order_by(Challenge.sort_order))
    return ChallengeListResponse(
        challenges=[
            ChallengeAdminResponse.model_validate(challenge)
            for challenge in result.scalars().all()
        ]
    )


@router.post("/challenges", response_model=ChallengeAdminResponse, status_code=status.HTTP_201_CREATED)
async def create_challenge(
    request: ChallengeWriteRequest,
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ChallengeAdminResponse:
    challenge = Challenge(**request.model_dump())
    db.add(challenge)
    await db.flush()
    await db.refresh(challenge)

    logger.info(f"Admin {admin} created challenge '{challenge.title}' ({challenge.id})")
    return ChallengeAdminResponse.model_validate(challenge)


@router.put("/challenges/{challenge_id}", response_model=ChallengeAdminResponse)
async def replace_challenge(
    challenge_id: UUID,
    request: ChallengeWriteRequest,
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ChallengeAdminResponse:
    challenge = await _get_challenge(db, challenge_id)

    for name, value in request.model_dump().items():
        setattr(challenge, name, value)
    await db.flush()

    logger.info(f"Admin {admin} updated challenge {challenge.id}")
    return ChallengeAdminResponse.model_validate(challenge)


@router.delete("/challenges/{challenge_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_challenge(
    challenge_id: UUID,
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """
    Delete a challenge and every progress row that references it.
    """
    challenge = await _get_challenge(db, challenge_id)
    await db.delete(challenge)
    await db.flush()
    logger.info(f"Admin {admin} deleted challenge {challenge_id}")


@router.get("/players", response_model=PlayerListResponse)
async def list_players(
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PlayerListResponse:
    """
    List players, newest first.
    """
    result = await db.execute(select(Player).order_by(Player.created_at.desc()))
    return PlayerListResponse(
        players=[PlayerAdminResponse.model_validate(player) for player in result.scalars().all()]
    )


@router.post("/players", response_model=PlayerAdminResponse, status_code=status.HTTP_201_CREATED)
async def create_player(
    request: PlayerCreateRequest,
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PlayerAdminResponse:
    """
    Create a player. The access code is stored uppercase and must be unique.
    """
    result = await db.execute(select(Player).where(Player.code == request.code))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Access code already in use")

    player = Player(name=request.name, code=request.code, is_active=request.is_active)
    db.add(player)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent create for the same code
        raise ConflictError("Access code already in use")
    await db.refresh(player)

    logger.info(f"Admin {admin} created player {player.name} ({player.id})")
    return PlayerAdminResponse.model_validate(player)


@router.patch("/players/{player_id}", response_model=PlayerAdminResponse)
async def update_player(
    player_id: UUID,
    request: PlayerUpdateRequest,
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> PlayerAdminResponse:
    """
    Rename a player or toggle whether they may log in.
    """
    player = await _get_player(db, player_id)

    if request.name is not None:
        player.name = request.name
    if request.is_active is not None:
        player.is_active = request.is_active
    await db.flush()

    logger.info(f"Admin {admin} updated player {player.id}")
    return PlayerAdminResponse.model_validate(player)


@router.delete("/players/{player_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_player(
    player_id: UUID,
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """
    Delete a player along with their locations and progress.
    """
    player = await _get_player(db, player_id)
    await db.delete(player)
    await db.flush()
    logger.info(f"Admin {admin} deleted player {player_id}")


@router.get("/locations", response_model=LocationListResponse)
async def list_locations(
    admin: Annotated[str, Depends(get_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> LocationListResponse:
    """
    Most recent location pings across all players, newest first.
    """
    result = await db.execute(
        select(PlayerLocation, Player.name)
        .join(Player, PlayerLocation.player_id == Player.id)
        .order_by(PlayerLocation.recorded_at.desc())
        .limit(limit or settings.location_feed_limit)
    )

    return LocationListResponse(
        locations=[
            LocationResponse(
                id=location.id,
                player_id=location.player_id,
                player_name=name,
                latitude=location.latitude,
                longitude=location.longitude,
                recorded_at=location.recorded_at,
            )
            for location, name in result.all()
        ]
    )
