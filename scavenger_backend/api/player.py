"""
Player API for Scavenger Backend.

A single endpoint takes ``{"action": ..., ...}``. The body is parsed into
one of a closed set of action models (tagged by ``action``) and routed to
the handler registered for that model.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Annotated, Any, Awaitable, Callable, Literal, Union, get_args
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from scavenger_backend.config import Settings, get_settings
from scavenger_backend.database import get_db, utcnow
from scavenger_backend.errors import AuthError, HuntError, InvalidInputError, NotFoundError
from scavenger_backend.models.challenge import Challenge
from scavenger_backend.models.location import PlayerLocation
from scavenger_backend.models.player import Player
from scavenger_backend.models.progress import PlayerProgress
from scavenger_backend.rules import Position, check_attempt, pending_prerequisites
from scavenger_backend.websocket import get_location_feed

logger = logging.getLogger(__name__)

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

Latitude = Annotated[float, Field(ge=-90, le=90, strict=True, allow_inf_nan=False)]
Longitude = Annotated[float, Field(ge=-180, le=180, strict=True, allow_inf_nan=False)]


# Request schemas, one per action
class LoginAction(BaseModel):
    action: Literal["login"]
    code: str = Field(..., min_length=1, max_length=50)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("code must not be blank")
        return value


class GetChallengesAction(BaseModel):
    action: Literal["get-challenges"]


class GetProgressAction(BaseModel):
    action: Literal["get-progress"]
    player_id: UUID


class TrackLocationAction(BaseModel):
    action: Literal["track-location"]
    player_id: UUID
    latitude: Latitude
    longitude: Longitude


class AttemptChallengeAction(BaseModel):
    action: Literal["attempt-challenge"]
    player_id: UUID
    challenge_id: UUID
    password: str = Field(..., min_length=1, max_length=100)
    latitude: Latitude
    longitude: Longitude

    @field_validator("password")
    @classmethod
    def reject_blank_password(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("password must not be blank")
        return value


PlayerAction = Annotated[
    Union[
        LoginAction,
        GetChallengesAction,
        GetProgressAction,
        TrackLocationAction,
        AttemptChallengeAction,
    ],
    Field(discriminator="action"),
]

_action_adapter = TypeAdapter(PlayerAction)

# Top-level error text per action when its payload fails validation
_INVALID_PAYLOAD_MESSAGES = {
    "login": "Invalid code",
    "get-progress": "Invalid player id",
    "track-location": "Invalid data",
    "attempt-challenge": "Missing fields",
}


# Response schemas
class ChallengeResponse(BaseModel):
    """Challenge as shown to players. The password is never exposed."""

    id: UUID
    title: str
    description: str | None
    letter: str
    latitude: float
    longitude: float
    radius_meters: int
    sort_order: int
    gift_description: str | None

    class Config:
        from_attributes = True


class ProgressResponse(BaseModel):
    id: UUID
    player_id: UUID
    challenge_id: UUID
    completed_at: datetime

    class Config:
        from_attributes = True


def parse_action(body: Any) -> BaseModel:
    """
    Validate a raw request body into its action model.

    Raises:
        InvalidInputError: body is not an object, the action is missing or
            unknown, or the action's fields fail validation
    """
    if not isinstance(body, dict):
        raise InvalidInputError("Invalid request body")

    try:
        return _action_adapter.validate_python(body)
    except ValidationError as exc:
        error = exc.errors()[0]
        if error["type"] == "union_tag_not_found":
            raise InvalidInputError("Missing action")
        if error["type"] == "union_tag_invalid":
            raise InvalidInputError("Unknown action")

        # loc is (action tag, field, ...)
        loc = error["loc"]
        tag = str(loc[0]) if loc else ""
        raise InvalidInputError(
            _INVALID_PAYLOAD_MESSAGES.get(tag, "Invalid data"),
            {"field": ".".join(str(part) for part in loc[1:]), "reason": error["msg"]},
        )


@dataclass
class ActionContext:
    db: AsyncSession
    settings: Settings


ActionHandler = Callable[[Any, ActionContext], Awaitable[dict[str, Any]]]

_HANDLERS: dict[type[BaseModel], ActionHandler] = {}


def handles(action_type: type[BaseModel]) -> Callable[[ActionHandler], ActionHandler]:
    """Register the handler for one action model."""

    def register(func: ActionHandler) -> ActionHandler:
        _HANDLERS[action_type] = func
        return func

    return register


async def _get_active_player(db: AsyncSession, player_id: UUID) -> Player:
    result = await db.execute(
        select(Player).where(Player.id == player_id)
    )
    player = result.scalar_one_or_none()

    if player is None or not player.is_active:
        raise AuthError("Invalid player")

    return player


async def _record_unlock(db: AsyncSession, player_id: UUID, challenge_id: UUID) -> bool:
    """
    Insert the progress row unless the pair already exists.
    Returns True if a new row was written.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql_insert
    elif dialect == "sqlite":
        insert = sqlite_insert
    else:
        raise RuntimeError(f"Unsupported database dialect for unlocks: {dialect}")

    stmt = (
        insert(PlayerProgress.__table__)
        .values(
            id=uuid4(),
            player_id=player_id,
            challenge_id=challenge_id,
            completed_at=utcnow(),
        )
        .on_conflict_do_nothing(index_elements=["player_id", "challenge_id"])
    )
    result = await db.execute(stmt)
    return result.rowcount > 0


# Action handlers
@handles(LoginAction)
async def login(action: LoginAction, ctx: ActionContext) -> dict[str, Any]:
    result = await ctx.db.execute(
        select(Player).where(Player.code == action.code)
    )
    player = result.scalar_one_or_none()

    # Same message for unknown and inactive codes
    if player is None or not player.is_active:
        logger.info("Rejected login attempt")
        raise AuthError("Invalid code")

    logger.info(f"Player {player.name} ({player.id}) logged in")
    return {"player": {"id": str(player.id), "name": player.name}}


@handles(GetChallengesAction)
async def get_challenges(action: GetChallengesAction, ctx: ActionContext) -> dict[str, Any]:
    result = await ctx.db.execute(
        select(Challenge)
        .where(Challenge.is_active.is_(True))
        .order_by(Challenge.sort_order)
    )
    challenges = result.scalars().all()

    return {
        "challenges": [
            ChallengeResponse.model_validate(challenge).model_dump(mode="json")
            for challenge in challenges
        ]
    }


@handles(GetProgressAction)
async def get_progress(action: GetProgressAction, ctx: ActionContext) -> dict[str, Any]:
    result = await ctx.db.execute(
        select(PlayerProgress)
        .where(PlayerProgress.player_id == action.player_id)
        .order_by(PlayerProgress.completed_at)
    )
    rows = result.scalars().all()

    return {
        "progress": [
            ProgressResponse.model_validate(row).model_dump(mode="json")
            for row in rows
        ]
    }


@handles(TrackLocationAction)
async def track_location(action: TrackLocationAction, ctx: ActionContext) -> dict[str, Any]:
    player = await _get_active_player(ctx.db, action.player_id)

    location = PlayerLocation(
        player_id=player.id,
        latitude=action.latitude,
        longitude=action.longitude,
    )
    ctx.db.add(location)
    await ctx.db.flush()

    # Rolling retention window, pruned on every insert
    cutoff = utcnow() - timedelta(days=ctx.settings.location_retention_days)
    await ctx.db.execute(
        delete(PlayerLocation).where(PlayerLocation.recorded_at < cutoff)
    )

    message = {
        "type": "location",
        "id": str(location.id),
        "player_id": str(player.id),
        "player_name": player.name,
        "latitude": location.latitude,
        "longitude": location.longitude,
        "recorded_at": location.recorded_at.isoformat(),
    }

    # Subscribers only ever see pings that are durably stored
    await ctx.db.commit()

    feed = get_location_feed()
    if feed is not None:
        await feed.publish(message)

    return {"success": True}


@handles(AttemptChallengeAction)
async def attempt_challenge(action: AttemptChallengeAction, ctx: ActionContext) -> dict[str, Any]:
    player = await _get_active_player(ctx.db, action.player_id)

    result = await ctx.db.execute(
        select(Challenge).where(
            Challenge.id == action.challenge_id,
            Challenge.is_active.is_(True),
        )
    )
    challenge = result.scalar_one_or_none()

    if challenge is None:
        raise NotFoundError("Challenge not found")

    pending = None
    if ctx.settings.enforce_challenge_order:
        active = await ctx.db.execute(
            select(Challenge).where(Challenge.is_active.is_(True))
        )
        completed = await ctx.db.execute(
            select(PlayerProgress.challenge_id).where(PlayerProgress.player_id == player.id)
        )
        pending = pending_prerequisites(
            challenge,
            active.scalars().all(),
            set(completed.scalars().all()),
        )

    try:
        distance = check_attempt(
            challenge,
            Position(action.latitude, action.longitude),
            action.password,
            pending=pending,
            expose_distance=ctx.settings.expose_distance_on_reject,
        )
    except HuntError as exc:
        logger.info(f"Player {player.id} attempt on challenge {challenge.id} rejected: {exc}")
        raise

    created = await _record_unlock(ctx.db, player.id, challenge.id)
    if created:
        logger.info(
            f"Player {player.name} unlocked '{challenge.title}' "
            f"at {distance:.0f}m"
        )

    return {
        "success": True,
        "letter": challenge.letter,
        "gift": challenge.gift_description,
        "challenge_title": challenge.title,
    }


_unhandled = set(get_args(get_args(PlayerAction)[0])) - set(_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No handler registered for actions: {sorted(t.__name__ for t in _unhandled)}")


# Routes
@router.options("/player-api")
async def player_api_preflight() -> Response:
    """CORS preflight for clients that bypass the middleware."""
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/player-api")
async def player_api(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict[str, Any]:
    """
    Dispatch a player action.
    Every failure is raised as a HuntError and rendered as {"error": ...}.
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidInputError("Invalid JSON body")

    action = parse_action(body)
    handler = _HANDLERS[type(action)]
    return await handler(action, ActionContext(db=db, settings=settings))
