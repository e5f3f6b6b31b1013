"""
Tests for the track-location action.
"""

from datetime import timedelta
from typing import Any
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scavenger_backend.database import utcnow
from scavenger_backend.models import Player, PlayerLocation
from scavenger_backend.websocket import set_location_feed

from conftest import test_session_factory

PLAYER_API = "/api/player-api"


class RecordingFeed:
    """Stands in for the live feed and keeps what was published."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    async def publish(self, message: dict[str, Any]) -> None:
        self.messages.append(message)


def ping(player_id, latitude=48.8584, longitude=2.2945) -> dict:
    return {
        "action": "track-location",
        "player_id": str(player_id),
        "latitude": latitude,
        "longitude": longitude,
    }


@pytest.mark.asyncio
async def test_track_location_records_ping(
    client: AsyncClient,
    db_session: AsyncSession,
    player: Player,
):
    response = await client.post(PLAYER_API, json=ping(player.id))
    assert response.status_code == 200
    assert response.json() == {"success": True}

    result = await db_session.execute(select(PlayerLocation))
    locations = result.scalars().all()
    assert len(locations) == 1
    assert locations[0].player_id == player.id
    assert locations[0].latitude == 48.8584


@pytest.mark.asyncio
async def test_track_location_accepts_integer_coordinates(client: AsyncClient, player: Player):
    response = await client.post(PLAYER_API, json=ping(player.id, latitude=0, longitude=-180))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_track_location_prunes_old_pings(
    client: AsyncClient,
    db_session: AsyncSession,
    player: Player,
):
    """Test pings older than seven days are gone after the next insert."""
    now = utcnow()
    db_session.add_all(
        [
            PlayerLocation(player_id=player.id, latitude=1.0, longitude=1.0, recorded_at=now - timedelta(days=8)),
            PlayerLocation(player_id=player.id, latitude=2.0, longitude=2.0, recorded_at=now - timedelta(days=6)),
        ]
    )
    await db_session.commit()

    response = await client.post(PLAYER_API, json=ping(player.id))
    assert response.status_code == 200

    result = await db_session.execute(
        select(PlayerLocation).order_by(PlayerLocation.recorded_at)
    )
    remaining = result.scalars().all()
    assert [loc.latitude for loc in remaining] == [2.0, 48.8584]
    assert all(loc.recorded_at >= now - timedelta(days=7) for loc in remaining)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "latitude, longitude",
    [(90.5, 0.0), (-91, 0.0), (0.0, 180.01), (0.0, -181), ("48.8", 2.29), (True, 2.29), (None, 2.29)],
)
async def test_track_location_rejects_bad_coordinates(
    client: AsyncClient,
    db_session: AsyncSession,
    player: Player,
    latitude,
    longitude,
):
    response = await client.post(PLAYER_API, json=ping(player.id, latitude, longitude))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid data"

    result = await db_session.execute(select(PlayerLocation))
    assert result.scalars().all() == []


@pytest.mark.asyncio
async def test_track_location_rejects_nan(client: AsyncClient, player: Player):
    body = (
        '{"action": "track-location", "player_id": "%s", "latitude": NaN, "longitude": 1.0}'
        % player.id
    )
    response = await client.post(
        PLAYER_API,
        content=body.encode(),
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["field"] == "latitude"


@pytest.mark.asyncio
async def test_track_location_unknown_player(client: AsyncClient):
    response = await client.post(PLAYER_API, json=ping(uuid4()))
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid player"}


@pytest.mark.asyncio
async def test_track_location_inactive_player(
    client: AsyncClient,
    db_session: AsyncSession,
    player: Player,
):
    player.is_active = False
    await db_session.commit()

    response = await client.post(PLAYER_API, json=ping(player.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_track_location_publishes_to_feed(client: AsyncClient, player: Player):
    """Test each recorded ping is pushed to the operator feed."""
    feed = RecordingFeed()
    set_location_feed(feed)
    try:
        response = await client.post(PLAYER_API, json=ping(player.id, 10.5, -20.25))
    finally:
        set_location_feed(None)

    assert response.status_code == 200
    assert len(feed.messages) == 1
    message = feed.messages[0]
    assert message["type"] == "location"
    assert message["player_id"] == str(player.id)
    assert message["player_name"] == "Juliet"
    assert (message["latitude"], message["longitude"]) == (10.5, -20.25)


class CommitCheckingFeed(RecordingFeed):
    """Records, for each published ping, whether other sessions can already see it."""

    def __init__(self) -> None:
        super().__init__()
        self.visible: list[bool] = []

    async def publish(self, message: dict[str, Any]) -> None:
        await super().publish(message)
        async with test_session_factory() as session:
            location = await session.get(PlayerLocation, UUID(message["id"]))
        self.visible.append(location is not None)


@pytest.mark.asyncio
async def test_track_location_publishes_after_commit(pooled_client: AsyncClient, player: Player):
    """Test the feed only hears about a ping once it is stored."""
    feed = CommitCheckingFeed()
    set_location_feed(feed)
    try:
        response = await pooled_client.post(PLAYER_API, json=ping(player.id))
    finally:
        set_location_feed(None)

    assert response.status_code == 200
    assert feed.visible == [True]


@pytest.mark.asyncio
async def test_rejected_ping_is_not_published(client: AsyncClient, player: Player):
    feed = RecordingFeed()
    set_location_feed(feed)
    try:
        response = await client.post(PLAYER_API, json=ping(player.id, latitude=95.0))
        unknown = await client.post(PLAYER_API, json=ping(uuid4()))
    finally:
        set_location_feed(None)

    assert (response.status_code, unknown.status_code) == (400, 401)
    assert feed.messages == []
