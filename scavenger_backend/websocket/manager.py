"""
Live location feed for the operator console.
Keeps the set of subscribed admin websockets and fans out new pings.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 5.0

# Global feed instance, set during application startup
_feed: "LocationFeed | None" = None


def get_location_feed() -> "LocationFeed | None":
    """Get the global location feed instance."""
    return _feed


def set_location_feed(feed: "LocationFeed | None") -> None:
    """Set the global location feed instance."""
    global _feed
    _feed = feed


@dataclass
class Subscriber:
    """An operator connected to the feed."""

    username: str
    websocket: WebSocket
    connection_id: UUID = field(default_factory=uuid4)


class LocationFeed:
    """
    Broadcasts location pings to every subscribed operator.
    """

    def __init__(self) -> None:
        self._subscribers: dict[UUID, Subscriber] = {}
        self._lock = asyncio.Lock()
        # Keep references so in-flight sends are not garbage collected
        self._pending: set[asyncio.Task] = set()

    async def subscribe(self, subscriber: Subscriber) -> None:
        async with self._lock:
            self._subscribers[subscriber.connection_id] = subscriber
        logger.info(
            f"Operator {subscriber.username} subscribed to location feed "
            f"[conn_id={subscriber.connection_id}]"
        )

    async def unsubscribe(self, connection_id: UUID) -> None:
        async with self._lock:
            subscriber = self._subscribers.pop(connection_id, None)
        if subscriber is not None:
            logger.info(
                f"Operator {subscriber.username} left location feed "
                f"[conn_id={connection_id}]"
            )

    async def publish(self, message: dict[str, Any]) -> None:
        """
        Send a message to all subscribers.
        Non-blocking: each send runs as its own task so a slow operator
        never holds up the request that produced the ping.
        """
        async with self._lock:
            subscribers = list(self._subscribers.values())

        for subscriber in subscribers:
            task = asyncio.create_task(self._send(subscriber, message))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _send(self, subscriber: Subscriber, message: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(
                subscriber.websocket.send_json(message),
                timeout=SEND_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timeout sending location to operator {subscriber.username}")
        except Exception as e:
            # The subscriber's own receive loop handles the disconnect
            logger.warning(f"Error sending location to operator {subscriber.username}: {e}")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
