"""
WebSocket loop for a location feed subscriber.
"""

import logging

from fastapi import WebSocket, WebSocketDisconnect

from scavenger_backend.websocket.manager import LocationFeed, Subscriber

logger = logging.getLogger(__name__)


async def serve_subscriber(feed: LocationFeed, subscriber: Subscriber) -> None:
    """
    Keep a subscriber registered until its socket closes.

    Operators only receive; the one message they may send is ``ping``,
    answered with ``{"type": "pong"}`` so clients can keep the socket alive
    through proxies.
    """
    await feed.subscribe(subscriber)
    try:
        while True:
            text = await subscriber.websocket.receive_text()
            if text.strip().lower() == "ping":
                await subscriber.websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info(f"Operator {subscriber.username} disconnected")
    except (ConnectionResetError, BrokenPipeError, OSError) as e:
        logger.info(f"Connection lost for operator {subscriber.username}: {e}")
    finally:
        await feed.unsubscribe(subscriber.connection_id)
