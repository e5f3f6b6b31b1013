"""
Live location feed over WebSocket for Scavenger Backend.
"""

from scavenger_backend.websocket.manager import (
    LocationFeed,
    Subscriber,
    get_location_feed,
    set_location_feed,
)
from scavenger_backend.websocket.handler import serve_subscriber

__all__ = [
    "LocationFeed",
    "Subscriber",
    "get_location_feed",
    "serve_subscriber",
    "set_location_feed",
]
