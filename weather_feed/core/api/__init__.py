"""aiohttp transport for the weather feed."""

from .server import FeedServer, WebSocketTransport

__all__ = ["FeedServer", "WebSocketTransport"]
