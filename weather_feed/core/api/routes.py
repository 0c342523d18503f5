"""Route table for the feed server."""

from typing import TYPE_CHECKING

from aiohttp import web

from weather_feed._version import __version__

if TYPE_CHECKING:
    from .server import FeedServer


async def health(request: web.Request) -> web.Response:
    """GET /health - Liveness plus the active fault settings."""
    server: "FeedServer" = request.app["server"]
    return web.json_response({
        "status": "healthy",
        "version": __version__,
        "sessions": len(server.sessions),
        "simulate_failures": server.config.simulate_failures,
        "simulate_delays": server.config.simulate_delays,
    })


def setup_routes(app: web.Application, server: "FeedServer") -> None:
    app.router.add_get("/", server.handle_websocket)
    app.router.add_get("/health", health)
