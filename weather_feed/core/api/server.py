"""
Feed Server - aiohttp WebSocket endpoint hosting one ConnectionSession per client.

The server owns the session registry: every accepted socket gets a named
session, inbound frames are forwarded to it, and the session is stopped and
deregistered when the socket closes or when it forces its own disconnect.
"""

import asyncio
import itertools
from typing import Callable, Dict, Optional

from aiohttp import WSCloseCode, WSMsgType, web

from weather_feed.core.config import FeedConfig
from weather_feed.core.logging_utils import get_module_logger
from weather_feed.core.session import ConnectionSession

from .middleware import error_handling_middleware, request_logging_middleware
from .routes import setup_routes


logger = get_module_logger("FeedServer")

SessionFactory = Callable[..., ConnectionSession]

_CLOSE = object()


class WebSocketTransport:
    """
    Bridges the synchronous session send/close calls onto an aiohttp socket.

    Frames are queued and written by a single writer task so they reach the
    client in the order the session produced them.
    """

    def __init__(self, ws: web.WebSocketResponse, name: str):
        self._ws = ws
        self._name = name
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._closing = False
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain(), name=f"ws-writer-{self._name}")

    def send(self, data: str) -> None:
        if self._closing:
            return
        self._queue.put_nowait(data)

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self._queue.put_nowait(_CLOSE)

    async def aclose(self) -> None:
        """Close the socket and wait for the writer to finish."""
        self.close()
        if self._writer is not None:
            await self._writer
            self._writer = None

    async def _drain(self) -> None:
        while True:
            item = await self._queue.get()
            if item is _CLOSE:
                if not self._ws.closed:
                    await self._ws.close(code=WSCloseCode.GOING_AWAY, message=b"Feed closed")
                return
            if self._ws.closed:
                continue
            try:
                await self._ws.send_str(item)
            except ConnectionResetError as e:
                logger.debug("Send failed on %s: %s", self._name, e)


class FeedServer:
    """
    WebSocket server for the simulated weather feed.

    Exposes:
    - GET /        WebSocket subscription endpoint
    - GET /health  JSON health summary
    """

    def __init__(
        self,
        config: FeedConfig,
        *,
        session_factory: Optional[SessionFactory] = None,
    ):
        """
        Initialize the feed server.

        Args:
            config: Validated feed configuration, shared by every session
            session_factory: Optional callable building sessions; receives the
                same arguments as ConnectionSession (transport, config, name,
                on_error). Tests use it to inject deterministic collaborators.
        """
        self.config = config
        self.host = config.iface
        self.port = config.port

        self.sessions: Dict[str, ConnectionSession] = {}
        self._sockets: Dict[str, web.WebSocketResponse] = {}
        self._session_factory = session_factory or ConnectionSession
        self._counter = itertools.count(1)

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

    def create_app(self) -> web.Application:
        """Create and configure the aiohttp application."""
        app = web.Application(
            middlewares=[request_logging_middleware, error_handling_middleware]
        )
        app["server"] = self
        setup_routes(app, self)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def start(self) -> None:
        """Start the feed server (non-blocking)."""
        if self._running:
            logger.warning("Feed server already running")
            return

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        logger.info(
            "Feed server started on %s (failures=%s, delays=%s, frequency=%dms)",
            self.url,
            self.config.simulate_failures,
            self.config.simulate_delays,
            self.config.frequency_ms,
        )

    async def stop(self) -> None:
        """Stop the feed server, closing every open connection."""
        if not self._running:
            return

        logger.info("Stopping feed server...")

        if self._site:
            await self._site.stop()
            self._site = None

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        self._app = None
        self._running = False

        logger.info("Feed server stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}/"

    # ------------------------------------------------------------------
    # Session registry

    async def handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        name = f"conn-{next(self._counter)}@{request.remote}"
        transport = WebSocketTransport(ws, name)
        session = self._session_factory(transport, self.config, name, self._on_session_error)

        self.sessions[name] = session
        self._sockets[name] = ws
        transport.start()
        session.start()
        logger.info("Accepted %s (%d open)", name, len(self.sessions))

        try:
            async for msg in ws:
                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    session.on_message(msg.data)
                elif msg.type == WSMsgType.ERROR:
                    logger.warning("Connection %s errored: %s", name, ws.exception())
        finally:
            session.stop()
            self._release(name)
            await transport.aclose()
            logger.info("Closed %s (%d open)", name, len(self.sessions))

        return ws

    def _on_session_error(self, session: ConnectionSession, reason: str) -> None:
        logger.error("Session %s terminated: %s", session.name, reason)
        self._release(session.name)

    def _release(self, name: str) -> None:
        self.sessions.pop(name, None)
        self._sockets.pop(name, None)

    async def _on_shutdown(self, app: web.Application) -> None:
        for name, ws in list(self._sockets.items()):
            session = self.sessions.get(name)
            if session is not None:
                session.stop()
            await ws.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
