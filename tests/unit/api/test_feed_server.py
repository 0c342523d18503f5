"""Tests for the WebSocket feed server.

Runs the aiohttp application in-process and drives it with a real
WebSocket client to cover the client-visible scenarios end to end.
"""

from __future__ import annotations

import asyncio
import json

import aiohttp
import pytest
from aiohttp import WSMsgType
from aiohttp.test_utils import TestClient, TestServer, unused_port

import weather_feed
from weather_feed.core.api import FeedServer
from weather_feed.core.session import SubscriptionState
from tests.infrastructure.mocks import FixedJitter, ScriptedRandom
from tests.unit.api.conftest import fast_config, session_factory_with


SUBSCRIBE = {"type": "subscribe", "target": "temperature"}
UNSUBSCRIBE = {"type": "unsubscribe", "target": "temperature"}
CLOSED_TYPES = (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED)


async def _receive_until(ws, predicate, timeout: float = 2.0):
    while True:
        frame = await ws.receive_json(timeout=timeout)
        if predicate(frame):
            return frame


# =============================================================================
# WebSocket scenarios
# =============================================================================


class TestWebSocketScenarios:

    @pytest.mark.asyncio
    async def test_subscribe_receives_temperature(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            ws = await client.ws_connect("/")
            await ws.send_json(SUBSCRIBE)

            frame = await ws.receive_json(timeout=2)

            assert frame["type"] == "temperature"
            assert isinstance(frame["value"], (int, float))
            assert "T" in frame["dateTime"]
            await ws.close()

    @pytest.mark.asyncio
    async def test_readings_keep_arriving(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            ws = await client.ws_connect("/")
            await ws.send_json(SUBSCRIBE)

            frames = [await ws.receive_json(timeout=2) for _ in range(3)]

            assert [f["type"] for f in frames] == ["temperature"] * 3
            stamps = [f["dateTime"] for f in frames]
            assert stamps == sorted(stamps)
            await ws.close()

    @pytest.mark.asyncio
    async def test_unknown_type_is_rejected(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            ws = await client.ws_connect("/")
            await ws.send_json({"type": "frobnicate", "target": "temperature"})

            frame = await ws.receive_json(timeout=2)

            assert frame == {"error": "Invalid message type"}
            (session,) = feed_server.sessions.values()
            assert session.state is SubscriptionState.UNSUBSCRIBED
            await ws.close()

    @pytest.mark.asyncio
    async def test_empty_frame_is_rejected(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            ws = await client.ws_connect("/")
            await ws.send_str("")

            frame = await ws.receive_json(timeout=2)

            assert frame == {"error": "Invalid inbound message"}
            await ws.close()

    @pytest.mark.asyncio
    async def test_unknown_target_keeps_connection_open(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            ws = await client.ws_connect("/")
            await ws.send_json({"type": "subscribe", "target": "humidity"})
            assert await ws.receive_json(timeout=2) == {"error": "Invalid subscription target"}

            await ws.send_json(SUBSCRIBE)
            frame = await ws.receive_json(timeout=2)

            assert frame["type"] == "temperature"
            await ws.close()

    @pytest.mark.asyncio
    async def test_subscribe_then_unsubscribe(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            ws = await client.ws_connect("/")
            await ws.send_json(SUBSCRIBE)
            await ws.receive_json(timeout=2)

            await ws.send_json(UNSUBSCRIBE)
            ack = await _receive_until(ws, lambda f: f.get("type") != "temperature")

            assert ack == {"ack": True}
            with pytest.raises(asyncio.TimeoutError):
                await ws.receive(timeout=0.3)
            await ws.close()


# =============================================================================
# Session registry and lifecycle
# =============================================================================


class TestSessionRegistry:

    @pytest.mark.asyncio
    async def test_sessions_are_registered_and_released(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            first = await client.ws_connect("/")
            second = await client.ws_connect("/")
            await first.send_json(SUBSCRIBE)
            await first.receive_json(timeout=2)

            assert len(feed_server.sessions) == 2
            names = list(feed_server.sessions)
            assert names[0].startswith("conn-1@")
            assert names[1].startswith("conn-2@")

            await first.close()
            for _ in range(50):
                if len(feed_server.sessions) == 1:
                    break
                await asyncio.sleep(0.02)

            assert len(feed_server.sessions) == 1
            await second.close()

    @pytest.mark.asyncio
    async def test_forced_disconnect_closes_socket(self):
        server = FeedServer(
            fast_config(simulate_failures=True, error_probability=0.5),
            session_factory=session_factory_with(
                rng=ScriptedRandom([0.0], default=0.99),
                jitter=FixedJitter(30),
            ),
        )
        async with TestClient(TestServer(server.create_app())) as client:
            ws = await client.ws_connect("/")
            await ws.send_json(SUBSCRIBE)

            while True:
                msg = await ws.receive(timeout=2)
                if msg.type in CLOSED_TYPES:
                    break
                assert json.loads(msg.data)["type"] == "temperature"

            assert ws.closed
            assert ws.close_code == aiohttp.WSCloseCode.GOING_AWAY
            assert server.sessions == {}

    @pytest.mark.asyncio
    async def test_health(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            resp = await client.get("/health")
            assert resp.status == 200
            data = await resp.json()
            assert data["status"] == "healthy"
            assert data["sessions"] == 0
            assert data["simulate_failures"] is False
            assert data["simulate_delays"] is False
            assert data["version"] == weather_feed.__version__

    @pytest.mark.asyncio
    async def test_unknown_route_returns_json_error(self, feed_server: FeedServer):
        async with TestClient(TestServer(feed_server.create_app())) as client:
            resp = await client.get("/nope")
            assert resp.status == 404
            data = await resp.json()
            assert data["status"] == 404
            assert data["error"]["code"] == "NOT_FOUND"


class TestServerLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop_closes_clients(self):
        server = FeedServer(fast_config(port=unused_port()))
        await server.start()
        assert server.is_running
        assert server.url == f"ws://127.0.0.1:{server.port}/"

        async with aiohttp.ClientSession() as http:
            ws = await http.ws_connect(server.url)
            await ws.send_json(SUBSCRIBE)
            await ws.receive_json(timeout=2)

            stop_task = asyncio.create_task(server.stop())
            while True:
                msg = await ws.receive(timeout=5)
                if msg.type in CLOSED_TYPES:
                    break
            await stop_task

        assert not server.is_running
        assert server.sessions == {}

    @pytest.mark.asyncio
    async def test_stop_when_not_running_is_noop(self, feed_server: FeedServer):
        await feed_server.stop()
        assert not feed_server.is_running
