"""Tests for the WebSocket event stream, frame decoding and stream addressing."""

import socket
from contextlib import asynccontextmanager

import anyio
import pytest
import websockets
from websockets.asyncio.server import serve

from research_client.api.stream import WebSocketSubscription, parse_frame, stream_url
from research_client.core.settings import Settings
from research_client.models.enums import RunStatus, SessionStatus
from research_client.services.session import RunSession

from conftest import frame


@asynccontextmanager
async def event_server(handler):
    async with serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        yield f"ws://127.0.0.1:{port}"


def unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def websocket_session(query, api, store, credentials, settings, base_url):
    settings.stream_base_url = base_url
    return RunSession(query, api, store, credentials, settings=settings)


def test_parse_frame_accepts_text_and_bytes():
    assert parse_frame('{"event": "summary", "data": {"text": "S"}}').payload == {"text": "S"}
    assert parse_frame(b'{"event": "done"}').kind == "done"


def test_parse_frame_rejects_malformed_frames():
    for raw in ["", "nope", "[]", '{"event": 5}', '{"data": {}}', b"\x80"]:
        assert parse_frame(raw) is None


def test_stream_url_carries_query_and_user(settings):
    url = stream_url(settings, "run/1", "heat & light")

    assert url == "ws://testserver/ws/runs/run%2F1?query=heat+%26+light&user_id=user-1"


def test_stream_base_follows_api_scheme():
    assert Settings(api_base_url="https://api.example.com/").stream_base == "wss://api.example.com"
    assert Settings(api_base_url="http://localhost:8000", stream_base_url="ws://events:9000/").stream_base == (
        "ws://events:9000"
    )


@pytest.mark.anyio
async def test_clean_close_without_done_ends_session_done(api, store, credentials, settings):
    requests = []

    async def handler(connection):
        requests.append(connection.request)
        await connection.send(frame("search", {"hits": []}))
        await connection.close()

    async with event_server(handler) as base_url:
        session = websocket_session("tides", api, store, credentials, settings, base_url)
        state = await session.run()

    assert state.status is SessionStatus.DONE
    assert [event.kind for event in state.log] == ["search"]
    assert store.get("run-1").status is RunStatus.DONE
    (request,) = requests
    assert request.path == "/ws/runs/run-1?query=tides&user_id=user-1"
    assert request.headers["Authorization"] == "Bearer test-token"


@pytest.mark.anyio
async def test_server_error_close_ends_session_error(api, store, credentials, settings):
    async def handler(connection):
        await connection.send(frame("search"))
        await connection.close(code=1011, reason="internal error")

    async with event_server(handler) as base_url:
        session = websocket_session("q", api, store, credentials, settings, base_url)
        state = await session.run()

    assert state.status is SessionStatus.ERROR
    assert [event.kind for event in state.log] == ["search"]
    assert "1011" in str(session.failure)
    assert store.get("run-1").status is RunStatus.ERROR


@pytest.mark.anyio
async def test_refused_connection_ends_session_error(api, store, credentials, settings):
    session = websocket_session("q", api, store, credentials, settings, f"ws://127.0.0.1:{unused_port()}")

    state = await session.run()

    assert state.status is SessionStatus.ERROR
    assert state.log == ()
    assert "Could not open event stream" in str(session.failure)


@pytest.mark.anyio
async def test_stop_mid_stream_ends_session_done(api, store, credentials, settings):
    async def handler(connection):
        await connection.send(frame("search"))
        await connection.wait_closed()

    async with event_server(handler) as base_url:
        session = websocket_session("q", api, store, credentials, settings, base_url)
        await session.start()
        states = []
        async for state in session.follow():
            states.append(state.status)
            if state.status is SessionStatus.RUNNING:
                await session.stop()

    assert states == [SessionStatus.RUNNING, SessionStatus.DONE]
    assert len(session.log) == 1


@pytest.mark.anyio
async def test_stalled_handshake_leaves_session_running(api, store, credentials, settings, monkeypatch):
    connect_kwargs = {}

    async def stalled_connect(url, **kwargs):
        connect_kwargs.update(kwargs)
        await anyio.sleep_forever()

    monkeypatch.setattr(websockets, "connect", stalled_connect)
    session = websocket_session("q", api, store, credentials, settings, "ws://127.0.0.1:1")
    await session.start()

    with anyio.move_on_after(0.2):
        await session.run()

    assert session.status is SessionStatus.RUNNING
    assert store.get("run-1").status is RunStatus.RUNNING
    assert connect_kwargs["open_timeout"] is None
    assert connect_kwargs["ping_interval"] is None


@pytest.mark.anyio
async def test_subscription_closed_before_iteration_never_connects(monkeypatch):
    async def fail_connect(url, **kwargs):
        raise AssertionError("connect should not be called")

    monkeypatch.setattr(websockets, "connect", fail_connect)
    subscription = WebSocketSubscription("ws://127.0.0.1:1")
    await subscription.close()

    assert [item async for item in subscription.frames()] == []
