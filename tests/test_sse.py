"""Tests for the legacy SSE connection manager."""

import asyncio
import json

import pytest
import pytest_asyncio

from siyuan_mcp.sse import SSEConnectionManager
from siyuan_mcp.types import SSEMessage, SSEMessageType


async def _next_event(stream) -> dict:
    event = await asyncio.wait_for(stream.__anext__(), timeout=1.0)
    return json.loads(event["data"])


def _request(method: str, params=None, message_id: str = "m1") -> dict:
    return {"id": message_id, "type": "request", "timestamp": 0, "data": {"method": method, "params": params or {}}}


@pytest_asyncio.fixture
async def manager():
    manager = SSEConnectionManager(ping_interval=3600.0)
    yield manager
    manager.close_all()


@pytest.mark.asyncio
async def test_open_sends_connection_established(manager):
    connection_id = manager.open("127.0.0.1")
    stream = manager.stream(connection_id)

    event = await _next_event(stream)

    assert event["type"] == "notification"
    assert event["data"]["method"] == "connection_established"
    assert event["data"]["params"]["connectionId"] == connection_id
    assert manager.is_alive(connection_id)
    await stream.aclose()
    assert not manager.is_alive(connection_id)


@pytest.mark.asyncio
async def test_keep_alive_pings():
    manager = SSEConnectionManager(ping_interval=0.01)
    connection_id = manager.open()
    stream = manager.stream(connection_id)

    await _next_event(stream)
    ping = await _next_event(stream)

    assert ping["data"]["method"] == "ping"
    await stream.aclose()


@pytest.mark.asyncio
async def test_send_and_broadcast(manager):
    first = manager.open()
    second = manager.open()
    message = SSEMessage(type=SSEMessageType.NOTIFICATION, data={"method": "hello"})

    assert manager.send(first, message) is True
    assert manager.broadcast(message) == 2

    manager.close(second)
    assert manager.send(second, message) is False
    assert manager.broadcast(message) == 1


@pytest.mark.asyncio
async def test_full_queue_closes_connection():
    manager = SSEConnectionManager(ping_interval=3600.0, queue_size=1)
    connection_id = manager.open()

    delivered = manager.send(connection_id, SSEMessage(type=SSEMessageType.NOTIFICATION, data={}))

    assert delivered is False
    assert not manager.is_alive(connection_id)
    assert len(manager) == 0


@pytest.mark.asyncio
async def test_close_is_idempotent(manager):
    connection_id = manager.open()
    manager.close(connection_id)
    manager.close(connection_id)
    assert len(manager) == 0


@pytest.mark.asyncio
async def test_close_ends_stream(manager):
    connection_id = manager.open()
    stream = manager.stream(connection_id)
    await _next_event(stream)

    manager.close(connection_id)

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(stream.__anext__(), timeout=1.0)


@pytest.mark.asyncio
async def test_requests_rejected_until_authenticated(manager):
    calls = []

    async def handler(connection_id, message):
        calls.append(message.data["method"])
        return {"ok": True}

    manager.on_message(SSEMessageType.REQUEST, handler)
    connection_id = manager.open()
    stream = manager.stream(connection_id)
    await _next_event(stream)

    await manager.process_incoming_message(connection_id, _request("cache/stats"))
    rejected = await _next_event(stream)
    assert rejected["type"] == "error"
    assert rejected["data"]["error"]["code"] == -32001
    assert rejected["correlationId"] == "m1"
    assert calls == []

    await manager.process_incoming_message(connection_id, _request("auth", message_id="m2"))
    accepted = await _next_event(stream)
    assert accepted["type"] == "response"
    assert accepted["data"]["result"]["authenticated"] is True
    assert accepted["data"]["result"]["sessionToken"]
    assert manager.get_connection(connection_id).authenticated

    await manager.process_incoming_message(connection_id, _request("cache/stats", message_id="m3"))
    response = await _next_event(stream)
    assert response["type"] == "response"
    assert response["correlationId"] == "m3"
    assert response["data"]["result"] == {"ok": True}
    assert calls == ["cache/stats"]
    await stream.aclose()


@pytest.mark.asyncio
async def test_auth_token_is_checked():
    manager = SSEConnectionManager(ping_interval=3600.0, auth_token="secret")
    connection_id = manager.open()
    stream = manager.stream(connection_id)
    await _next_event(stream)

    await manager.process_incoming_message(connection_id, _request("auth", {"token": "wrong"}))
    failed = await _next_event(stream)
    assert failed["type"] == "error"
    assert not manager.get_connection(connection_id).authenticated

    await manager.process_incoming_message(connection_id, _request("auth", {"token": "secret"}))
    ok = await _next_event(stream)
    assert ok["type"] == "response"
    assert manager.get_connection(connection_id).authenticated
    await stream.aclose()


@pytest.mark.asyncio
async def test_handler_failure_returns_internal_error(manager):
    async def handler(connection_id, message):
        raise RuntimeError("broken")

    manager.on_message(SSEMessageType.REQUEST, handler)
    connection_id = manager.open()
    manager.get_connection(connection_id).authenticated = True
    stream = manager.stream(connection_id)
    await _next_event(stream)

    await manager.process_incoming_message(connection_id, _request("anything"))
    error = await _next_event(stream)

    assert error["data"]["error"] == {"code": -32603, "message": "Internal error"}
    assert manager.is_alive(connection_id)
    await stream.aclose()


@pytest.mark.asyncio
async def test_invalid_message_type_raises(manager):
    connection_id = manager.open()
    with pytest.raises(ValueError):
        await manager.process_incoming_message(connection_id, {"type": "bogus", "data": {}})


@pytest.mark.asyncio
async def test_unknown_connection(manager):
    assert await manager.process_incoming_message("missing", _request("ping")) is False


def test_message_wire_format():
    message = SSEMessage(
        type=SSEMessageType.RESPONSE,
        data={"result": 1},
        id="abc",
        timestamp=42,
        correlation_id="req-1",
    )
    assert message.to_dict() == {
        "id": "abc",
        "type": "response",
        "timestamp": 42,
        "data": {"result": 1},
        "correlationId": "req-1",
    }
    parsed = SSEMessage.from_dict(message.to_dict())
    assert parsed == message
