import asyncio
import dataclasses

from aiohttp import WSMsgType, web

from modstream.common.exceptions import DeviceReadError
from modstream.services.stream.poller import PollState

from conftest import FINISHED, FakeRegisterClient, wait_for


async def test_first_message_is_server_info(aiohttp_client, make_session_app, session_config):
    app, _ = make_session_app(FakeRegisterClient(default=[1234]), session_config)
    client = await aiohttp_client(app)

    async with client.ws_connect("/ws") as ws:
        first = await ws.receive_json(timeout=2)

    assert first == {"type": "serverInfo", "content": "Server: plc.local:5020"}


async def test_data_message_follows_handshake(aiohttp_client, make_session_app, session_config):
    app, _ = make_session_app(FakeRegisterClient(default=[1234]), session_config)
    client = await aiohttp_client(app)

    async with client.ws_connect("/ws") as ws:
        await ws.receive_json(timeout=2)
        data = await ws.receive_json(timeout=2)

    assert data["type"] == "modbusData"
    assert data["content"] == "4000:1234"
    assert "timestamp" in data


async def test_read_error_does_not_end_session(aiohttp_client, make_session_app, session_config):
    device = FakeRegisterClient(results=[DeviceReadError("mock error"), [1234]])
    app, sessions = make_session_app(device, session_config)
    client = await aiohttp_client(app)

    async with client.ws_connect("/ws") as ws:
        await ws.receive_json(timeout=2)
        error = await ws.receive_json(timeout=2)
        data = await ws.receive_json(timeout=2)
        running = not sessions[0].stop_event.is_set()

    assert error["type"] == "modbusData"
    assert "mock error" in error["content"]
    assert data["content"] == "4000:1234"
    assert running


async def test_zero_quantity_streams_empty_content(aiohttp_client, make_session_app, session_config):
    config = dataclasses.replace(session_config, quantity=0)
    app, _ = make_session_app(FakeRegisterClient(default=[]), config)
    client = await aiohttp_client(app)

    async with client.ws_connect("/ws") as ws:
        await ws.receive_json(timeout=2)
        data = await ws.receive_json(timeout=2)

    assert data == {"type": "modbusData", "content": "", "timestamp": data["timestamp"]}


async def test_client_close_ends_session_before_next_tick(
    aiohttp_client, make_session_app, session_config,
):
    config = dataclasses.replace(session_config, poll_interval=30.0)
    device = FakeRegisterClient()
    app, sessions = make_session_app(device, config)
    client = await aiohttp_client(app)

    ws = await client.ws_connect("/ws")
    await ws.receive_json(timeout=2)
    await ws.close()

    assert await wait_for(lambda: sessions and not sessions[0].is_running)
    session = sessions[0]
    assert session.stop_event.is_set()
    assert session.detector.close_reason == "close"
    assert session.poller.state == PollState.TERMINATED
    assert session.poller.ticker.stopped
    assert session.poller.sent_count == 0
    assert device.reads == []


async def test_session_stop_closes_channel(aiohttp_client, make_session_app, session_config):
    app, sessions = make_session_app(FakeRegisterClient(), session_config)
    client = await aiohttp_client(app)

    async with client.ws_connect("/ws") as ws:
        await ws.receive_json(timeout=2)
        assert await wait_for(lambda: sessions)
        sessions[0].stop()

        msg = await ws.receive(timeout=2)
        while msg.type == WSMsgType.TEXT:
            msg = await ws.receive(timeout=2)

    assert msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSED)
    assert await wait_for(lambda: not sessions[0].is_running)


async def test_handshake_precedes_every_data_message(
    aiohttp_client, make_session_app, session_config,
):
    device = FakeRegisterClient(results=[[1], [2], [3]])
    app, _ = make_session_app(device, session_config)
    client = await aiohttp_client(app)

    async with client.ws_connect("/ws") as ws:
        messages = [await ws.receive_json(timeout=2) for _ in range(4)]

    assert [m["type"] for m in messages] == ["serverInfo"] + ["modbusData"] * 3
    assert [m["content"] for m in messages[1:]] == ["4000:1", "4000:2", "4000:3"]


async def test_plain_http_request_is_rejected(aiohttp_client, make_session_app, session_config):
    device = FakeRegisterClient()
    app, sessions = make_session_app(device, session_config)
    client = await aiohttp_client(app)

    resp = await client.get("/ws")

    assert resp.status == 400
    await asyncio.sleep(0.1)
    assert device.reads == []
    assert not sessions[0].is_running
    assert sessions[0].poller is None


async def test_sessions_are_independent(aiohttp_client, make_session_app, session_config):
    first_device = FakeRegisterClient(default=[1])
    second_device = FakeRegisterClient(default=[2])

    app_a, _ = make_session_app(first_device, session_config)
    app_b, _ = make_session_app(second_device, session_config)
    client_a = await aiohttp_client(app_a)
    client_b = await aiohttp_client(app_b)

    async with client_a.ws_connect("/ws") as ws_a, client_b.ws_connect("/ws") as ws_b:
        await ws_a.receive_json(timeout=2)
        await ws_b.receive_json(timeout=2)
        data_a = await ws_a.receive_json(timeout=2)
        data_b = await ws_b.receive_json(timeout=2)

    assert data_a["content"] == "4000:1"
    assert data_b["content"] == "4000:2"


async def test_handshake_failure_closes_without_polling(
    aiohttp_client, make_session_app, session_config, monkeypatch,
):
    async def broken_send(self, data, *args, **kwargs):
        raise ConnectionResetError("Cannot write to closing transport")

    monkeypatch.setattr(web.WebSocketResponse, "send_json", broken_send)
    device = FakeRegisterClient()
    app, sessions = make_session_app(device, session_config)
    client = await aiohttp_client(app)

    async with client.ws_connect("/ws") as ws:
        msg = await ws.receive(timeout=2)

    assert msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSED)
    assert await wait_for(lambda: app[FINISHED])
    assert sessions[0].poller is None
    assert sessions[0].detector is None
    await asyncio.sleep(2 * session_config.poll_interval)
    assert device.reads == []


async def test_close_does_not_wait_for_silent_peer(
    aiohttp_client, make_session_app, session_config,
):
    config = dataclasses.replace(session_config, send_timeout=0.2)
    app, sessions = make_session_app(FakeRegisterClient(), config)
    client = await aiohttp_client(app)

    ws = await client.ws_connect("/ws")
    assert await wait_for(lambda: sessions)
    sessions[0].stop()

    # The peer never reads, so it never answers the close frame
    assert await wait_for(lambda: app[FINISHED], timeout=1.5)
    assert not sessions[0].is_running
    await ws.close()
