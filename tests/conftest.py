import asyncio
from types import SimpleNamespace

import pytest
from aiohttp import WSMsgType, web

from modstream.common.config import SessionConfig
from modstream.services.device.modbus_client import RegisterClient
from modstream.services.stream.session import StreamSession


class FakeRegisterClient(RegisterClient):
    """Scripted register client.

    Each read pops the next entry from `results`: a list of values is
    returned, an exception is raised. When the script runs out, `default`
    is used (zeros if None).
    """

    def __init__(self, results=None, default=None):
        self.results = list(results or [])
        self.default = default
        self.reads = []
        self.unit_id = None
        self.opened = False
        self.closed = False
        self.open_error = None

    async def open(self):
        if self.open_error:
            raise self.open_error
        self.opened = True

    async def close(self):
        self.closed = True

    def set_unit(self, unit_id):
        self.unit_id = unit_id

    async def read_registers(self, address, quantity):
        self.reads.append((address, quantity))
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        if result is None:
            return [0] * quantity
        return list(result)


class FakeWebSocket:
    """Stand-in for web.WebSocketResponse used by poller/detector tests."""

    def __init__(self, fail_after=None, send_delay=0.0):
        self.sent = []
        self.closed = False
        self.fail_after = fail_after
        self.send_delay = send_delay
        self._inbound = asyncio.Queue()

    async def send_json(self, data):
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(data)

    async def receive(self):
        item = await self._inbound.get()
        if isinstance(item, Exception):
            raise item
        return item

    def feed(self, msg_type, data=None):
        self._inbound.put_nowait(SimpleNamespace(type=msg_type, data=data, extra=None))

    def feed_error(self, exc):
        self._inbound.put_nowait(exc)

    def exception(self):
        return None

    async def close(self):
        self.closed = True
        self.feed(WSMsgType.CLOSED)


# Sessions whose handler has returned, channel close included
FINISHED = web.AppKey("finished", list)

@pytest.fixture
def session_config():
    return SessionConfig(
        host="plc.local",
        port=5020,
        start_address=4000,
        quantity=1,
        poll_interval=0.05,
        unit_id=1,
        send_timeout=1.0,
    )


@pytest.fixture
def fake_client():
    return FakeRegisterClient()


@pytest.fixture
def make_session_app():
    """Build an app whose /ws route runs a StreamSession on the given client."""

    def _make(client, config):
        sessions = []
        finished = []

        async def ws_handler(request):
            session = StreamSession(request, client, config)
            sessions.append(session)
            try:
                return await session.run()
            finally:
                finished.append(session)

        app = web.Application()
        app[FINISHED] = finished
        app.router.add_get("/ws", ws_handler)
        return app, sessions

    return _make


async def wait_for(predicate, timeout=2.0):
    """Poll `predicate` until it is true or `timeout` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(0.01)
    return True
