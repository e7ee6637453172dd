"""
Streaming Session

Lifecycle of one viewer connection:
1. Upgrade the HTTP request to a WebSocket
2. Send the serverInfo handshake
3. Run the DisconnectDetector and PollingLoop concurrently
4. Tear down when either of them stops

Both tasks share a single asyncio.Event. Whichever side finishes first
sets it, the other is cancelled, and the channel is closed once.
"""

import asyncio

from aiohttp import web

from modstream.common.config import SessionConfig
from modstream.common.exceptions import (
    ChannelSendError,
    HandshakeSendError,
    UpgradeError,
)
from modstream.common.logging_setup import get_service_logger, log_session_event
from modstream.services.device.modbus_client import RegisterClient

from .detector import DisconnectDetector
from .messages import OutboundMessage, send_message
from .poller import PollingLoop

logger = get_service_logger("stream.session")


class StreamSession:
    """
    Per-connection session controller.

    The register client is supplied already bound to its device; the
    session never opens or closes it, and is its only user while running.
    """

    def __init__(
        self,
        request: web.Request,
        client: RegisterClient,
        config: SessionConfig,
    ):
        self._request = request
        self._client = client
        self._config = config

        self._ws: web.WebSocketResponse | None = None
        self._stop_event = asyncio.Event()
        self._closed = False

        self.peer = request.remote or "unknown"
        self.detector: DisconnectDetector | None = None
        self.poller: PollingLoop | None = None

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    @property
    def is_running(self) -> bool:
        return self._ws is not None and not self._closed

    def stop(self) -> None:
        """Ask a running session to end. Safe to call at any time."""
        self._stop_event.set()

    async def run(self) -> web.StreamResponse:
        """
        Run the session to completion.

        Returns:
            The WebSocket response, or a 400 response if the upgrade failed
        """
        try:
            ws = await self._upgrade()
        except UpgradeError as e:
            logger.warning(f"WebSocket upgrade failed for {self.peer}: {e.message}")
            return web.Response(status=400, text="WebSocket upgrade required")

        self._ws = ws

        try:
            await self._send_handshake(ws)
        except HandshakeSendError as e:
            logger.warning(f"Handshake to {self.peer} failed: {e.message}")
            await self._close()
            return ws

        log_session_event(
            logger, "started", self.peer,
            endpoint=self._config.endpoint,
            start_address=self._config.start_address,
            quantity=self._config.quantity,
            interval_s=self._config.poll_interval,
        )

        self.detector = DisconnectDetector(ws, self._stop_event, self.peer)
        self.poller = PollingLoop(ws, self._client, self._config, self._stop_event, self.peer)

        tasks = [
            asyncio.create_task(self.detector.run(), name=f"detector-{self.peer}"),
            asyncio.create_task(self.poller.run(), name=f"poller-{self.peer}"),
        ]

        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            await self._teardown(tasks)

        log_session_event(
            logger, "ended", self.peer,
            sent=self.poller.sent_count,
            read_errors=self.poller.read_error_count,
            reason=self.detector.close_reason or self.poller.last_send_error or "stopped",
        )
        return ws

    async def _upgrade(self) -> web.WebSocketResponse:
        """Promote the request to a WebSocket"""
        # Bounds how long close() waits for the peer's close frame
        ws = web.WebSocketResponse(timeout=self._config.send_timeout)

        ready = ws.can_prepare(self._request)
        if not ready.ok:
            raise UpgradeError("request is not a WebSocket upgrade", peer=self.peer)

        try:
            await ws.prepare(self._request)
        except (web.HTTPException, ConnectionError) as e:
            raise UpgradeError(str(e), peer=self.peer) from e

        return ws

    async def _send_handshake(self, ws: web.WebSocketResponse) -> None:
        """Send serverInfo. Must complete before polling starts."""
        message = OutboundMessage.server_info(self._config.host, self._config.port)
        try:
            await send_message(ws, message, self._config.send_timeout)
        except ChannelSendError as e:
            raise HandshakeSendError(e.message, peer=self.peer) from e

    async def _teardown(self, tasks: list[asyncio.Task]) -> None:
        """Stop both tasks and close the channel"""
        self._stop_event.set()

        for task in tasks:
            if not task.done():
                task.cancel()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Session task {task.get_name()} failed: {result}",
                    exc_info=result,
                )

        await self._close()

    async def _close(self) -> None:
        """Close the channel once"""
        if self._closed:
            return
        self._closed = True

        if self._ws is not None and not self._ws.closed:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug(f"Error closing channel to {self.peer}: {e}")
