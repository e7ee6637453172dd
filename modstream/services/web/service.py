"""
Web Service - Viewer UI and streaming endpoint

Responsible for:
- Serving the viewer page and its static assets
- Accepting WebSocket connections on /ws and running one StreamSession each
- Giving each session its own register client
- Health reporting and graceful shutdown
"""

import asyncio
import signal
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from aiohttp import web

from modstream.common.config import AppConfig
from modstream.common.exceptions import ConnectError
from modstream.common.logging_setup import get_service_logger
from modstream.services.device.modbus_client import RegisterClient, create_register_client
from modstream.services.stream.session import StreamSession

logger = get_service_logger("web")

STATIC_DIR = Path(__file__).parent / "static"
TEMPLATES_DIR = Path(__file__).parent / "templates"

ClientFactory = Callable[[AppConfig], RegisterClient]


@web.middleware
async def compression_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Gzip page, asset and JSON responses when the client accepts it"""
    response = await handler(request)
    if not response.prepared:
        response.enable_compression()
    return response


class WebService:
    """
    HTTP server for the live register viewer.

    Each WebSocket connection gets a fresh register client from
    `client_factory`, so sessions never share a device link.
    """

    def __init__(
        self,
        config: AppConfig,
        client_factory: ClientFactory | None = None,
    ):
        self.config = config
        self._client_factory = client_factory or create_register_client

        self._sessions: set[StreamSession] = set()
        self._start_time = datetime.now(timezone.utc)

        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._shutdown_event = asyncio.Event()
        self._running = False

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    def create_app(self) -> web.Application:
        """Build the aiohttp application with all routes"""
        app = web.Application(middlewares=[compression_middleware])
        app.router.add_get("/", self._index_handler)
        app.router.add_get("/ws", self._ws_handler)
        app.router.add_get("/health", self._health_handler)
        app.router.add_static("/static", STATIC_DIR)
        app.on_shutdown.append(self._on_shutdown)
        self._app = app
        return app

    async def start(self) -> None:
        """Start serving and block until a shutdown signal arrives"""
        logger.info("Starting Web Service")

        self._running = True
        self._start_time = datetime.now(timezone.utc)

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()

        site = web.TCPSite(self._runner, self.config.web_ui_host, self.config.web_ui_port)
        await site.start()

        logger.info(
            f"Web server started on http://{self.config.web_ui_host}:{self.config.web_ui_port}",
            extra={"device": self.config.session_config().endpoint},
        )

        self._setup_signal_handlers()

        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop all sessions and the HTTP server"""
        logger.info("Stopping Web Service")
        self._running = False

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        logger.info("Web Service stopped")

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                signal.signal(sig, lambda s, f: self._handle_shutdown())

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal"""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    async def _on_shutdown(self, app: web.Application) -> None:
        """Ask every live session to end so its WebSocket closes cleanly"""
        for session in list(self._sessions):
            session.stop()

    async def _index_handler(self, request: web.Request) -> web.StreamResponse:
        """Serve the viewer page"""
        return web.FileResponse(TEMPLATES_DIR / "index.html")

    async def _ws_handler(self, request: web.Request) -> web.StreamResponse:
        """Run one streaming session on a fresh register client"""
        # Reject plain HTTP before touching the device
        if not web.WebSocketResponse().can_prepare(request).ok:
            logger.warning(f"Rejected non-WebSocket request to /ws from {request.remote}")
            return web.Response(status=400, text="WebSocket upgrade required")

        client = self._client_factory(self.config)
        try:
            await client.open()
        except ConnectError as e:
            # Session still runs; each tick reports the read failure
            logger.warning(f"{e.message}; reads will retry on every tick")
        client.set_unit(self.config.slave_id)

        session = StreamSession(request, client, self.config.session_config())
        self._sessions.add(session)
        try:
            return await session.run()
        finally:
            self._sessions.discard(session)
            try:
                await client.close()
            except ConnectError as e:
                logger.warning(e.message)

    async def _health_handler(self, request: web.Request) -> web.Response:
        """Handle health check requests"""
        uptime = (datetime.now(timezone.utc) - self._start_time).total_seconds()

        return web.json_response({
            "status": "healthy",
            "service": "web",
            "uptime": int(uptime),
            "active_sessions": self.active_sessions,
            "device": self.config.session_config().endpoint,
        })


async def main(config: AppConfig) -> None:
    """Run the web service until interrupted"""
    service = WebService(config)

    try:
        await service.start()
    finally:
        await service.stop()
