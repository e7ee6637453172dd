"""
Disconnect Detector

Watches the inbound side of a session's WebSocket. Viewers send no
application messages, so anything received is discarded; the reader
exists to notice a close or error as soon as the transport reports it,
independent of the poll interval.
"""

import asyncio

from aiohttp import WSMsgType, web

from modstream.common.logging_setup import get_service_logger

logger = get_service_logger("stream.detector")

CLOSE_TYPES = frozenset({
    WSMsgType.CLOSE,
    WSMsgType.CLOSING,
    WSMsgType.CLOSED,
    WSMsgType.ERROR,
})


class DisconnectDetector:
    """
    Blocking reader that raises the session stop event on peer close.

    The stop event is set when the read loop exits for any reason other
    than cancellation by the session.
    """

    def __init__(
        self,
        ws: web.WebSocketResponse,
        stop_event: asyncio.Event,
        peer: str = "unknown",
    ):
        self._ws = ws
        self._stop_event = stop_event
        self.peer = peer

        self.close_reason: str | None = None
        self.ignored_count = 0

    async def run(self) -> None:
        """Read until the peer closes or the channel errors"""
        try:
            while not self._stop_event.is_set():
                msg = await self._ws.receive()

                if msg.type in CLOSE_TYPES:
                    self.close_reason = msg.type.name.lower()
                    if msg.type == WSMsgType.ERROR:
                        logger.debug(f"Channel error from {self.peer}: {self._ws.exception()}")
                    else:
                        logger.debug(f"Peer {self.peer} closed the channel ({self.close_reason})")
                    break

                self.ignored_count += 1

        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.close_reason = "read_error"
            logger.debug(f"Read from {self.peer} failed: {e}")

        self._stop_event.set()
