"""
Polling Loop

Timer-driven driver of a streaming session: one register read and one
outbound message per tick.

Device read failures are reported to the viewer as error content and
polling continues. A failed or timed-out send ends the loop, since the
viewer is gone or the channel is unusable.
"""

import asyncio
from datetime import datetime
from enum import Enum

from aiohttp import web

from modstream.common.config import SessionConfig
from modstream.common.exceptions import ChannelSendError
from modstream.common.logging_setup import get_service_logger, log_register_read
from modstream.common.scheduler import Ticker
from modstream.services.device.modbus_client import RegisterClient

from .formatter import format_registers
from .messages import OutboundMessage, send_message

logger = get_service_logger("stream.poller")


class PollState(str, Enum):
    """Polling loop states"""
    ACTIVE = "active"
    TERMINATED = "terminated"


class PollingLoop:
    """
    Reads registers on every tick and pushes the result to the viewer.

    The loop is the only caller of the register client and the only
    writer on the channel. It sets the session stop event when it exits.
    """

    def __init__(
        self,
        ws: web.WebSocketResponse,
        client: RegisterClient,
        config: SessionConfig,
        stop_event: asyncio.Event,
        peer: str = "unknown",
    ):
        self._ws = ws
        self._client = client
        self._config = config
        self._stop_event = stop_event
        self.peer = peer

        self._ticker = Ticker(config.poll_interval, name=f"poll {peer}")
        self.state = PollState.ACTIVE

        # Observability counters
        self.sent_count = 0
        self.read_error_count = 0
        self.last_send_error: str | None = None

    @property
    def ticker(self) -> Ticker:
        return self._ticker

    async def run(self) -> None:
        """Poll until the stop event is set or a send fails"""
        try:
            while self.state == PollState.ACTIVE:
                tick = await self._ticker.wait_next(self._stop_event)
                if tick is None:
                    break

                message = await self._poll_once(tick)

                # Stop may have been raised while the read was in flight
                if self._stop_event.is_set():
                    break

                try:
                    await send_message(self._ws, message, self._config.send_timeout)
                except ChannelSendError as e:
                    self.last_send_error = e.message
                    logger.info(f"Send to {self.peer} failed, ending session: {e.message}")
                    break

                self.sent_count += 1
        finally:
            self._ticker.stop()
            self.state = PollState.TERMINATED
            self._stop_event.set()

    async def _poll_once(self, tick: datetime) -> OutboundMessage:
        """Read the configured block and build the message for this tick"""
        address = self._config.start_address
        quantity = self._config.quantity

        try:
            values = await self._client.read_registers(address, quantity)
        except Exception as e:
            self.read_error_count += 1
            log_register_read(logger, address, quantity, error=e)
            return OutboundMessage.error(e, tick)

        return OutboundMessage.data(format_registers(values, address), tick)

    def get_stats(self) -> dict:
        return {
            "state": self.state.value,
            "sent_count": self.sent_count,
            "read_error_count": self.read_error_count,
            "ticker": self._ticker.get_stats(),
        }
