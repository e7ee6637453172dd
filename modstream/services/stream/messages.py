"""
Outbound WebSocket Messages

Envelope for everything a session sends to the viewer. The content is
plain text that the viewer renders verbatim.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from aiohttp import web

from modstream.common.exceptions import ChannelSendError
from modstream.common.timestamp import format_rfc3339


class MessageType(str, Enum):
    """Message kinds understood by the viewer"""
    SERVER_INFO = "serverInfo"
    MODBUS_DATA = "modbusData"


@dataclass(frozen=True)
class OutboundMessage:
    """A single message pushed to the viewer"""
    type: MessageType
    content: str
    timestamp: str | None = None

    @classmethod
    def server_info(cls, host: str, port: int | str) -> "OutboundMessage":
        """Handshake message describing the device endpoint"""
        return cls(MessageType.SERVER_INFO, f"Server: {host}:{port}")

    @classmethod
    def data(cls, content: str, timestamp: datetime) -> "OutboundMessage":
        """Formatted register snapshot for one tick"""
        return cls(MessageType.MODBUS_DATA, content, format_rfc3339(timestamp))

    @classmethod
    def error(cls, error: Any, timestamp: datetime) -> "OutboundMessage":
        """Read failure for one tick, sent on the same channel as data"""
        return cls(MessageType.MODBUS_DATA, f"Error: {error}", format_rfc3339(timestamp))

    @property
    def is_error(self) -> bool:
        return self.type == MessageType.MODBUS_DATA and self.content.startswith("Error: ")

    def to_dict(self) -> dict:
        """JSON envelope. The timestamp key is omitted when not set."""
        data = {"type": self.type.value, "content": self.content}
        if self.timestamp:
            data["timestamp"] = self.timestamp
        return data


async def send_message(
    ws: web.WebSocketResponse,
    message: OutboundMessage,
    timeout: float,
) -> None:
    """
    Send one message with a bounded deadline.

    Args:
        ws: Prepared WebSocket
        message: Message to send
        timeout: Send deadline in seconds

    Raises:
        ChannelSendError: If the channel is closed, the send fails,
            or it does not complete within `timeout`
    """
    if ws.closed:
        raise ChannelSendError("channel is closed")

    try:
        await asyncio.wait_for(ws.send_json(message.to_dict()), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ChannelSendError(f"send timed out after {timeout}s") from e
    except Exception as e:
        raise ChannelSendError(str(e) or type(e).__name__) from e
