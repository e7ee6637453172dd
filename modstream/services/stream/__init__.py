"""
Streaming Sessions - Modbus registers to WebSocket viewers

Responsibilities:
- Upgrade viewer connections and send the serverInfo handshake
- Poll the device on a fixed interval and push formatted snapshots
- Report device read errors without ending the session
- Detect viewer disconnects and tear the session down
"""

from .formatter import format_registers
from .messages import MessageType, OutboundMessage, send_message
from .detector import DisconnectDetector
from .poller import PollingLoop, PollState
from .session import StreamSession

__all__ = [
    "format_registers",
    "MessageType",
    "OutboundMessage",
    "send_message",
    "DisconnectDetector",
    "PollingLoop",
    "PollState",
    "StreamSession",
]
