"""
Custom Exception Classes for modstream

Hierarchical exception structure for error handling across services.
"""


class ModstreamError(Exception):
    """Base exception for all modstream errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(ModstreamError):
    """Configuration-related errors"""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(f"Config Error: {message}", recoverable)


class DeviceError(ModstreamError):
    """Device communication errors"""

    def __init__(self, message: str, recoverable: bool = True):
        super().__init__(message, recoverable)


class ConnectError(DeviceError):
    """Opening or closing the device link failed"""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        port: int | None = None,
    ):
        self.host = host
        self.port = port
        super().__init__(message, recoverable=True)


class DeviceReadError(DeviceError):
    """Register read failed. Reported to the viewer, polling continues."""

    def __init__(
        self,
        message: str,
        address: int | None = None,
        quantity: int | None = None,
    ):
        self.address = address
        self.quantity = quantity
        super().__init__(message, recoverable=True)


class SessionError(ModstreamError):
    """Streaming session errors. Fatal to the session that raised them."""

    def __init__(self, message: str, peer: str | None = None):
        self.peer = peer
        super().__init__(message, recoverable=False)


class UpgradeError(SessionError):
    """Request could not be upgraded to a WebSocket"""


class HandshakeSendError(SessionError):
    """The serverInfo message could not be delivered"""


class ChannelSendError(SessionError):
    """An outbound send failed or timed out"""
