"""
Device Access - Modbus register clients

Responsibilities:
- Open and close the device link (TCP or RTU)
- Read blocks of 16-bit holding registers
- Report read failures as DeviceReadError
"""

from .modbus_client import (
    RegisterClient,
    TcpRegisterClient,
    SerialRegisterClient,
    create_register_client,
)

__all__ = [
    "RegisterClient",
    "TcpRegisterClient",
    "SerialRegisterClient",
    "create_register_client",
]
