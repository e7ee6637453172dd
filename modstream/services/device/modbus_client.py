"""
Register Access Clients

The streaming core depends only on the RegisterClient capability:
open/close the device link, select the unit id, and read a block of
16-bit holding registers. Implementations wrap pymodbus for Modbus TCP
and Modbus RTU over a serial port.
"""

import asyncio
from abc import ABC, abstractmethod

from pymodbus.client import AsyncModbusTcpClient, AsyncModbusSerialClient
from pymodbus.exceptions import ModbusException

from modstream.common.config import AppConfig, Protocol, MAX_REGISTER
from modstream.common.exceptions import ConnectError, DeviceReadError
from modstream.common.logging_setup import get_service_logger, log_register_read

logger = get_service_logger("device.modbus")

# Modbus limit for a single Read Holding Registers request
MAX_REGISTERS_PER_READ = 125


class RegisterClient(ABC):
    """
    Register access capability used by a streaming session.

    A read returns exactly `quantity` values in ascending address order,
    or raises DeviceReadError. Partial results are never returned.
    """

    @abstractmethod
    async def open(self) -> None:
        """Open the device link. Raises ConnectError on failure."""

    @abstractmethod
    async def close(self) -> None:
        """Close the device link. Raises ConnectError on failure."""

    @abstractmethod
    def set_unit(self, unit_id: int) -> None:
        """Select the unit/slave id used by subsequent reads."""

    @abstractmethod
    async def read_registers(self, address: int, quantity: int) -> list[int]:
        """Read `quantity` holding registers starting at `address`."""


class _PymodbusRegisterClient(RegisterClient):
    """
    Shared pymodbus plumbing for the TCP and serial clients.

    Handles:
    - Lazy reconnect when the link has dropped between reads
    - Splitting reads larger than 125 registers into several requests
    - Mapping pymodbus errors to DeviceReadError
    """

    def __init__(self, timeout: float = 1.0):
        self.timeout = timeout
        self.unit_id = 1

        self._client: AsyncModbusTcpClient | AsyncModbusSerialClient | None = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client is not None and self._client.connected

    @property
    @abstractmethod
    def endpoint(self) -> str:
        """Human-readable device endpoint, used in logs and errors"""

    @property
    @abstractmethod
    def endpoint_parts(self) -> tuple[str, int]:
        """(host, port) pair carried on ConnectError"""

    @abstractmethod
    def _create_client(self) -> AsyncModbusTcpClient | AsyncModbusSerialClient:
        """Build the underlying pymodbus client"""

    async def open(self) -> None:
        if self.is_connected:
            return

        # A dropped pymodbus client keeps its own reconnect task alive
        self._discard_client()

        host, port = self.endpoint_parts
        try:
            self._client = self._create_client()
            await self._client.connect()
            self._connected = self._client.connected
        except Exception as e:
            self._connected = False
            raise ConnectError(f"Connection error to {self.endpoint}: {e}", host, port) from e

        if not self._connected:
            raise ConnectError(f"Failed to connect to Modbus device at {self.endpoint}", host, port)

        logger.debug(f"Connected to Modbus device at {self.endpoint}")

    async def close(self) -> None:
        if self._client:
            try:
                self._client.close()
            except Exception as e:
                raise ConnectError(f"Error closing {self.endpoint}: {e}", *self.endpoint_parts) from e
            finally:
                self._client = None
                self._connected = False
            logger.debug(f"Disconnected from {self.endpoint}")

    def _discard_client(self) -> None:
        """Close and forget a stale pymodbus client before replacing it"""
        if self._client is None:
            return
        try:
            self._client.close()
        except Exception as e:
            logger.debug(f"Error closing stale client for {self.endpoint}: {e}")
        self._client = None
        self._connected = False

    def set_unit(self, unit_id: int) -> None:
        self.unit_id = unit_id

    async def read_registers(self, address: int, quantity: int) -> list[int]:
        if quantity == 0:
            return []

        if address < 0 or quantity < 0 or address + quantity - 1 > MAX_REGISTER:
            raise DeviceReadError(
                f"Register range {address}+{quantity} is outside 0..{MAX_REGISTER}",
                address=address,
                quantity=quantity,
            )

        await self._ensure_connected(address, quantity)

        values: list[int] = []
        offset = 0
        while offset < quantity:
            count = min(MAX_REGISTERS_PER_READ, quantity - offset)
            values.extend(await self._read_block(address + offset, count))
            offset += count

        log_register_read(logger, address, quantity, values)
        return values

    async def _read_block(self, address: int, count: int) -> list[int]:
        """Read one request-sized block, raising DeviceReadError on any failure"""
        try:
            response = await self._client.read_holding_registers(
                address=address,
                count=count,
                device_id=self.unit_id,
            )
        except ModbusException as e:
            raise DeviceReadError(f"Modbus exception: {e}", address, count) from e
        except asyncio.TimeoutError as e:
            raise DeviceReadError("Read timeout", address, count) from e
        except Exception as e:
            raise DeviceReadError(str(e) or type(e).__name__, address, count) from e

        if response.isError():
            raise DeviceReadError(f"Modbus error: {response}", address, count)

        registers = list(response.registers)
        if len(registers) < count:
            raise DeviceReadError(
                f"Short response: expected {count} registers, got {len(registers)}",
                address,
                count,
            )
        # Some devices pad the response; keep only what was asked for
        return registers[:count]

    async def _ensure_connected(self, address: int, quantity: int) -> None:
        """Reopen the link if it has dropped since the last read"""
        if self.is_connected:
            return

        self._connected = False
        try:
            await self.open()
        except ConnectError as e:
            raise DeviceReadError(
                f"Not connected to {self.endpoint}: {e.message}",
                address=address,
                quantity=quantity,
            ) from e


class TcpRegisterClient(_PymodbusRegisterClient):
    """Modbus TCP register client"""

    def __init__(self, host: str, port: int = 502, timeout: float = 1.0):
        super().__init__(timeout)
        self.host = host
        self.port = port

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def endpoint_parts(self) -> tuple[str, int]:
        return self.host, self.port

    def _create_client(self) -> AsyncModbusTcpClient:
        return AsyncModbusTcpClient(
            host=self.host,
            port=self.port,
            timeout=self.timeout,
        )


class SerialRegisterClient(_PymodbusRegisterClient):
    """
    Modbus RTU register client for direct RS485/RS232 connections.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        parity: str = "N",
        stopbits: int = 1,
        timeout: float = 1.0,
    ):
        super().__init__(timeout)
        self.port = port
        self.baudrate = baudrate
        self.parity = parity
        self.stopbits = stopbits

    @property
    def endpoint(self) -> str:
        return f"{self.port}@{self.baudrate}"

    @property
    def endpoint_parts(self) -> tuple[str, int]:
        return self.port, self.baudrate

    def _create_client(self) -> AsyncModbusSerialClient:
        return AsyncModbusSerialClient(
            port=self.port,
            baudrate=self.baudrate,
            parity=self.parity,
            stopbits=self.stopbits,
            timeout=self.timeout,
        )


def create_register_client(config: AppConfig) -> RegisterClient:
    """
    Create the register client matching the configured protocol.

    Args:
        config: Application configuration

    Returns:
        Unopened RegisterClient
    """
    if config.protocol == Protocol.RTU:
        return SerialRegisterClient(
            port=config.serial_port,
            baudrate=config.baudrate,
            parity=config.parity,
            stopbits=config.stopbits,
            timeout=config.timeout,
        )

    return TcpRegisterClient(
        host=config.server_ip,
        port=config.server_port,
        timeout=config.timeout,
    )
