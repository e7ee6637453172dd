"""
Demo Modbus Device

Modbus TCP server whose holding registers count up once per second,
so the viewer shows live data without hardware attached.

Usage:
    modstream simulate                      # 0.0.0.0:5020, registers 0-9
    modstream simulate --port 1502 --count 4
"""

import asyncio

from pymodbus.datastore import (
    ModbusDeviceContext,
    ModbusSequentialDataBlock,
    ModbusServerContext,
)
from pymodbus.server import StartAsyncTcpServer

from modstream.common.logging_setup import get_service_logger

logger = get_service_logger("simulator")

HOLDING_REGISTERS = 3  # Modbus function code for holding registers

# pymodbus rejects data blocks reaching address 65535
MAX_BLOCK_SIZE = 0xFFFF


class CountingDevice:
    """
    Single-unit device whose register block increments every update.

    Register i of the block holds (counter + i) mod 65536.
    """

    def __init__(self, start_address: int = 0, count: int = 10):
        # One spare slot covers pymodbus' internal 1-based offset
        size = start_address + count + 1
        if start_address < 0 or count < 1 or size >= MAX_BLOCK_SIZE:
            raise ValueError(
                f"Register block {start_address}+{count} does not fit below address {MAX_BLOCK_SIZE}"
            )

        self.start_address = start_address
        self.count = count
        self.counter = 0

        block = ModbusSequentialDataBlock(0, [0] * size)
        self.context = ModbusDeviceContext(hr=block)
        self.server_context = ModbusServerContext(devices=self.context, single=True)
        self._write()

    def values(self) -> list[int]:
        return [(self.counter + i) & 0xFFFF for i in range(self.count)]

    def step(self) -> None:
        """Advance the counter and publish new values"""
        self.counter = (self.counter + 1) & 0xFFFF
        self._write()

    def _write(self) -> None:
        self.context.setValues(HOLDING_REGISTERS, self.start_address, self.values())


async def _update_loop(device: CountingDevice, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        device.step()
        logger.debug(f"Simulator counter={device.counter}")


async def run_simulator(
    host: str = "0.0.0.0",
    port: int = 5020,
    start_address: int = 0,
    count: int = 10,
    interval: float = 1.0,
) -> None:
    """
    Start the demo Modbus TCP server.

    Args:
        host: Host to bind to
        port: Port to listen on
        start_address: First register that counts
        count: Number of counting registers
        interval: Seconds between counter updates
    """
    device = CountingDevice(start_address, count)

    logger.info(
        f"Starting simulated Modbus device on {host}:{port} "
        f"(registers {start_address}-{start_address + count - 1})"
    )

    updater = asyncio.create_task(_update_loop(device, interval))
    try:
        await StartAsyncTcpServer(
            context=device.server_context,
            address=(host, port),
        )
    finally:
        updater.cancel()
        try:
            await updater
        except asyncio.CancelledError:
            pass
