"""
Async Modbus Session

Wrapper around pymodbus for one-shot Modbus TCP holding-register reads.
A session lives for exactly one request: connect, read, close. Nothing is
pooled, so a stale socket on a flaky link never outlives the read that
opened it.
"""

import asyncio

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException

from bbox_worker.common.config import DataSource, ModbusSettings
from bbox_worker.common.exceptions import CommunicationError
from bbox_worker.common.logging_setup import get_service_logger

logger = get_service_logger("device.modbus")


class ModbusSession:
    """
    Single-request Modbus TCP session.

    Usage:
        async with ModbusSession("10.0.0.5", 502) as session:
            words = await session.read_holding_registers(10, 2)
    """

    def __init__(
        self,
        host: str,
        port: int = 502,
        timeout: float = 3.0,
        unit_id: int = 1,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.unit_id = unit_id

        self._client: AsyncModbusTcpClient | None = None

    @classmethod
    def for_source(cls, source: DataSource, settings: ModbusSettings) -> "ModbusSession":
        return cls(
            host=source.ip_address,
            port=source.port,
            timeout=settings.timeout_s,
            unit_id=settings.unit_id,
        )

    async def __aenter__(self) -> "ModbusSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    async def connect(self) -> None:
        """
        Establish connection to Modbus device.

        Raises:
            CommunicationError: device unreachable or connect timed out
        """
        self._client = AsyncModbusTcpClient(
            host=self.host,
            port=self.port,
            timeout=self.timeout,
            retries=0,
        )

        try:
            await self._client.connect()
        except (OSError, asyncio.TimeoutError, ModbusException) as e:
            self.close()
            raise CommunicationError(
                f"Connection error to {self.host}:{self.port}: {e}",
                host=self.host,
                port=self.port,
            ) from e

        if not self._client.connected:
            self.close()
            raise CommunicationError(
                f"Failed to connect to Modbus device at {self.host}:{self.port}",
                host=self.host,
                port=self.port,
            )

        logger.debug(f"Connected to Modbus device at {self.host}:{self.port}")

    def close(self) -> None:
        """Close connection"""
        if self._client:
            self._client.close()
            self._client = None
            logger.debug(f"Disconnected from {self.host}:{self.port}")

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        """
        Read raw holding registers.

        Args:
            address: Starting register address
            count: Number of registers to read

        Returns:
            Register words in device order

        Raises:
            CommunicationError: not connected, timeout, exception response
                or short response
        """
        if self._client is None:
            raise CommunicationError(
                f"Not connected to {self.host}:{self.port}",
                host=self.host,
                port=self.port,
            )

        try:
            response = await self._client.read_holding_registers(
                address=address,
                count=count,
                device_id=self.unit_id,
            )
        except ModbusException as e:
            raise CommunicationError(
                f"Modbus exception: {e}", host=self.host, port=self.port
            ) from e
        except asyncio.TimeoutError as e:
            raise CommunicationError(
                "Read timeout", host=self.host, port=self.port
            ) from e

        if response.isError():
            raise CommunicationError(
                f"Modbus error: {response}", host=self.host, port=self.port
            )

        registers = list(response.registers)
        if len(registers) < count:
            raise CommunicationError(
                f"Short response: expected {count} registers, got {len(registers)}",
                host=self.host,
                port=self.port,
            )

        return registers[:count]
