"""
Device Reader

Reads one variable from one data source per call and writes its decoded
values to the CSV sink. Every call opens a fresh Modbus session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from bbox_worker.common.config import DataSource, ModbusSettings, ShipSettings, Variable
from bbox_worker.common.exceptions import DecodeError
from bbox_worker.common.logging_setup import get_service_logger, log_variable_read
from bbox_worker.storage.csv_sink import CsvFileSink
from .modbus_client import ModbusSession
from .register_decoder import iter_float32

logger = get_service_logger("device.reader")

SessionFactory = Callable[[DataSource, ModbusSettings], ModbusSession]


@dataclass
class VariableReadResult:
    """Outcome of one guarded variable read"""
    equipment_name: str
    variable_name: str
    success: bool
    values: list[float] = field(default_factory=list)
    decode_errors: int = 0
    error: str | None = None


class DeviceReader:
    """
    Reads variables from data sources.

    Features:
    - Session per read (connect, read, close)
    - Failures isolated per variable: logged, never raised
    - One CSV line per decoded value, in decode order
    """

    def __init__(
        self,
        sink: CsvFileSink,
        ship: ShipSettings,
        modbus: ModbusSettings | None = None,
        session_factory: SessionFactory | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._sink = sink
        self._ship = ship
        self._modbus = modbus or ModbusSettings()
        self._session_factory = session_factory or ModbusSession.for_source
        self._clock = clock

    async def read_variable(
        self,
        source: DataSource,
        equipment_name: str,
        variable: Variable,
    ) -> list[int]:
        """
        Read the raw register words backing a variable.

        Raises:
            CommunicationError: connect, timeout or protocol failure
        """
        logger.debug(
            f"Reading {equipment_name}.{variable.name} from {source.ip_address}:{source.port} "
            f"(address={variable.start_address}, count={variable.num_registers})"
        )
        async with self._session_factory(source, self._modbus) as session:
            return await session.read_holding_registers(
                address=variable.start_address,
                count=variable.num_registers,
            )

    async def poll_variable(
        self,
        source: DataSource,
        equipment_name: str,
        variable: Variable,
    ) -> VariableReadResult:
        """
        Read, decode and store one variable.

        Any error (protocol, sink I/O) is logged with the equipment and
        variable names and turned into an unsuccessful result.
        """
        result = VariableReadResult(
            equipment_name=equipment_name,
            variable_name=variable.name,
            success=False,
        )

        def report_decode_error(error: DecodeError) -> None:
            result.decode_errors += 1
            logger.error(
                f"{equipment_name} - {variable.name}: {error.message}",
                extra={"equipment": equipment_name, "variable": variable.name},
            )

        try:
            registers = await self.read_variable(source, equipment_name, variable)
            timestamp = self._clock()

            for value in iter_float32(registers, on_error=report_decode_error):
                log_variable_read(logger.logger, equipment_name, variable.name, value)
                self._sink.append(
                    self._ship.client_id,
                    self._ship.ship_id,
                    equipment_name,
                    variable.name,
                    timestamp,
                    value,
                )
                result.values.append(value)

            result.success = True

        except Exception as e:
            result.error = str(e)
            logger.error(
                f"Error reading variable {equipment_name} - {variable.name}: {e}",
                extra={"equipment": equipment_name, "variable": variable.name},
            )

        return result
