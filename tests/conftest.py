"""
Shared pytest fixtures for worker tests.

Provides:
- In-memory Modbus devices replacing pymodbus sessions
- A scoped in-memory catalog
- Fixed clocks and ship settings
"""
import asyncio
from datetime import datetime, timedelta
from typing import Callable

import pytest

from bbox_worker.common.config import (
    DataSource,
    Equipment,
    ModbusSettings,
    ShipSettings,
    Variable,
)
from bbox_worker.common.exceptions import CatalogError, CommunicationError
from bbox_worker.services.acquisition.catalog import CatalogProvider
from bbox_worker.services.device.reader import DeviceReader
from bbox_worker.storage.csv_sink import CsvFileSink

# Register words for a few floats, low word first
ONE = [0x0000, 0x3F80]          # 1.0
TWO_AND_HALF = [0x0000, 0x4020]  # 2.5
TWELVE_QUARTER = [0x0000, 0x4144]  # 12.25


# ============================================================================
# Fake Modbus devices
# ============================================================================

class FakeModbusDevices:
    """Register maps keyed by (host, port), served through FakeSession."""

    def __init__(self, read_delay: float = 0.0):
        self.registers: dict[tuple[str, int], dict[int, list[int]]] = {}
        self.unreachable: set[str] = set()
        self.failing: set[tuple[str, int]] = set()  # (host, address)
        self.read_delay = read_delay
        self.sessions_opened = 0
        self.sessions_closed = 0
        self.events: list[tuple[str, str, int]] = []  # (event, host, address)

    def add(self, host: str, address: int, words: list[int], port: int = 502) -> None:
        self.registers.setdefault((host, port), {})[address] = list(words)

    def factory(self, source: DataSource, settings: ModbusSettings) -> "FakeSession":
        return FakeSession(self, source.ip_address, source.port)


class FakeSession:
    def __init__(self, devices: FakeModbusDevices, host: str, port: int):
        self.devices = devices
        self.host = host
        self.port = port

    async def __aenter__(self) -> "FakeSession":
        self.devices.sessions_opened += 1
        if self.host in self.devices.unreachable:
            self.devices.sessions_closed += 1
            raise CommunicationError(
                f"Failed to connect to Modbus device at {self.host}:{self.port}",
                host=self.host,
                port=self.port,
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.devices.sessions_closed += 1
        return False

    async def read_holding_registers(self, address: int, count: int) -> list[int]:
        self.devices.events.append(("start", self.host, address))
        if self.devices.read_delay:
            await asyncio.sleep(self.devices.read_delay)
        try:
            if (self.host, address) in self.devices.failing:
                raise CommunicationError("Read timeout", host=self.host, port=self.port)
            words = self.devices.registers.get((self.host, self.port), {}).get(address)
            if words is None:
                raise CommunicationError(
                    "Modbus error: Illegal Data Address", host=self.host, port=self.port
                )
            return words[:count]
        finally:
            self.devices.events.append(("end", self.host, address))


# ============================================================================
# In-memory catalog
# ============================================================================

class MemoryCatalog(CatalogProvider):
    """Scoped catalog built from plain lists."""

    def __init__(
        self,
        sources: list[DataSource],
        equipment: list[Equipment],
        variables: list[Variable],
    ):
        self.sources = sources
        self.equipment = equipment
        self.variables = variables
        self.failing_sources: set[int] = set()
        self.fail_list_sources = False
        self.calls: list[tuple[str, int | None]] = []

    async def list_sources(self) -> list[DataSource]:
        self.calls.append(("sources", None))
        if self.fail_list_sources:
            raise CatalogError("database is locked", operation="list_sources")
        return list(self.sources)

    async def list_equipment(self, source_id: int) -> list[Equipment]:
        self.calls.append(("equipment", source_id))
        if source_id in self.failing_sources:
            raise CatalogError("database is locked", operation="list_equipment")
        return [e for e in self.equipment if e.data_source_id == source_id]

    async def list_variables(self, equipment_id: int) -> list[Variable]:
        self.calls.append(("variables", equipment_id))
        return [v for v in self.variables if v.equipment_id == equipment_id]


# ============================================================================
# Fixtures
# ============================================================================

FIXED_NOW = datetime(2024, 2, 24, 13, 5, 7)


def make_clock(start: datetime = FIXED_NOW, step: timedelta = timedelta(0)) -> Callable[[], datetime]:
    """Clock returning start, start+step, start+2*step, ..."""
    state = {"now": start - step}

    def clock() -> datetime:
        state["now"] = state["now"] + step
        return state["now"]

    return clock


@pytest.fixture
def ship(tmp_path) -> ShipSettings:
    return ShipSettings(
        client_id="C1",
        ship_id="S1",
        db_source=False,
        reading_interval_ms=1000,
        output_directory=str(tmp_path),
    )


@pytest.fixture
def devices() -> FakeModbusDevices:
    return FakeModbusDevices()


@pytest.fixture
def sink(tmp_path) -> CsvFileSink:
    return CsvFileSink(tmp_path)


@pytest.fixture
def reader(sink, ship, devices) -> DeviceReader:
    return DeviceReader(
        sink=sink,
        ship=ship,
        session_factory=devices.factory,
        clock=make_clock(),
    )


@pytest.fixture
def static_settings() -> dict:
    """EquipmentSettings tree as written in the config file."""
    return {
        "DataSources": [
            {"Id": 1, "Name": "SCR_Automation", "IPAddress": "10.0.0.1", "Port": 502},
            {"Id": 2, "Name": "Engine_Room", "IPAddress": "10.0.0.2", "Port": "5020"},
        ],
        "Equipamentos": [
            {"Id": 1, "Name": "UREA", "BoemName": "UREA"},
            {"Id": 2, "Name": "PUMP", "BoemName": "pump"},
        ],
        "Variaveis": [
            {"Id": 1, "Name": "Temp", "BoemName": "temp", "StartAddress": 10, "NumRegisters": 2},
            {"Id": 2, "Name": "Level", "BoemName": "level", "StartAddress": "12", "NumRegisters": "2"},
        ],
    }


def read_lines(path) -> list[str]:
    with open(path) as f:
        return f.read().splitlines()
