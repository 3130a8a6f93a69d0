"""
Configuration Dataclasses

Type-safe configuration structures for the worker.
Configuration is loaded once at startup from a YAML file whose keys follow
the on-board settings layout (ShipSettings, EquipmentSettings,
ConnectionStrings).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigError


DEFAULT_MODBUS_PORT = 502
DEFAULT_UNIT_ID = 1
DEFAULT_TIMEOUT_S = 3.0
DEFAULT_READING_INTERVAL_MS = 1000


@dataclass(frozen=True)
class DataSource:
    """Network endpoint speaking Modbus TCP (root of the catalog)"""
    id: int
    name: str
    ip_address: str
    port: int = DEFAULT_MODBUS_PORT


@dataclass(frozen=True)
class Equipment:
    """Logical unit hosted behind one data source"""
    id: int
    name: str
    boem_name: str
    data_source_id: int


@dataclass(frozen=True)
class Variable:
    """Named value backed by a run of holding registers"""
    id: int
    name: str
    boem_name: str
    start_address: int
    num_registers: int
    equipment_id: int


@dataclass(frozen=True)
class ShipSettings:
    """Installation identity and polling settings"""
    client_id: str = ""
    ship_id: str = ""
    db_source: bool = False  # True = persisted catalog, False = static config
    reading_interval_ms: int = DEFAULT_READING_INTERVAL_MS
    output_directory: str = "."

    @property
    def reading_interval_s(self) -> float:
        return self.reading_interval_ms / 1000


@dataclass(frozen=True)
class ModbusSettings:
    """Modbus session settings shared by every read"""
    timeout_s: float = DEFAULT_TIMEOUT_S
    unit_id: int = DEFAULT_UNIT_ID


@dataclass(frozen=True)
class WorkerConfig:
    """Complete worker configuration"""
    ship: ShipSettings = field(default_factory=ShipSettings)
    modbus: ModbusSettings = field(default_factory=ModbusSettings)
    sqlite_path: str = "bbox.db"
    # Raw EquipmentSettings tree, parsed by the static catalog
    equipment_settings: dict[str, Any] = field(default_factory=dict)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def _field(record: dict, key: str, kind: type, section: str, index: int) -> Any:
    """Fetch and coerce one field of a catalog record"""
    if not isinstance(record, dict):
        raise ConfigError(f"{section}[{index}] is not a mapping")
    if key not in record or record[key] is None:
        raise ConfigError(f"{section}[{index}] missing '{key}'")
    try:
        return kind(record[key])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{section}[{index}].{key} invalid: {e}") from e


def parse_data_source(record: dict, index: int = 0) -> DataSource:
    section = "EquipmentSettings:DataSources"
    return DataSource(
        id=_field(record, "Id", int, section, index),
        name=_field(record, "Name", str, section, index),
        ip_address=_field(record, "IPAddress", str, section, index),
        port=_field(record, "Port", int, section, index),
    )


def parse_equipment(record: dict, data_source_id: int, index: int = 0) -> Equipment:
    section = "EquipmentSettings:Equipamentos"
    return Equipment(
        id=_field(record, "Id", int, section, index),
        name=_field(record, "Name", str, section, index),
        boem_name=str(record.get("BoemName") or ""),
        data_source_id=data_source_id,
    )


def parse_variable(record: dict, equipment_id: int, index: int = 0) -> Variable:
    section = "EquipmentSettings:Variaveis"
    start_address = _field(record, "StartAddress", int, section, index)
    num_registers = _field(record, "NumRegisters", int, section, index)
    # Both are ushort on the wire
    for key, value in (("StartAddress", start_address), ("NumRegisters", num_registers)):
        if not 0 <= value <= 0xFFFF:
            raise ConfigError(f"{section}[{index}].{key} out of range: {value}")
    return Variable(
        id=_field(record, "Id", int, section, index),
        name=_field(record, "Name", str, section, index),
        boem_name=str(record.get("BoemName") or ""),
        start_address=start_address,
        num_registers=num_registers,
        equipment_id=equipment_id,
    )


def parse_sqlite_path(connection_string: str) -> str:
    """
    Extract the database file from an SQLite connection string.

    Accepts a bare path or "Data Source=<path>;..." form.
    """
    for part in connection_string.split(";"):
        key, sep, value = part.partition("=")
        if sep and key.strip().lower() in ("data source", "datasource", "filename"):
            return value.strip()
    return connection_string.strip()


def load_worker_config(data: dict) -> WorkerConfig:
    """Load WorkerConfig from dictionary (e.g., from YAML file)"""
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    ship_data = data.get("ShipSettings") or {}
    try:
        interval_ms = int(ship_data.get("ReadingInterval", DEFAULT_READING_INTERVAL_MS))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"ShipSettings:ReadingInterval invalid: {e}") from e

    ship = ShipSettings(
        client_id=str(ship_data.get("ClientID") or ""),
        ship_id=str(ship_data.get("ShipID") or ""),
        db_source=_as_bool(ship_data.get("DBsource", False)),
        reading_interval_ms=interval_ms,
        output_directory=str(ship_data.get("OutputDirectory") or "."),
    )

    modbus_data = data.get("ModbusSettings") or {}
    try:
        modbus = ModbusSettings(
            timeout_s=float(modbus_data.get("Timeout", DEFAULT_TIMEOUT_S)),
            unit_id=int(modbus_data.get("UnitId", DEFAULT_UNIT_ID)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"ModbusSettings invalid: {e}") from e

    connection_strings = data.get("ConnectionStrings") or {}
    sqlite_path = parse_sqlite_path(str(connection_strings.get("SQLite") or "bbox.db"))

    equipment_settings = data.get("EquipmentSettings") or {}
    if not isinstance(equipment_settings, dict):
        raise ConfigError("EquipmentSettings must be a mapping")

    return WorkerConfig(
        ship=ship,
        modbus=modbus,
        sqlite_path=sqlite_path,
        equipment_settings=equipment_settings,
    )


def read_config_file(config_path: str | Path) -> dict:
    """
    Read a YAML configuration file.

    Raises:
        ConfigError: file missing or not valid YAML
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed configuration {path}: {e}") from e

    return data or {}
