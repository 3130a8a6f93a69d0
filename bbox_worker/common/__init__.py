"""
Common Utilities

Shared modules used across the worker:
- config.py - Configuration and catalog dataclasses
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
"""

from .config import (
    DataSource,
    Equipment,
    Variable,
    ShipSettings,
    ModbusSettings,
    WorkerConfig,
    load_worker_config,
    read_config_file,
)
from .exceptions import (
    WorkerError,
    ConfigError,
    CatalogError,
    DeviceError,
    CommunicationError,
    DecodeError,
    SinkError,
)
from .logging_setup import (
    setup_logging,
    get_service_logger,
    log_variable_read,
    log_cycle,
)

__all__ = [
    # Config
    "DataSource",
    "Equipment",
    "Variable",
    "ShipSettings",
    "ModbusSettings",
    "WorkerConfig",
    "load_worker_config",
    "read_config_file",
    # Exceptions
    "WorkerError",
    "ConfigError",
    "CatalogError",
    "DeviceError",
    "CommunicationError",
    "DecodeError",
    "SinkError",
    # Logging
    "setup_logging",
    "get_service_logger",
    "log_variable_read",
    "log_cycle",
]
