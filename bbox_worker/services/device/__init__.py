"""
Device Layer - Modbus Communication

Responsibilities:
- Open one Modbus TCP session per variable read
- Decode register pairs into floats
- Hand decoded values to the CSV sink
"""

from .modbus_client import ModbusSession
from .reader import DeviceReader, VariableReadResult
from .register_decoder import decode_float32, iter_float32

__all__ = [
    "ModbusSession",
    "DeviceReader",
    "VariableReadResult",
    "decode_float32",
    "iter_float32",
]
