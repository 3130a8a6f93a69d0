"""
Custom Exception Classes for the BBox Modbus Worker

Hierarchical exception structure for error handling across the
acquisition pipeline.
"""


class WorkerError(Exception):
    """Base exception for all worker errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(WorkerError):
    """Configuration-related errors (fatal at startup)"""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class CatalogError(WorkerError):
    """Catalog listing or store errors"""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(f"Catalog Error: {message}", recoverable=True)


class DeviceError(WorkerError):
    """Device communication errors"""

    def __init__(
        self,
        message: str,
        device_name: str | None = None,
        recoverable: bool = True,
    ):
        self.device_name = device_name
        super().__init__(f"Device Error: {message}", recoverable)


class CommunicationError(DeviceError):
    """Modbus/network communication errors"""

    def __init__(
        self,
        message: str,
        device_name: str | None = None,
        host: str | None = None,
        port: int | None = None,
    ):
        self.host = host
        self.port = port
        super().__init__(message, device_name, recoverable=True)


class DecodeError(WorkerError):
    """Register words could not be turned into a value"""

    def __init__(self, message: str, index: int | None = None, word: int | None = None):
        self.index = index
        self.word = word
        super().__init__(f"Decode Error: {message}", recoverable=True)


class SinkError(WorkerError):
    """Reading could not be written to its output file"""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"Sink Error: {message}", recoverable=True)
