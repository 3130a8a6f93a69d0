"""
Time-Series CSV File Sink

Appends decoded readings to per-variable CSV files partitioned by date:

    vars/{YYYY}/{MM}/{DDD}/{equipment}/{variable}/{client}_{ship}-{equipment}_{variable}_{DDD}.csv

Each line is "YYYY-MM-DD HH:MM:SS,,value" with three decimals. The file is
opened in append mode and closed after every line; nothing is buffered.
"""

import csv
from datetime import datetime
from pathlib import Path

from bbox_worker.common.config import ShipSettings
from bbox_worker.common.exceptions import SinkError
from bbox_worker.common.logging_setup import get_service_logger

logger = get_service_logger("storage.sink")

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_file_path(
    base_dir: str | Path,
    client_id: str,
    ship_id: str,
    equipment_name: str,
    variable_name: str,
    timestamp: datetime,
) -> Path:
    """
    Resolve the output file for one reading.

    Month is zero-padded to two digits, day to three (e.g. "024").
    """
    year = f"{timestamp.year}"
    month = f"{timestamp.month:02d}"
    day = f"{timestamp.day:03d}"

    directory = (
        Path(base_dir) / "vars" / year / month / day / equipment_name / variable_name
    )
    file_name = f"{client_id}_{ship_id}-{equipment_name}_{variable_name}_{day}.csv"
    return directory / file_name


def format_line(timestamp: datetime, value: float) -> list[str]:
    """CSV fields for one reading (middle column is always empty)"""
    return [timestamp.strftime(TIMESTAMP_FORMAT), "", f"{value:.3f}"]


class CsvFileSink:
    """
    Append-only CSV writer for decoded readings.

    Every (equipment, variable, day) triple maps to exactly one file, so
    concurrent reads of different variables never share a handle.
    """

    def __init__(self, base_dir: str | Path = "."):
        self.base_dir = Path(base_dir)

    @classmethod
    def from_settings(cls, ship: ShipSettings) -> "CsvFileSink":
        return cls(ship.output_directory)

    def append(
        self,
        client_id: str,
        ship_id: str,
        equipment_name: str,
        variable_name: str,
        timestamp: datetime,
        value: float,
    ) -> Path:
        """
        Append one reading, creating missing directories first.

        Returns:
            Path of the file written

        Raises:
            SinkError: directory or file could not be written
        """
        path = build_file_path(
            self.base_dir,
            client_id,
            ship_id,
            equipment_name,
            variable_name,
            timestamp,
        )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", newline="") as f:
                writer = csv.writer(f, lineterminator="\n")
                writer.writerow(format_line(timestamp, value))
        except OSError as e:
            raise SinkError(f"Cannot append to {path}: {e}", path=str(path)) from e

        logger.debug(f"Appended {equipment_name}.{variable_name} to {path}")
        return path
