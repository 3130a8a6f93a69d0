"""
Storage: SQLite device catalog and CSV reading files.
"""

from .catalog_db import CatalogDatabase
from .csv_sink import CsvFileSink, build_file_path

__all__ = ["CatalogDatabase", "CsvFileSink", "build_file_path"]
