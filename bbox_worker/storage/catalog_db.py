"""
Local SQLite Catalog Store

Persisted device catalog: data sources, equipment and variables.
Used when ShipSettings.DBsource is true so the hierarchy can be edited
without touching the configuration file or restarting the worker.

Features:
- Idempotent schema creation
- Listings scoped by parent id
- Row inserts for the seeding tool
"""

import sqlite3
from pathlib import Path

from bbox_worker.common.config import DataSource, Equipment, Variable
from bbox_worker.common.exceptions import CatalogError
from bbox_worker.common.logging_setup import get_service_logger

logger = get_service_logger("storage.catalog")


class CatalogDatabase:
    """
    SQLite database holding the acquisition catalog.

    Every call opens its own short-lived connection, so one instance can be
    shared across executor threads.
    """

    def __init__(self, db_path: str = "bbox.db"):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """
        Create database tables if they don't exist.

        Raises:
            CatalogError: directory or database cannot be created
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._get_connection() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS DataSources (
                        Id INTEGER PRIMARY KEY AUTOINCREMENT,
                        Name TEXT NOT NULL,
                        IPAddress TEXT NOT NULL,
                        Port INTEGER NOT NULL DEFAULT 502
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS Equipments (
                        Id INTEGER PRIMARY KEY AUTOINCREMENT,
                        Name TEXT NOT NULL,
                        BoemName TEXT,
                        DataSourceId INTEGER NOT NULL
                            REFERENCES DataSources(Id) ON DELETE CASCADE
                    )
                """)

                conn.execute("""
                    CREATE TABLE IF NOT EXISTS Variables (
                        Id INTEGER PRIMARY KEY AUTOINCREMENT,
                        Name TEXT NOT NULL,
                        BoemName TEXT,
                        StartAddress INTEGER NOT NULL,
                        NumRegisters INTEGER NOT NULL,
                        EquipmentId INTEGER NOT NULL
                            REFERENCES Equipments(Id) ON DELETE CASCADE
                    )
                """)

                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_equipments_source
                    ON Equipments(DataSourceId)
                """)
                conn.execute("""
                    CREATE INDEX IF NOT EXISTS idx_variables_equipment
                    ON Variables(EquipmentId)
                """)

                conn.commit()
        except (OSError, sqlite3.Error) as e:
            raise CatalogError(
                f"Cannot initialize catalog at {self.db_path}: {e}",
                operation="initialize",
            ) from e

        logger.info(f"Catalog database initialized at {self.db_path}")

    # ============================================
    # LISTINGS
    # ============================================

    def get_data_sources(self) -> list[DataSource]:
        """List every data source in insertion order."""
        rows = self._query(
            "SELECT * FROM DataSources ORDER BY Id",
            (),
            "list_sources",
        )
        return [self._row_to_source(row) for row in rows]

    def get_equipment(self, data_source_id: int) -> list[Equipment]:
        """List equipment belonging to one data source."""
        rows = self._query(
            "SELECT * FROM Equipments WHERE DataSourceId = ? ORDER BY Id",
            (data_source_id,),
            "list_equipment",
        )
        return [self._row_to_equipment(row) for row in rows]

    def get_variables(self, equipment_id: int) -> list[Variable]:
        """List variables belonging to one equipment unit."""
        rows = self._query(
            "SELECT * FROM Variables WHERE EquipmentId = ? ORDER BY Id",
            (equipment_id,),
            "list_variables",
        )
        return [self._row_to_variable(row) for row in rows]

    def _query(self, sql: str, params: tuple, operation: str) -> list[sqlite3.Row]:
        try:
            with self._get_connection() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise CatalogError(f"{operation} failed: {e}", operation=operation) from e

    # ============================================
    # INSERTS
    # ============================================

    def insert_data_source(self, name: str, ip_address: str, port: int = 502) -> int:
        """
        Insert a data source.

        Returns:
            ID of inserted record
        """
        return self._insert(
            "INSERT INTO DataSources (Name, IPAddress, Port) VALUES (?, ?, ?)",
            (name, ip_address, port),
            "insert_data_source",
        )

    def insert_equipment(self, name: str, boem_name: str, data_source_id: int) -> int:
        """Insert an equipment unit under an existing data source."""
        return self._insert(
            "INSERT INTO Equipments (Name, BoemName, DataSourceId) VALUES (?, ?, ?)",
            (name, boem_name, data_source_id),
            "insert_equipment",
        )

    def insert_variable(
        self,
        name: str,
        boem_name: str,
        start_address: int,
        num_registers: int,
        equipment_id: int,
    ) -> int:
        """Insert a variable under an existing equipment unit."""
        return self._insert(
            """
            INSERT INTO Variables (
                Name, BoemName, StartAddress, NumRegisters, EquipmentId
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (name, boem_name, start_address, num_registers, equipment_id),
            "insert_variable",
        )

    def _insert(self, sql: str, params: tuple, operation: str) -> int:
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(sql, params)
                conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as e:
            raise CatalogError(f"{operation} failed: {e}", operation=operation) from e

    # ============================================
    # ROW MAPPING
    # ============================================

    def _row_to_source(self, row: sqlite3.Row) -> DataSource:
        return DataSource(
            id=row["Id"],
            name=row["Name"],
            ip_address=row["IPAddress"],
            port=row["Port"],
        )

    def _row_to_equipment(self, row: sqlite3.Row) -> Equipment:
        return Equipment(
            id=row["Id"],
            name=row["Name"],
            boem_name=row["BoemName"] or "",
            data_source_id=row["DataSourceId"],
        )

    def _row_to_variable(self, row: sqlite3.Row) -> Variable:
        return Variable(
            id=row["Id"],
            name=row["Name"],
            boem_name=row["BoemName"] or "",
            start_address=row["StartAddress"],
            num_registers=row["NumRegisters"],
            equipment_id=row["EquipmentId"],
        )

    def get_stats(self) -> dict:
        """Get catalog row counts."""
        with self._get_connection() as conn:
            return {
                "data_sources": conn.execute("SELECT COUNT(*) FROM DataSources").fetchone()[0],
                "equipments": conn.execute("SELECT COUNT(*) FROM Equipments").fetchone()[0],
                "variables": conn.execute("SELECT COUNT(*) FROM Variables").fetchone()[0],
            }
