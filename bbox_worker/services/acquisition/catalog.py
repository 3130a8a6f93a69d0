"""
Catalog Providers

Resolve the data source -> equipment -> variable hierarchy either from the
static configuration tree or from the SQLite catalog store. The scheduler
only sees the CatalogProvider interface.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Any

from bbox_worker.common.config import (
    DataSource,
    Equipment,
    Variable,
    WorkerConfig,
    parse_data_source,
    parse_equipment,
    parse_variable,
)
from bbox_worker.common.exceptions import CatalogError, ConfigError
from bbox_worker.common.logging_setup import get_service_logger
from bbox_worker.storage.catalog_db import CatalogDatabase

logger = get_service_logger("acquisition.catalog")


class CatalogProvider(ABC):
    """Read-only view of the acquisition hierarchy"""

    @abstractmethod
    async def list_sources(self) -> list[DataSource]:
        """List every data source in catalog order."""

    @abstractmethod
    async def list_equipment(self, source_id: int) -> list[Equipment]:
        """List equipment for a data source."""

    @abstractmethod
    async def list_variables(self, equipment_id: int) -> list[Variable]:
        """List variables for an equipment unit."""


class StaticCatalog(CatalogProvider):
    """
    Catalog declared in EquipmentSettings of the configuration file.

    Equipment and variables are declared flat: listings are NOT filtered by
    the parent id. Every declared record is returned for every parent and
    tagged with the parent id passed in.

    Records are parsed here, so a malformed tree fails at startup.
    """

    def __init__(self, equipment_settings: dict[str, Any]):
        self._sources = [
            parse_data_source(record, i)
            for i, record in enumerate(self._section(equipment_settings, "DataSources"))
        ]
        # Parent id 0 is a placeholder replaced on every listing
        self._equipment = [
            parse_equipment(record, 0, i)
            for i, record in enumerate(self._section(equipment_settings, "Equipamentos"))
        ]
        self._variables = [
            parse_variable(record, 0, i)
            for i, record in enumerate(self._section(equipment_settings, "Variaveis"))
        ]

        logger.info(
            f"Static catalog: {len(self._sources)} sources, "
            f"{len(self._equipment)} equipment, {len(self._variables)} variables"
        )

    @staticmethod
    def _section(settings: dict[str, Any], key: str) -> list:
        records = settings.get(key) or []
        if not isinstance(records, list):
            raise ConfigError(f"EquipmentSettings:{key} must be a list")
        return records

    async def list_sources(self) -> list[DataSource]:
        return list(self._sources)

    async def list_equipment(self, source_id: int) -> list[Equipment]:
        return [replace(e, data_source_id=source_id) for e in self._equipment]

    async def list_variables(self, equipment_id: int) -> list[Variable]:
        return [replace(v, equipment_id=equipment_id) for v in self._variables]


class PersistedCatalog(CatalogProvider):
    """
    Catalog backed by the SQLite store.

    Listings are queries scoped by the parent id, run in the default
    executor so the event loop is not blocked.
    """

    def __init__(self, db: CatalogDatabase):
        self._db = db

    async def _run_db(self, func, *args):
        """Run a blocking catalog query in a thread."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    async def list_sources(self) -> list[DataSource]:
        return await self._run_db(self._db.get_data_sources)

    async def list_equipment(self, source_id: int) -> list[Equipment]:
        return await self._run_db(self._db.get_equipment, source_id)

    async def list_variables(self, equipment_id: int) -> list[Variable]:
        return await self._run_db(self._db.get_variables, equipment_id)


def create_catalog(config: WorkerConfig, db: CatalogDatabase | None = None) -> CatalogProvider:
    """
    Build the catalog selected by ShipSettings.DBsource.

    In persisted mode the store is initialized here; failure aborts startup.

    Raises:
        ConfigError: malformed static catalog
        CatalogError: store cannot be initialized
    """
    if not config.ship.db_source:
        return StaticCatalog(config.equipment_settings)

    db = db or CatalogDatabase(config.sqlite_path)
    try:
        db.initialize()
    except CatalogError as e:
        logger.error(f"Persisted catalog unavailable: {e}")
        raise

    logger.info(f"Using persisted catalog at {db.db_path}")
    return PersistedCatalog(db)
