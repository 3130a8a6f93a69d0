"""
Acquisition Layer - Catalog and Poll Loop

Responsibilities:
- Resolve the source/equipment/variable hierarchy every cycle
- Poll each equipment unit's variables concurrently
- Isolate failures per data source
"""

from .catalog import CatalogProvider, PersistedCatalog, StaticCatalog, create_catalog
from .scheduler import CycleReport, PollScheduler, SchedulerState
from .service import AcquisitionService

__all__ = [
    "CatalogProvider",
    "PersistedCatalog",
    "StaticCatalog",
    "create_catalog",
    "CycleReport",
    "PollScheduler",
    "SchedulerState",
    "AcquisitionService",
]
