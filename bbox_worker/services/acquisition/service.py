"""
Acquisition Service - Modbus Polling Worker

Responsible for:
- Building the catalog selected by ShipSettings.DBsource
- Wiring the device reader and CSV sink
- Running the poll scheduler until SIGTERM/SIGINT
"""

import asyncio
import signal

from bbox_worker.common.config import WorkerConfig
from bbox_worker.common.logging_setup import get_service_logger
from bbox_worker.services.device.reader import DeviceReader, SessionFactory
from bbox_worker.storage.catalog_db import CatalogDatabase
from bbox_worker.storage.csv_sink import CsvFileSink

from .catalog import CatalogProvider, create_catalog
from .scheduler import PollScheduler

logger = get_service_logger("acquisition")


class AcquisitionService:
    """
    Acquisition Service

    Owns the poll loop. Startup failures (malformed static catalog,
    store initialization) raise from start() before the loop begins.
    """

    def __init__(
        self,
        config: WorkerConfig,
        catalog: CatalogProvider | None = None,
        session_factory: SessionFactory | None = None,
    ):
        self.config = config
        self._catalog = catalog
        self._session_factory = session_factory

        self.scheduler: PollScheduler | None = None
        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    def build(self) -> PollScheduler:
        """Create catalog, sink, reader and scheduler."""
        catalog = self._catalog or create_catalog(
            self.config,
            CatalogDatabase(self.config.sqlite_path) if self.config.ship.db_source else None,
        )

        sink = CsvFileSink.from_settings(self.config.ship)
        reader = DeviceReader(
            sink=sink,
            ship=self.config.ship,
            modbus=self.config.modbus,
            session_factory=self._session_factory,
        )

        self.scheduler = PollScheduler(
            catalog=catalog,
            reader=reader,
            interval_seconds=self.config.ship.reading_interval_s,
        )
        return self.scheduler

    async def start(self, install_signal_handlers: bool = True) -> None:
        """Start polling and block until stopped."""
        logger.info(
            "Starting Acquisition Service",
            extra={
                "client_id": self.config.ship.client_id,
                "ship_id": self.config.ship.ship_id,
                "db_source": self.config.ship.db_source,
            },
        )

        scheduler = self.scheduler or self.build()

        if install_signal_handlers:
            self._setup_signal_handlers()

        self._running = True
        try:
            await scheduler.run(self._shutdown_event)
        finally:
            self._running = False
            logger.info("Acquisition Service stopped")

    def stop(self) -> None:
        """Request shutdown; the current cycle finishes, no new one starts."""
        logger.info("Stopping Acquisition Service")
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        """Setup graceful shutdown signal handlers"""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._handle_shutdown)
            except NotImplementedError:
                # Windows doesn't support add_signal_handler
                signal.signal(sig, lambda s, f: self._handle_shutdown())

    def _handle_shutdown(self) -> None:
        """Handle shutdown signal"""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()
