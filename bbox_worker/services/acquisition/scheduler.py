"""
Poll Scheduler

Runs one acquisition cycle per tick until stopped:

    for source in catalog:            (listing order, failures isolated)
        for equipment in source:      (listing order)
            read all variables concurrently, wait for every read

After a cycle the scheduler waits for the configured interval. Setting the
stop event cuts that wait short; a cycle already running is allowed to
finish but no new cycle starts.

Usage:
    scheduler = PollScheduler(catalog, reader, interval_seconds=1.0)
    stop = asyncio.Event()
    await scheduler.run(stop)
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from bbox_worker.common.config import DataSource
from bbox_worker.common.logging_setup import get_service_logger, log_cycle
from bbox_worker.services.device.reader import DeviceReader, VariableReadResult
from .catalog import CatalogProvider

logger = get_service_logger("acquisition.scheduler")


class SchedulerState(str, Enum):
    """Scheduler states"""
    IDLE = "idle"
    CYCLE = "cycle"


@dataclass
class CycleReport:
    """Counters for one pass over the catalog"""
    started_at: datetime
    sources_ok: int = 0
    sources_failed: int = 0
    values_written: int = 0
    variables_failed: int = 0
    decode_errors: int = 0
    duration_s: float = 0.0

    def add(self, result: VariableReadResult) -> None:
        self.values_written += len(result.values)
        self.decode_errors += result.decode_errors
        if not result.success:
            self.variables_failed += 1


class PollScheduler:
    """
    Fixed-interval acquisition loop.

    Attributes:
        interval: Seconds to wait between the end of one cycle and the next
        state: IDLE while waiting, CYCLE while polling
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        reader: DeviceReader,
        interval_seconds: float,
        name: str = "modbus-worker",
    ):
        self.catalog = catalog
        self.reader = reader
        self.interval = interval_seconds
        self.name = name

        self._state = SchedulerState.IDLE

        # Observability metrics
        self._execution_count: int = 0
        self._last_execution_time: float = 0
        self._last_report: CycleReport | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    async def run(self, stop_event: asyncio.Event) -> None:
        """Poll until stop_event is set."""
        logger.info(f"Scheduler '{self.name}' started (interval {self.interval:.3f}s)")

        while not stop_event.is_set():
            await self.run_cycle()

            if await self._wait(stop_event):
                break

        logger.info(f"Scheduler '{self.name}' stopped after {self._execution_count} cycles")

    async def _wait(self, stop_event: asyncio.Event) -> bool:
        """Sleep for one interval. Returns True if stopped while waiting."""
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            return True
        except asyncio.TimeoutError:
            return False

    async def run_cycle(self) -> CycleReport:
        """Execute one pass over the whole catalog."""
        self._state = SchedulerState.CYCLE
        report = CycleReport(started_at=datetime.now())
        start = time.monotonic()

        logger.info(f"********* ModBus Worker running at: {report.started_at} ***********")

        try:
            try:
                sources = await self.catalog.list_sources()
            except Exception as e:
                logger.error(f"Error listing data sources: {e}")
                return report

            for source in sources:
                try:
                    await self._poll_source(source, report)
                    report.sources_ok += 1
                except Exception as e:
                    report.sources_failed += 1
                    logger.error(
                        f"Error communicating with {source.name}: {e}",
                        extra={"source": source.name},
                    )
        finally:
            report.duration_s = time.monotonic() - start
            self._last_execution_time = report.duration_s
            self._last_report = report
            self._execution_count += 1
            self._state = SchedulerState.IDLE

            log_cycle(
                logger.logger,
                report.sources_ok,
                report.sources_failed,
                report.values_written,
                report.variables_failed,
                report.duration_s * 1000,
            )

        return report

    async def _poll_source(self, source: DataSource, report: CycleReport) -> None:
        """Poll every equipment unit of one source, one unit at a time."""
        logger.info(f"Connecting to {source.name} at {source.ip_address}:{source.port}")

        equipment_list = await self.catalog.list_equipment(source.id)

        for equipment in equipment_list:
            variables = await self.catalog.list_variables(equipment.id)
            if not variables:
                continue

            results = await asyncio.gather(
                *(
                    self.reader.poll_variable(source, equipment.name, variable)
                    for variable in variables
                ),
                return_exceptions=True,
            )

            # Every read has finished; tally, then surface the first failure
            first_error: BaseException | None = None
            for result in results:
                if isinstance(result, BaseException):
                    report.variables_failed += 1
                    first_error = first_error or result
                else:
                    report.add(result)

            if first_error is not None:
                raise first_error

        logger.info("Data reading completed successfully.")

    @property
    def execution_count(self) -> int:
        """Total number of completed cycles."""
        return self._execution_count

    @property
    def last_execution_time(self) -> float:
        """Duration of last cycle in seconds."""
        return self._last_execution_time

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    def get_stats(self) -> dict:
        """Get scheduler statistics for observability."""
        report = self._last_report
        return {
            "name": self.name,
            "state": self._state.value,
            "interval_s": self.interval,
            "execution_count": self._execution_count,
            "last_execution_s": round(self._last_execution_time, 3),
            "last_values_written": report.values_written if report else 0,
            "last_sources_failed": report.sources_failed if report else 0,
        }
