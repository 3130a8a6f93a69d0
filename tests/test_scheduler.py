"""
Unit tests for the poll scheduler.
"""
import asyncio
from datetime import timedelta

import pytest

from bbox_worker.common.config import DataSource, Equipment, Variable
from bbox_worker.services.acquisition.catalog import PersistedCatalog
from bbox_worker.services.acquisition.scheduler import PollScheduler, SchedulerState
from bbox_worker.services.device.reader import DeviceReader
from bbox_worker.storage.catalog_db import CatalogDatabase
from bbox_worker.storage.csv_sink import build_file_path

from conftest import (
    FIXED_NOW,
    ONE,
    TWELVE_QUARTER,
    TWO_AND_HALF,
    FakeModbusDevices,
    MemoryCatalog,
    make_clock,
    read_lines,
)


def plant() -> MemoryCatalog:
    """Two sources; the first hosts two equipment units."""
    return MemoryCatalog(
        sources=[
            DataSource(id=1, name="SCR_Automation", ip_address="10.0.0.1", port=502),
            DataSource(id=2, name="Engine_Room", ip_address="10.0.0.2", port=502),
        ],
        equipment=[
            Equipment(id=10, name="UREA", boem_name="UREA", data_source_id=1),
            Equipment(id=11, name="DOSING", boem_name="dosing", data_source_id=1),
            Equipment(id=20, name="PUMP", boem_name="pump", data_source_id=2),
        ],
        variables=[
            Variable(id=1, name="Temp", boem_name="", start_address=10, num_registers=2, equipment_id=10),
            Variable(id=2, name="Level", boem_name="", start_address=12, num_registers=2, equipment_id=10),
            Variable(id=3, name="Flow", boem_name="", start_address=14, num_registers=2, equipment_id=10),
            Variable(id=4, name="Rate", boem_name="", start_address=30, num_registers=2, equipment_id=11),
            Variable(id=5, name="Pressure", boem_name="", start_address=40, num_registers=2, equipment_id=20),
        ],
    )


def load_registers(devices: FakeModbusDevices) -> None:
    devices.add("10.0.0.1", 10, ONE)
    devices.add("10.0.0.1", 12, TWO_AND_HALF)
    devices.add("10.0.0.1", 14, TWELVE_QUARTER)
    devices.add("10.0.0.1", 30, ONE)
    devices.add("10.0.0.2", 40, TWO_AND_HALF)


def output(tmp_path, equipment: str, variable: str, when=FIXED_NOW):
    return build_file_path(tmp_path, "C1", "S1", equipment, variable, when)


@pytest.fixture
def scheduler(reader):
    return PollScheduler(plant(), reader, interval_seconds=60)


class TestCycle:

    @pytest.mark.asyncio
    async def test_all_variables_written(self, scheduler, devices, tmp_path):
        load_registers(devices)

        report = await scheduler.run_cycle()

        assert report.sources_ok == 2
        assert report.values_written == 5
        assert read_lines(output(tmp_path, "UREA", "Flow")) == ["2024-02-24 13:05:07,,12.250"]
        assert read_lines(output(tmp_path, "PUMP", "Pressure")) == ["2024-02-24 13:05:07,,2.500"]

    @pytest.mark.asyncio
    async def test_failed_variable_does_not_stop_siblings(self, scheduler, devices, tmp_path):
        load_registers(devices)
        devices.failing.add(("10.0.0.1", 12))

        report = await scheduler.run_cycle()

        assert report.variables_failed == 1
        assert report.values_written == 4
        assert report.sources_failed == 0
        assert not output(tmp_path, "UREA", "Level").exists()
        for equipment, variable in [("UREA", "Temp"), ("UREA", "Flow"), ("DOSING", "Rate"), ("PUMP", "Pressure")]:
            assert output(tmp_path, equipment, variable).exists()

    @pytest.mark.asyncio
    async def test_unreachable_source_isolated(self, scheduler, devices, tmp_path):
        load_registers(devices)
        devices.unreachable.add("10.0.0.1")

        report = await scheduler.run_cycle()

        assert report.values_written == 1
        assert report.variables_failed == 4
        assert read_lines(output(tmp_path, "PUMP", "Pressure")) == ["2024-02-24 13:05:07,,2.500"]

    @pytest.mark.asyncio
    async def test_listing_error_isolated_per_source(self, reader, devices, tmp_path):
        load_registers(devices)
        catalog = plant()
        catalog.failing_sources.add(1)
        scheduler = PollScheduler(catalog, reader, interval_seconds=60)

        report = await scheduler.run_cycle()

        assert report.sources_failed == 1
        assert report.sources_ok == 1
        assert output(tmp_path, "PUMP", "Pressure").exists()
        assert not output(tmp_path, "UREA", "Temp").exists()

    @pytest.mark.asyncio
    async def test_source_listing_error_ends_cycle(self, reader):
        catalog = plant()
        catalog.fail_list_sources = True
        scheduler = PollScheduler(catalog, reader, interval_seconds=60)

        report = await scheduler.run_cycle()

        assert report.sources_ok == 0
        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.execution_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_read_exception_caught_at_source(self, devices, tmp_path, ship, sink):
        load_registers(devices)

        class BrokenReader(DeviceReader):
            async def poll_variable(self, source, equipment_name, variable):
                if variable.name == "Level":
                    raise RuntimeError("boom")
                return await super().poll_variable(source, equipment_name, variable)

        reader = BrokenReader(sink=sink, ship=ship, session_factory=devices.factory, clock=make_clock())
        scheduler = PollScheduler(plant(), reader, interval_seconds=60)

        report = await scheduler.run_cycle()

        assert report.sources_failed == 1
        # Siblings in the same equipment still completed
        assert output(tmp_path, "UREA", "Temp").exists()
        assert output(tmp_path, "UREA", "Flow").exists()
        # The failing source stops at that equipment; the next source runs
        assert not output(tmp_path, "DOSING", "Rate").exists()
        assert output(tmp_path, "PUMP", "Pressure").exists()

    @pytest.mark.asyncio
    async def test_catalog_resolved_every_cycle(self, scheduler, devices):
        load_registers(devices)

        await scheduler.run_cycle()
        await scheduler.run_cycle()

        assert scheduler.catalog.calls.count(("sources", None)) == 2


class TestOrdering:

    @pytest.mark.asyncio
    async def test_equipment_joined_before_next(self, ship, sink, tmp_path):
        devices = FakeModbusDevices(read_delay=0.01)
        load_registers(devices)
        reader = DeviceReader(sink=sink, ship=ship, session_factory=devices.factory, clock=make_clock())

        await PollScheduler(plant(), reader, interval_seconds=60).run_cycle()

        events = devices.events
        urea = [i for i, (_, host, address) in enumerate(events) if address in (10, 12, 14)]
        dosing = [i for i, (_, host, address) in enumerate(events) if address == 30]
        pump = [i for i, (_, host, address) in enumerate(events) if address == 40]

        # UREA reads run concurrently: all three start before any ends
        urea_events = [events[i][0] for i in urea]
        assert urea_events == ["start"] * 3 + ["end"] * 3
        # Equipment and sources follow listing order
        assert max(urea) < min(dosing)
        assert max(dosing) < min(pump)


class TestScenarios:

    @pytest.mark.asyncio
    async def test_unreachable_first_source_second_still_logged(self, ship, sink, tmp_path):
        devices = FakeModbusDevices()
        devices.unreachable.add("192.0.2.1")
        devices.add("10.0.0.2", 40, ONE)
        catalog = MemoryCatalog(
            sources=[
                DataSource(id=1, name="Offline", ip_address="192.0.2.1", port=502),
                DataSource(id=2, name="Online", ip_address="10.0.0.2", port=502),
            ],
            equipment=[
                Equipment(id=1, name="UREA", boem_name="", data_source_id=1),
                Equipment(id=2, name="PUMP", boem_name="", data_source_id=2),
            ],
            variables=[
                Variable(id=1, name="Temp", boem_name="", start_address=10, num_registers=2, equipment_id=1),
                Variable(id=2, name="Pressure", boem_name="", start_address=40, num_registers=2, equipment_id=2),
            ],
        )
        reader = DeviceReader(sink=sink, ship=ship, session_factory=devices.factory, clock=make_clock())

        await PollScheduler(catalog, reader, interval_seconds=60).run_cycle()

        assert read_lines(output(tmp_path, "PUMP", "Pressure")) == ["2024-02-24 13:05:07,,1.000"]

    @pytest.mark.asyncio
    async def test_two_cycles_same_day_append(self, ship, sink, devices, tmp_path):
        load_registers(devices)
        reader = DeviceReader(
            sink=sink,
            ship=ship,
            session_factory=devices.factory,
            clock=make_clock(step=timedelta(minutes=1)),
        )
        catalog = MemoryCatalog(
            sources=plant().sources[:1],
            equipment=plant().equipment[:1],
            variables=plant().variables[:1],
        )
        scheduler = PollScheduler(catalog, reader, interval_seconds=60)

        await scheduler.run_cycle()
        await scheduler.run_cycle()

        assert read_lines(output(tmp_path, "UREA", "Temp")) == [
            "2024-02-24 13:05:07,,1.000",
            "2024-02-24 13:06:07,,1.000",
        ]

    @pytest.mark.asyncio
    async def test_persisted_catalog_end_to_end(self, reader, devices, tmp_path):
        db = CatalogDatabase(str(tmp_path / "catalog.db"))
        db.initialize()
        source_id = db.insert_data_source("SCR_Automation", "10.0.0.1", 502)
        equipment_id = db.insert_equipment("UREA", "UREA", source_id)
        db.insert_variable("Temp", "temp", 10, 2, equipment_id)
        devices.add("10.0.0.1", 10, ONE)

        report = await PollScheduler(PersistedCatalog(db), reader, interval_seconds=60).run_cycle()

        assert report.values_written == 1
        assert output(tmp_path, "UREA", "Temp").exists()


class TestRunLoop:

    @pytest.mark.asyncio
    async def test_stop_before_start_runs_nothing(self, scheduler):
        stop = asyncio.Event()
        stop.set()

        await scheduler.run(stop)

        assert scheduler.execution_count == 0

    @pytest.mark.asyncio
    async def test_stop_cuts_interval_wait_short(self, scheduler, devices):
        load_registers(devices)
        stop = asyncio.Event()

        task = asyncio.create_task(scheduler.run(stop))
        await asyncio.sleep(0.05)
        assert scheduler.state == SchedulerState.IDLE

        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert scheduler.execution_count == 1

    @pytest.mark.asyncio
    async def test_repeats_every_interval(self, reader, devices):
        load_registers(devices)
        scheduler = PollScheduler(plant(), reader, interval_seconds=0.01)
        stop = asyncio.Event()

        task = asyncio.create_task(scheduler.run(stop))
        await asyncio.sleep(0.2)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)

        assert scheduler.execution_count >= 2

    @pytest.mark.asyncio
    async def test_state_during_cycle(self, reader):
        scheduler = None
        seen = []

        class WatchingCatalog(MemoryCatalog):
            async def list_sources(self):
                seen.append(scheduler.state)
                return []

        scheduler = PollScheduler(WatchingCatalog([], [], []), reader, interval_seconds=60)

        await scheduler.run_cycle()

        assert seen == [SchedulerState.CYCLE]
        assert scheduler.state == SchedulerState.IDLE
        assert scheduler.get_stats()["execution_count"] == 1
