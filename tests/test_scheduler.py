"""Tests for PeriodicDiscovery: start/stop/run cycle."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from sentinel.discovery.config import ScanConfiguration
from sentinel.discovery.scanner import DiscoveryService, ScanReport
from sentinel.discovery.scheduler import DEFAULT_INTERVAL_MINUTES, PeriodicDiscovery


def _service(report=None):
    service = DiscoveryService()
    service.scan = AsyncMock(return_value=report or ScanReport())
    return service


class TestPeriodicDiscovery:
    def test_invalid_interval_uses_default(self):
        periodic = PeriodicDiscovery(_service(), ScanConfiguration(), interval_minutes=0)
        assert periodic.interval == DEFAULT_INTERVAL_MINUTES

    async def test_run_once_records_report(self):
        report = ScanReport(candidates_scanned=7)
        service = _service(report)
        config = ScanConfiguration(known_ports=[3001])
        periodic = PeriodicDiscovery(service, config)

        result = await periodic.run_once()

        assert result is report
        assert periodic.last_report is report
        assert periodic.last_run is not None
        service.scan.assert_awaited_once_with(config)

    async def test_start_and_stop(self):
        service = _service()
        periodic = PeriodicDiscovery(service, ScanConfiguration(), interval_minutes=60)

        await periodic.start()
        assert periodic.running
        await asyncio.sleep(0.05)
        interrupted = await periodic.stop()

        assert interrupted is False
        assert not periodic.running
        assert service.scan.await_count == 1

    async def test_stop_during_scan_reports_interruption(self):
        scanning = asyncio.Event()

        async def slow_scan(config):
            scanning.set()
            await asyncio.sleep(30)
            return ScanReport()

        service = DiscoveryService()
        service.scan = AsyncMock(side_effect=slow_scan)
        periodic = PeriodicDiscovery(service, ScanConfiguration(), interval_minutes=60)

        await periodic.start()
        await asyncio.wait_for(scanning.wait(), timeout=1)
        interrupted = await periodic.stop()

        assert interrupted is True
        assert periodic.last_report is None
        assert not periodic.running

    async def test_start_twice_is_noop(self):
        periodic = PeriodicDiscovery(_service(), ScanConfiguration(), interval_minutes=60)
        await periodic.start()
        first_task = periodic._task
        await periodic.start()
        assert periodic._task is first_task
        await periodic.stop()

    async def test_failing_cycle_keeps_loop_alive(self):
        service = DiscoveryService()
        service.scan = AsyncMock(side_effect=RuntimeError("network down"))
        periodic = PeriodicDiscovery(service, ScanConfiguration(), interval_minutes=60)

        await periodic.start()
        await asyncio.sleep(0.05)
        assert periodic.running
        assert periodic.last_report is None
        await periodic.stop()

    async def test_stop_without_start(self):
        periodic = PeriodicDiscovery(_service(), ScanConfiguration())
        assert await periodic.stop() is False
        assert not periodic.running
