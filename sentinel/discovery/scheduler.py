"""Periodic discovery: re-runs a bulk scan on a fixed interval."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from sentinel.discovery.config import ScanConfiguration
from sentinel.discovery.scanner import DiscoveryService, ScanReport

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MINUTES = 30


class PeriodicDiscovery:
    """Runs :meth:`DiscoveryService.scan` every *interval_minutes*."""

    def __init__(
        self,
        service: DiscoveryService,
        config: ScanConfiguration,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
    ) -> None:
        self.service = service
        self.config = config
        if interval_minutes <= 0:
            logger.warning(
                "Invalid discovery interval %r, using %d min",
                interval_minutes,
                DEFAULT_INTERVAL_MINUTES,
            )
            interval_minutes = DEFAULT_INTERVAL_MINUTES
        self.interval = interval_minutes
        self._running = False
        self._task: asyncio.Task | None = None
        self._last_run: str | None = None
        self._last_report: ScanReport | None = None
        self._scanning = False

    async def start(self) -> None:
        """Schedule the discovery loop; the first scan runs immediately."""
        if self._task is not None and not self._task.done():
            logger.warning("Periodic discovery is already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="periodic-mcp-discovery")
        logger.info("Periodic MCP discovery every %s min", self.interval)

    async def stop(self) -> bool:
        """Cancel the loop.

        Returns True when a scan was in progress and got cut short, False
        when the loop was idle between cycles (or never started).
        """
        self._running = False
        task, self._task = self._task, None
        interrupted = self._scanning
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if interrupted:
            logger.warning("Periodic MCP discovery stopped mid-scan, cycle discarded")
        else:
            logger.info("Periodic MCP discovery stopped")
        return interrupted

    async def run_once(self) -> ScanReport:
        """Run a single discovery cycle and remember its report."""
        self._scanning = True
        try:
            report = await self.service.scan(self.config)
        finally:
            self._scanning = False
        self._last_report = report
        self._last_run = datetime.now(timezone.utc).isoformat()
        return report

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_run(self) -> str | None:
        """ISO timestamp of the last completed cycle, or None."""
        return self._last_run

    @property
    def last_report(self) -> ScanReport | None:
        return self._last_report

    async def _loop(self) -> None:
        while self._running:
            try:
                report = await self.run_once()
                logger.info(
                    "Discovery cycle complete: %d server(s), %d range error(s)",
                    len(report.servers),
                    len(report.errors),
                )
            except Exception as exc:
                logger.error("Discovery cycle failed: %s", exc)

            await asyncio.sleep(self.interval * 60)
