"""MCP discovery engine.

Pipeline per candidate, strictly in this order:

  1. reachability  : cheap HEAD probe; dead hosts stop here
  2. handshake     : MCP ``initialize``; non-MCP endpoints stop here
  3. capabilities  : list tools/resources/prompts the server advertised;
                     a failed category leaves that list empty

Candidates run as independent asyncio tasks.  A fixed-size semaphore caps
how many are past admission at once, so scanning a few hundred addresses
does not exhaust file descriptors.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from sentinel.discovery.cache import DiscoveryCache
from sentinel.discovery.config import ScanConfiguration
from sentinel.discovery.errors import (
    CapabilityEnumerationError,
    ConfigurationError,
    NotFoundError,
    ProbeError,
    ProtocolMismatchError,
)
from sentinel.discovery.models import DiscoveredServer, ScanCandidate, ServerIdentity
from sentinel.discovery.prober import REACHABILITY_TIMEOUT, ReachabilityProber
from sentinel.discovery.protocol import MCPClient
from sentinel.discovery.targets import LOCALHOST, enumerate_targets

logger = logging.getLogger(__name__)

REFRESH_TIMEOUT = 10.0


@dataclass
class ScanReport:
    """Outcome of one bulk scan."""

    servers: list[DiscoveredServer] = field(default_factory=list)
    errors: dict[str, ConfigurationError] = field(default_factory=dict)
    candidates_scanned: int = 0
    duration: float = 0.0
    timed_out: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "servers": [s.to_dict() for s in self.servers],
            "errors": {rng: str(err) for rng, err in self.errors.items()},
            "candidates_scanned": self.candidates_scanned,
            "duration": round(self.duration, 3),
            "timed_out": self.timed_out,
        }


class DiscoveryService:
    """Finds MCP servers and keeps the latest record for each URL.

    Args:
        cache:     Shared :class:`DiscoveryCache`; a private one is created
                   when omitted.
        transport: Optional httpx transport (tests pass a mock or ASGI one).
        reachability_timeout: Upper bound for the liveness probe in seconds.
    """

    def __init__(
        self,
        cache: DiscoveryCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        reachability_timeout: float = REACHABILITY_TIMEOUT,
    ) -> None:
        self.cache = cache if cache is not None else DiscoveryCache()
        self._transport = transport
        self._reachability_timeout = reachability_timeout

    # ------------------------------------------------------------------ #
    # Public API                                                           #
    # ------------------------------------------------------------------ #

    async def scan(self, config: ScanConfiguration) -> ScanReport:
        """Probe localhost and every network range in *config*.

        Never raises for individual candidates.  Malformed network ranges
        are reported in :attr:`ScanReport.errors` and skipped.
        """
        plan = enumerate_targets(config)
        timeout = config.effective_timeout
        max_concurrent = config.effective_max_concurrent
        logger.info(
            "Starting MCP discovery: %d candidate(s), %d network range(s), "
            "timeout=%.1fs, max_concurrent=%d",
            len(plan.candidates),
            len(config.network_ranges),
            timeout,
            max_concurrent,
        )

        started = time.monotonic()
        async with self._http_client(max_concurrent) as client:
            servers, timed_out = await self._run_candidates(
                client, plan.candidates, timeout, max_concurrent, config.effective_deadline
            )
        self.cache.merge(servers)

        report = ScanReport(
            servers=servers,
            errors=dict(plan.errors),
            candidates_scanned=len(plan.candidates),
            duration=time.monotonic() - started,
            timed_out=timed_out,
        )
        logger.info(
            "MCP discovery completed: %d server(s) found in %.1fs%s",
            len(servers),
            report.duration,
            " (deadline reached)" if timed_out else "",
        )
        return report

    async def discover(self, config: ScanConfiguration) -> list[DiscoveredServer]:
        """Run :meth:`scan` and return only the discovered servers."""
        report = await self.scan(config)
        return report.servers

    async def refresh(
        self,
        url: str,
        timeout: float = REFRESH_TIMEOUT,
        discovery_method: str = "refresh",
    ) -> DiscoveredServer:
        """Re-probe *url* and upsert the result.

        Raises:
            NotFoundError: if *url* is unreachable or not an MCP server.
        """
        url = url.strip().rstrip("/")
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise NotFoundError(url, f"invalid URL: {exc}") from exc
        metadata = {"discovery_method": discovery_method, "address": parsed.host, "port": parsed.port}

        async with self._http_client(1) as client:
            prober = ReachabilityProber(client, self._reachability_timeout)
            try:
                server = await self._probe(prober, MCPClient(client), url, timeout, metadata)
            except ProbeError as exc:
                logger.debug("Refresh of %s failed at %s stage: %s", url, exc.stage, exc.reason)
                raise NotFoundError(url, exc.reason) from exc

        self.cache.upsert(server)
        return server

    def snapshot(self) -> list[DiscoveredServer]:
        """Return copies of every cached server without probing."""
        return self.cache.snapshot()

    # ------------------------------------------------------------------ #
    # Coordinator                                                          #
    # ------------------------------------------------------------------ #

    async def _run_candidates(
        self,
        client: httpx.AsyncClient,
        candidates: list[ScanCandidate],
        timeout: float,
        max_concurrent: int,
        deadline: float | None,
    ) -> tuple[list[DiscoveredServer], bool]:
        """Probe every candidate with at most *max_concurrent* in flight.

        Returns the servers found (completion order) and whether the
        scan-wide *deadline* cut the scan short.
        """
        if not candidates:
            return [], False

        semaphore = asyncio.Semaphore(max_concurrent)
        prober = ReachabilityProber(client, self._reachability_timeout)
        mcp = MCPClient(client)
        found: list[DiscoveredServer] = []

        async def _worker(candidate: ScanCandidate) -> None:
            async with semaphore:
                server = await self._probe_candidate(prober, mcp, candidate, timeout)
            if server is not None:
                found.append(server)

        tasks = [asyncio.create_task(_worker(c)) for c in candidates]
        try:
            _, pending = await asyncio.wait(tasks, timeout=deadline)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if pending:
            logger.warning(
                "Scan deadline of %.1fs reached, cancelled %d pending probe(s)",
                deadline,
                len(pending),
            )
        return found, bool(pending)

    async def _probe_candidate(
        self,
        prober: ReachabilityProber,
        mcp: MCPClient,
        candidate: ScanCandidate,
        timeout: float,
    ) -> DiscoveredServer | None:
        """Run the pipeline for one candidate; every failure means ``None``."""
        metadata: dict[str, Any] = {
            "discovery_method": "localhost" if candidate.source == LOCALHOST else "network_scan",
            "address": candidate.address,
            "port": candidate.port,
        }
        if candidate.source != LOCALHOST:
            metadata["network_range"] = candidate.source
        try:
            return await self._probe(prober, mcp, candidate.url, timeout, metadata)
        except ProbeError as exc:
            logger.debug("Dropped %s at %s stage: %s", candidate.url, exc.stage, exc.reason)
        except Exception:
            logger.exception("Unexpected error probing %s", candidate.url)
        return None

    # ------------------------------------------------------------------ #
    # Probe pipeline                                                       #
    # ------------------------------------------------------------------ #

    async def _probe(
        self,
        prober: ReachabilityProber,
        mcp: MCPClient,
        url: str,
        timeout: float,
        metadata: dict[str, Any],
    ) -> DiscoveredServer:
        await prober.ensure_reachable(url, timeout)

        # Handshake and listings share one budget; response time covers the
        # handshake only, not the liveness probe.
        started = time.monotonic()
        deadline = started + timeout
        try:
            identity = await asyncio.wait_for(mcp.initialize(url, timeout), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise ProtocolMismatchError(url, f"handshake timed out after {timeout:.1f}s") from exc
        response_time = time.monotonic() - started

        server = DiscoveredServer(
            url=url,
            name=identity.name,
            version=identity.version,
            description=identity.description,
            capabilities=identity.capabilities,
            response_time=response_time,
            metadata={**metadata, "protocol_version": identity.protocol_version},
        )
        await self._enumerate_capabilities(mcp, server, identity, deadline)

        logger.info(
            "Discovered MCP server %s (%s %s): %d tools, %d resources, %d prompts, %.0fms",
            url,
            server.name,
            server.version or "?",
            len(server.tools),
            len(server.resources),
            len(server.prompts),
            response_time * 1000,
        )
        return server

    async def _enumerate_capabilities(
        self,
        mcp: MCPClient,
        server: DiscoveredServer,
        identity: ServerIdentity,
        deadline: float,
    ) -> None:
        """Fill the list for each advertised category before *deadline*.

        Failed categories stay empty, as does every category still pending
        when the probe budget runs out.
        """
        listings = (
            ("tools", identity.capabilities.tools, mcp.list_tools),
            ("resources", identity.capabilities.resources, mcp.list_resources),
            ("prompts", identity.capabilities.prompts, mcp.list_prompts),
        )
        for category, supported, list_items in listings:
            if not supported:
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("Probe budget spent before listing %s on %s", category, server.url)
                continue
            try:
                items = await asyncio.wait_for(
                    list_items(server.url, remaining, session_id=identity.session_id),
                    timeout=remaining,
                )
            except asyncio.TimeoutError:
                logger.warning("Timed out listing %s on %s", category, server.url)
                continue
            except CapabilityEnumerationError as exc:
                logger.warning("Failed to list %s on %s: %s", category, server.url, exc.reason)
                continue
            except Exception:
                logger.exception("Unexpected error listing %s on %s", category, server.url)
                continue
            setattr(server, category, items)

    def _http_client(self, max_connections: int) -> httpx.AsyncClient:
        if self._transport is not None:
            return httpx.AsyncClient(transport=self._transport)
        return httpx.AsyncClient(
            verify=False,  # local MCP servers often use self-signed certs
            limits=httpx.Limits(max_connections=max_connections),
        )
