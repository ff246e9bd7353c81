"""Discover MCP servers named in environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from sentinel.discovery.errors import NotFoundError
from sentinel.discovery.models import DiscoveredServer
from sentinel.discovery.scanner import REFRESH_TIMEOUT, DiscoveryService

logger = logging.getLogger(__name__)

# MCP_SERVERS may hold several URLs separated by commas or whitespace.
ENV_VARS: tuple[str, ...] = (
    "MCP_SERVER_URL",
    "MCP_SERVERS",
    "MODEL_CONTEXT_PROTOCOL_URL",
)


def urls_from_environment(environ: Mapping[str, str] | None = None) -> list[str]:
    """Return the deduplicated server URLs found in :data:`ENV_VARS`."""
    env = os.environ if environ is None else environ
    urls: list[str] = []
    for var in ENV_VARS:
        for url in env.get(var, "").replace(",", " ").split():
            url = url.rstrip("/")
            if url and url not in urls:
                urls.append(url)
    return urls


async def discover_from_environment(
    service: DiscoveryService,
    environ: Mapping[str, str] | None = None,
    timeout: float = REFRESH_TIMEOUT,
) -> list[DiscoveredServer]:
    """Probe each configured URL; unreachable or non-MCP ones are skipped."""
    servers: list[DiscoveredServer] = []
    for url in urls_from_environment(environ):
        try:
            servers.append(await service.refresh(url, timeout=timeout, discovery_method="environment"))
        except NotFoundError as exc:
            logger.info("Environment-configured server skipped: %s", exc)
    logger.info("Environment discovery found %d server(s)", len(servers))
    return servers
