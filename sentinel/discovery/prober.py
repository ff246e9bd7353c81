"""Reachability prober: cheap liveness check ahead of the MCP handshake."""

from __future__ import annotations

import logging

import httpx

from sentinel.discovery.errors import ReachabilityError

logger = logging.getLogger(__name__)

# Kept below the per-probe timeout so dead hosts are dropped quickly.
REACHABILITY_TIMEOUT = 2.0


class ReachabilityProber:
    """Issues a bodiless HEAD request and classifies the target.

    Any status below 500 counts as alive: 401/404/405 are normal for an MCP
    endpoint that only speaks POST.  Transport errors, timeouts and 5xx
    responses make the target unreachable.
    """

    def __init__(self, client: httpx.AsyncClient, timeout: float = REACHABILITY_TIMEOUT) -> None:
        self._client = client
        self.timeout = timeout

    async def ensure_reachable(self, url: str, probe_timeout: float | None = None) -> int:
        """Return the HEAD status code, or raise :class:`ReachabilityError`."""
        timeout = self.timeout if probe_timeout is None else min(self.timeout, probe_timeout)
        try:
            response = await self._client.head(url, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise ReachabilityError(url, f"timed out after {timeout:.1f}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ReachabilityError(url, f"transport error: {exc!r}") from exc
        if response.status_code >= 500:
            raise ReachabilityError(url, f"server error status {response.status_code}")
        logger.debug("Reachability OK: %s (%d)", url, response.status_code)
        return response.status_code
