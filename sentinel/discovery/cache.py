"""In-memory discovery cache keyed by server URL."""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterable

from sentinel.discovery.models import DiscoveredServer

logger = logging.getLogger(__name__)


class DiscoveryCache:
    """Lock-guarded map of URL → latest :class:`DiscoveredServer`.

    Every write is an upsert that replaces the whole record; readers always
    get deep copies, so a concurrent scan can never mutate a list a caller is
    iterating over.
    """

    def __init__(self) -> None:
        self._servers: dict[str, DiscoveredServer] = {}
        self._lock = threading.Lock()

    def upsert(self, server: DiscoveredServer) -> None:
        record = copy.deepcopy(server)
        with self._lock:
            replaced = record.url in self._servers
            self._servers[record.url] = record
        logger.debug("cache upsert url=%s replaced=%s", record.url, replaced)

    def merge(self, servers: Iterable[DiscoveredServer]) -> int:
        """Upsert every record in *servers*; returns how many were written."""
        records = [copy.deepcopy(s) for s in servers]
        with self._lock:
            for record in records:
                self._servers[record.url] = record
        return len(records)

    def get(self, url: str) -> DiscoveredServer | None:
        with self._lock:
            server = self._servers.get(url)
            return copy.deepcopy(server) if server is not None else None

    def snapshot(self) -> list[DiscoveredServer]:
        with self._lock:
            return copy.deepcopy(list(self._servers.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._servers)

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._servers
