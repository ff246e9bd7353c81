"""sentinel.discovery: MCP server discovery and protocol probing.

Exports:
    DiscoveryService    : bulk scan / refresh / snapshot engine
    DiscoveryCache      : lock-guarded URL → record map
    ScanConfiguration   : scan options (ports, ranges, timeouts, concurrency)
    DiscoveredServer    : a confirmed MCP server record
    PeriodicDiscovery   : background rescans on an interval
"""

from __future__ import annotations

from sentinel.discovery.cache import DiscoveryCache
from sentinel.discovery.config import PortRange, ScanConfiguration
from sentinel.discovery.environment import discover_from_environment
from sentinel.discovery.errors import (
    CapabilityEnumerationError,
    ConfigurationError,
    DiscoveryError,
    NotFoundError,
    ProtocolMismatchError,
    ReachabilityError,
)
from sentinel.discovery.models import DiscoveredServer, ScanCandidate
from sentinel.discovery.scanner import DiscoveryService, ScanReport
from sentinel.discovery.scheduler import PeriodicDiscovery
from sentinel.discovery.targets import enumerate_targets

__all__ = [
    "CapabilityEnumerationError",
    "ConfigurationError",
    "DiscoveredServer",
    "DiscoveryCache",
    "DiscoveryError",
    "DiscoveryService",
    "NotFoundError",
    "PeriodicDiscovery",
    "PortRange",
    "ProtocolMismatchError",
    "ReachabilityError",
    "ScanCandidate",
    "ScanConfiguration",
    "ScanReport",
    "discover_from_environment",
    "enumerate_targets",
]
