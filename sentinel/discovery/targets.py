"""Target enumeration: expands a scan configuration into probe candidates."""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from itertools import islice

from sentinel.discovery.config import ScanConfiguration
from sentinel.discovery.errors import ConfigurationError
from sentinel.discovery.models import ScanCandidate

logger = logging.getLogger(__name__)

LOCALHOST = "localhost"

# Ports MCP servers commonly listen on during development.
COMMON_PORTS: tuple[int, ...] = (3000, 3001, 3002, 8000, 8001, 8080, 9000)

MAX_HOSTS_PER_RANGE = 254

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network
IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


@dataclass
class TargetPlan:
    """Candidates to probe plus per-range configuration errors."""

    candidates: list[ScanCandidate] = field(default_factory=list)
    errors: dict[str, ConfigurationError] = field(default_factory=dict)


def parse_network(network_range: str) -> IPNetwork:
    """Parse *network_range* as CIDR; host bits are masked off."""
    if "/" not in network_range:
        raise ConfigurationError(
            f"invalid network range {network_range!r}: missing prefix length",
            network_range=network_range,
        )
    try:
        return ipaddress.ip_network(network_range.strip(), strict=False)
    except ValueError as exc:
        raise ConfigurationError(
            f"invalid network range {network_range!r}: {exc}",
            network_range=network_range,
        ) from exc


def is_broadcast(address: IPAddress, network: IPNetwork) -> bool:
    """True if every byte of *address* equals ``byte | ~mask_byte``."""
    addr = address.packed
    mask = network.netmask.packed
    broadcast = bytes(a | (~m & 0xFF) for a, m in zip(addr, mask))
    return addr == broadcast


def hosts_in_range(network_range: str, limit: int = MAX_HOSTS_PER_RANGE) -> list[str]:
    """Return up to *limit* host addresses in *network_range*.

    The network and broadcast addresses are excluded.  Iteration is lazy, so
    a /8 costs no more than a /24.
    """
    network = parse_network(network_range)
    return [str(ip) for ip in islice(_iter_hosts(network), limit)]


def _iter_hosts(network: IPNetwork) -> Iterator[IPAddress]:
    for ip in network:
        if ip == network.network_address or is_broadcast(ip, network):
            continue
        yield ip


def enumerate_targets(config: ScanConfiguration) -> TargetPlan:
    """Expand *config* into a deduplicated candidate list.

    A malformed network range is recorded in :attr:`TargetPlan.errors` and
    skipped; every other range and the localhost targets are still returned.
    """
    plan = TargetPlan()
    seen: set[str] = set()

    def _add(candidate: ScanCandidate) -> None:
        if candidate.url not in seen:
            seen.add(candidate.url)
            plan.candidates.append(candidate)

    local_ports = list(COMMON_PORTS) + list(config.known_ports)
    for port_range in config.port_ranges:
        local_ports.extend(port_range.ports())
    for port in local_ports:
        _add(ScanCandidate(LOCALHOST, port, source=LOCALHOST))

    for network_range in config.network_ranges:
        try:
            hosts = hosts_in_range(network_range)
        except ConfigurationError as exc:
            logger.warning("Skipping network range %r: %s", network_range, exc)
            plan.errors[network_range] = exc
            continue
        if not config.known_ports:
            logger.info("Network range %s has no known_ports to probe", network_range)
        for host in hosts:
            for port in config.known_ports:
                _add(ScanCandidate(host, port, source=network_range))

    logger.debug(
        "Enumerated %d candidate(s), %d range error(s)",
        len(plan.candidates),
        len(plan.errors),
    )
    return plan
