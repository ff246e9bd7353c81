"""Scan configuration: loaded from JSON, the environment, or built in code."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sentinel.discovery.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
DEFAULT_MAX_CONCURRENT = 10


@dataclass(frozen=True)
class PortRange:
    """Inclusive ``start``..``end`` port range."""

    start: int
    end: int

    def __post_init__(self) -> None:
        for port in (self.start, self.end):
            if not 1 <= port <= 65535:
                raise ConfigurationError(f"port out of range: {port}")
        if self.start > self.end:
            raise ConfigurationError(f"invalid port range {self.start}-{self.end}: start > end")

    def ports(self) -> range:
        return range(self.start, self.end + 1)

    @classmethod
    def parse(cls, value: Any) -> PortRange:
        """Accept ``[start, end]``, ``{"start": .., "end": ..}`` or ``"start-end"``."""
        try:
            if isinstance(value, PortRange):
                return value
            if isinstance(value, str):
                start, _, end = value.partition("-")
                return cls(int(start), int(end or start))
            if isinstance(value, Mapping):
                return cls(int(value["start"]), int(value["end"]))
            start, end = value
            return cls(int(start), int(end))
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid port range: {value!r}") from exc


@dataclass
class ScanConfiguration:
    """Options for one bulk discovery scan.

    ``timeout`` is the per-probe timeout in seconds.  ``deadline``, when set,
    bounds the whole scan; probes still running when it expires are cancelled.
    """

    port_ranges: list[PortRange] = field(default_factory=list)
    network_ranges: list[str] = field(default_factory=list)
    known_ports: list[int] = field(default_factory=list)
    timeout: float = DEFAULT_TIMEOUT
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    deadline: float | None = None

    def __post_init__(self) -> None:
        self.port_ranges = [PortRange.parse(r) for r in self.port_ranges]
        self.network_ranges = list(self.network_ranges)
        try:
            self.known_ports = [int(p) for p in self.known_ports]
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"invalid known_ports: {self.known_ports!r}") from exc

    @property
    def effective_timeout(self) -> float:
        if self.timeout and self.timeout > 0:
            return float(self.timeout)
        logger.warning("timeout %r is not positive, using %.1fs", self.timeout, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT

    @property
    def effective_max_concurrent(self) -> int:
        if self.max_concurrent and self.max_concurrent > 0:
            return int(self.max_concurrent)
        logger.warning(
            "max_concurrent %r is not positive, using %d",
            self.max_concurrent,
            DEFAULT_MAX_CONCURRENT,
        )
        return DEFAULT_MAX_CONCURRENT

    @property
    def effective_deadline(self) -> float | None:
        if self.deadline is None:
            return None
        if self.deadline > 0:
            return float(self.deadline)
        logger.warning("deadline %r is not positive, scanning without a deadline", self.deadline)
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScanConfiguration:
        known = {k for k in cls.__dataclass_fields__}
        filtered = {k: v for k, v in data.items() if k in known}
        return cls(**filtered)

    @classmethod
    def load(cls, path: str | Path) -> ScanConfiguration:
        path = Path(path)
        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
            except ValueError as exc:
                raise ConfigurationError(f"{path}: invalid JSON: {exc}") from exc
            if not isinstance(data, dict):
                raise ConfigurationError(f"{path}: expected a JSON object")
            return cls.from_dict(data)
        logger.warning("Scan config not found at %s, using defaults", path)
        return cls()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ScanConfiguration:
        """Build a configuration from ``SENTINEL_*`` environment variables."""
        env = os.environ if environ is None else environ
        deadline = env.get("SENTINEL_SCAN_DEADLINE", "")
        try:
            return cls(
                port_ranges=_split(env.get("SENTINEL_PORT_RANGES", "")),
                network_ranges=_split(env.get("SENTINEL_NETWORK_RANGES", "")),
                known_ports=[int(p) for p in _split(env.get("SENTINEL_KNOWN_PORTS", ""))],
                timeout=float(env.get("SENTINEL_SCAN_TIMEOUT", str(DEFAULT_TIMEOUT))),
                max_concurrent=int(env.get("SENTINEL_MAX_CONCURRENT", str(DEFAULT_MAX_CONCURRENT))),
                deadline=float(deadline) if deadline else None,
            )
        except ValueError as exc:
            raise ConfigurationError(f"invalid SENTINEL_* environment value: {exc}") from exc


def _split(raw: str) -> list[str]:
    return [part for part in raw.replace(",", " ").split() if part]
