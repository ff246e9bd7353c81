"""Error taxonomy for the discovery engine.

Only :class:`ConfigurationError` and :class:`NotFoundError` ever reach a
caller.  The rest are raised inside a probe and absorbed by the engine,
surfacing only as *absence* from the result set.
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base error for discovery failures."""


class ConfigurationError(DiscoveryError):
    """Raised for an invalid scan option (e.g. a malformed CIDR string).

    When raised for a network range, only that range is skipped.
    """

    def __init__(self, message: str, network_range: str | None = None) -> None:
        super().__init__(message)
        self.network_range = network_range


class ProbeError(DiscoveryError):
    """Base for errors tied to one probed URL."""

    stage = "probe"

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class ReachabilityError(ProbeError):
    """Target unreachable, timed out, or answered with a 5xx status."""

    stage = "reachability"


class ProtocolMismatchError(ProbeError):
    """Target is reachable but the MCP handshake failed or was malformed."""

    stage = "handshake"


class CapabilityEnumerationError(ProbeError):
    """Listing one capability category (tools/resources/prompts) failed."""

    stage = "capabilities"

    def __init__(self, url: str, category: str, reason: str) -> None:
        super().__init__(url, f"{category}: {reason}")
        self.category = category


class NotFoundError(DiscoveryError):
    """Raised by refresh when the named URL is not a live MCP server."""

    def __init__(self, url: str, reason: str = "") -> None:
        msg = f"MCP server not found: {url}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.url = url
