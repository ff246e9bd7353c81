"""Data model for discovered MCP servers."""

from __future__ import annotations

import ipaddress
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

STATUS_ONLINE = "online"


@dataclass
class Capabilities:
    """Capability flags advertised by a server during the handshake."""

    tools: bool = False
    resources: bool = False
    prompts: bool = False

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Capabilities:
        """Build flags from an ``initialize`` result's ``capabilities`` object.

        MCP servers advertise support with an object (often ``{}``), so a
        category counts as supported when its value is ``true`` or a dict.
        """

        def _flag(key: str) -> bool:
            value = payload.get(key)
            return value is True or isinstance(value, dict)

        return cls(tools=_flag("tools"), resources=_flag("resources"), prompts=_flag("prompts"))


@dataclass
class MCPTool:
    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


@dataclass
class MCPResource:
    uri: str
    name: str = ""
    description: str = ""
    mime_type: str = ""


@dataclass
class MCPPromptArgument:
    name: str
    description: str = ""
    required: bool = False


@dataclass
class MCPPrompt:
    name: str
    description: str = ""
    arguments: list[MCPPromptArgument] = field(default_factory=list)


@dataclass
class ServerIdentity:
    """What a successful handshake tells us about a server."""

    name: str
    version: str = ""
    description: str = ""
    capabilities: Capabilities = field(default_factory=Capabilities)
    protocol_version: str = ""
    session_id: str | None = None


@dataclass(frozen=True)
class ScanCandidate:
    """One address:port pair proposed for probing."""

    address: str
    port: int
    source: str = "localhost"

    @property
    def url(self) -> str:
        host = self.address
        try:
            if ipaddress.ip_address(host).version == 6:
                host = f"[{host}]"
        except ValueError:
            pass  # hostname such as "localhost"
        return f"http://{host}:{self.port}"


@dataclass
class DiscoveredServer:
    """A confirmed MCP server, keyed by :attr:`url`."""

    url: str
    name: str
    version: str = ""
    description: str = ""
    capabilities: Capabilities = field(default_factory=Capabilities)
    tools: list[MCPTool] = field(default_factory=list)
    resources: list[MCPResource] = field(default_factory=list)
    prompts: list[MCPPrompt] = field(default_factory=list)
    status: str = STATUS_ONLINE
    last_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    response_time: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable dict."""
        data = asdict(self)
        data["last_seen"] = self.last_seen.isoformat()
        return data
