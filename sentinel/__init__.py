"""Aran Sentinel: MCP server discovery and protocol probing."""

__version__ = "1.0.0"
