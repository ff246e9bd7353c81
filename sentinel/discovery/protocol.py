"""MCP protocol client: JSON-RPC 2.0 over HTTP POST.

Covers the calls discovery needs: the ``initialize`` handshake (plus the
``notifications/initialized`` follow-up), ``tools/list``,
``resources/list`` and ``prompts/list``.  Servers may answer with
plain JSON or with a single-response SSE stream (streamable HTTP transport);
both are accepted.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, TypeVar

import httpx

from sentinel import __version__
from sentinel.discovery.errors import (
    CapabilityEnumerationError,
    ProtocolMismatchError,
)
from sentinel.discovery.models import (
    Capabilities,
    MCPPrompt,
    MCPPromptArgument,
    MCPResource,
    MCPTool,
    ServerIdentity,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "Aran MCP Sentinel"
SESSION_HEADER = "Mcp-Session-Id"
MAX_LIST_PAGES = 10

# One request in flight per method per probe, so fixed ids are enough.
REQUEST_IDS = {"initialize": 1, "tools": 2, "resources": 3, "prompts": 4}

T = TypeVar("T")


class MCPRequestError(Exception):
    """A single JSON-RPC exchange failed (transport, status or payload)."""


class MCPClient:
    """Thin async MCP client on top of a shared :class:`httpx.AsyncClient`.

    The client holds no per-server state: the session id returned by
    :meth:`initialize` is handed back by the caller on later calls.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def initialize(self, url: str, timeout: float) -> ServerIdentity:
        """Run the handshake against *url*.

        Raises:
            ProtocolMismatchError: on any transport, status or shape problem.
        """
        params = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"roots": {"listChanged": True}, "sampling": {}},
            "clientInfo": {"name": CLIENT_NAME, "version": __version__},
        }
        try:
            result, response = await self._call(url, "initialize", params, timeout)
        except MCPRequestError as exc:
            raise ProtocolMismatchError(url, str(exc)) from exc

        identity = _parse_identity(url, result)
        identity.session_id = response.headers.get(SESSION_HEADER)

        try:
            await self._notify(url, "notifications/initialized", timeout, identity.session_id)
        except MCPRequestError as exc:
            logger.warning("Failed to send initialized notification to %s: %s", url, exc)
        return identity

    async def list_tools(
        self, url: str, timeout: float, session_id: str | None = None
    ) -> list[MCPTool]:
        return await self._list(url, "tools", timeout, session_id, _parse_tool)

    async def list_resources(
        self, url: str, timeout: float, session_id: str | None = None
    ) -> list[MCPResource]:
        return await self._list(url, "resources", timeout, session_id, _parse_resource)

    async def list_prompts(
        self, url: str, timeout: float, session_id: str | None = None
    ) -> list[MCPPrompt]:
        return await self._list(url, "prompts", timeout, session_id, _parse_prompt)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _list(
        self,
        url: str,
        category: str,
        timeout: float,
        session_id: str | None,
        parse: Callable[[Any], T],
    ) -> list[T]:
        items: list[T] = []
        cursor: str | None = None
        for _ in range(MAX_LIST_PAGES):
            params = {"cursor": cursor} if cursor else None
            try:
                result, _ = await self._call(url, f"{category}/list", params, timeout, session_id)
            except MCPRequestError as exc:
                raise CapabilityEnumerationError(url, category, str(exc)) from exc
            entries = result.get(category)
            if not isinstance(entries, list):
                raise CapabilityEnumerationError(url, category, f"'{category}' is not a list")
            try:
                items.extend(parse(entry) for entry in entries)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                raise CapabilityEnumerationError(url, category, f"malformed entry: {exc!r}") from exc
            cursor = result.get("nextCursor")
            if not cursor:
                break
        else:
            logger.warning("%s/list on %s still paginating after %d pages", category, url, MAX_LIST_PAGES)
        return items

    async def _call(
        self,
        url: str,
        method: str,
        params: dict[str, Any] | None,
        timeout: float,
        session_id: str | None = None,
    ) -> tuple[dict[str, Any], httpx.Response]:
        request_id = REQUEST_IDS.get(method.split("/")[0], 1)
        body: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            body["params"] = params

        response = await self._post(url, body, timeout, session_id)
        if response.status_code != 200:
            raise MCPRequestError(f"{method}: HTTP status {response.status_code}")

        message = _decode_message(response, request_id)
        if message.get("jsonrpc") != "2.0":
            raise MCPRequestError(f"{method}: not a JSON-RPC 2.0 response")
        error = message.get("error")
        if error is not None:
            detail = error.get("message") if isinstance(error, dict) else error
            raise MCPRequestError(f"{method}: server returned error: {detail}")
        result = message.get("result")
        if not isinstance(result, dict):
            raise MCPRequestError(f"{method}: result is not an object")
        return result, response

    async def _notify(
        self, url: str, method: str, timeout: float, session_id: str | None
    ) -> None:
        response = await self._post(url, {"jsonrpc": "2.0", "method": method}, timeout, session_id)
        if response.status_code >= 400:
            raise MCPRequestError(f"{method}: HTTP status {response.status_code}")

    async def _post(
        self,
        url: str,
        body: dict[str, Any],
        timeout: float,
        session_id: str | None,
    ) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "User-Agent": f"Aran-MCP-Sentinel/{__version__}",
        }
        if session_id:
            headers[SESSION_HEADER] = session_id
        logger.debug("MCP request %s -> %s", body.get("method"), url)
        try:
            return await self._client.post(url, json=body, headers=headers, timeout=timeout)
        except httpx.TimeoutException as exc:
            raise MCPRequestError(f"{body.get('method')}: timed out after {timeout:.1f}s") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise MCPRequestError(f"{body.get('method')}: transport error: {exc!r}") from exc


def _decode_message(response: httpx.Response, request_id: int) -> dict[str, Any]:
    """Return the JSON-RPC message for *request_id* from a JSON or SSE body."""
    content_type = response.headers.get("content-type", "")
    if content_type.startswith("text/event-stream"):
        for line in response.text.splitlines():
            if not line.startswith("data:"):
                continue
            try:
                message = json.loads(line[5:].strip())
            except ValueError:
                continue
            if isinstance(message, dict) and message.get("id") == request_id:
                return message
        raise MCPRequestError("no JSON-RPC response in event stream")
    try:
        message = response.json()
    except ValueError as exc:
        raise MCPRequestError(f"response is not JSON: {exc}") from exc
    if not isinstance(message, dict):
        raise MCPRequestError("response is not a JSON object")
    return message


def _parse_identity(url: str, result: dict[str, Any]) -> ServerIdentity:
    # Current servers nest name/version under serverInfo; older ones
    # put them at the top level of the result.
    info = result.get("serverInfo")
    if not isinstance(info, dict):
        info = result
    name = info.get("name")
    if not isinstance(name, str) or not name:
        raise ProtocolMismatchError(url, "initialize result has no server name")
    capabilities = result.get("capabilities", {})
    if capabilities is None:
        capabilities = {}
    if not isinstance(capabilities, dict):
        raise ProtocolMismatchError(url, "capabilities is not an object")
    return ServerIdentity(
        name=name,
        version=str(info.get("version") or ""),
        description=str(info.get("description") or result.get("instructions") or ""),
        capabilities=Capabilities.from_payload(capabilities),
        protocol_version=str(result.get("protocolVersion") or ""),
    )


def _parse_tool(entry: Any) -> MCPTool:
    return MCPTool(
        name=str(entry["name"]),
        description=str(entry.get("description") or ""),
        input_schema=dict(entry.get("inputSchema") or {}),
    )


def _parse_resource(entry: Any) -> MCPResource:
    return MCPResource(
        uri=str(entry["uri"]),
        name=str(entry.get("name") or ""),
        description=str(entry.get("description") or ""),
        mime_type=str(entry.get("mimeType") or ""),
    )


def _parse_prompt(entry: Any) -> MCPPrompt:
    return MCPPrompt(
        name=str(entry["name"]),
        description=str(entry.get("description") or ""),
        arguments=[
            MCPPromptArgument(
                name=str(arg["name"]),
                description=str(arg.get("description") or ""),
                required=bool(arg.get("required", False)),
            )
            for arg in entry.get("arguments") or []
        ],
    )
