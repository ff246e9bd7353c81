"""pytest configuration and shared fixtures for Sentinel tests."""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response


# Configure asyncio mode for pytest-asyncio
def pytest_configure(config):
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


TWO_TOOLS = [
    {
        "name": "read_file",
        "description": "Read a file from disk",
        "inputSchema": {"type": "object", "properties": {"path": {"type": "string"}}},
    },
    {
        "name": "list_dir",
        "description": "List a directory",
        "inputSchema": {"type": "object"},
    },
]


def make_mcp_app(servers: dict[str, dict[str, Any]]) -> FastAPI:
    """Build an in-process MCP mock that answers per ``host:port``.

    Each entry of *servers* may set:
      head_status  : status for the liveness HEAD (default 200)
      initialize   : ``initialize`` result; ``None`` answers with HTML
      tools / resources / prompts : list to return, or ``"error"`` for a
                     JSON-RPC error, or ``"crash"`` for HTTP 500

    Unknown hosts answer 503.  Every request is recorded in ``app.state.calls``
    as ``(host, http_method, rpc_method)``.
    """
    app = FastAPI()
    app.state.calls = []

    @app.api_route("/", methods=["GET", "HEAD"])
    async def liveness(request: Request):
        host = request.headers.get("host", "")
        app.state.calls.append((host, request.method, None))
        spec = servers.get(host)
        if spec is None:
            return Response(status_code=503)
        return Response(status_code=spec.get("head_status", 200))

    @app.post("/")
    async def rpc(request: Request):
        host = request.headers.get("host", "")
        body = await request.json()
        method = body.get("method")
        app.state.calls.append((host, "POST", method))
        spec = servers.get(host)
        if spec is None:
            return Response(status_code=503)
        if "id" not in body:
            return Response(status_code=202)

        if method == "initialize":
            result = spec.get("initialize")
            if result is None:
                return HTMLResponse("<html><body>Welcome to nginx!</body></html>")
            return JSONResponse({"jsonrpc": "2.0", "id": body["id"], "result": result})

        category = method.split("/")[0]
        items = spec.get(category, [])
        if items == "crash":
            return Response(status_code=500)
        if items == "error":
            return JSONResponse({
                "jsonrpc": "2.0",
                "id": body["id"],
                "error": {"code": -32603, "message": "internal error"},
            })
        return JSONResponse({"jsonrpc": "2.0", "id": body["id"], "result": {category: items}})

    return app


@pytest.fixture
def mcp_servers() -> dict[str, dict[str, Any]]:
    """Mutable server table; tests add entries before scanning."""
    return {}


@pytest.fixture
def mcp_app(mcp_servers):
    return make_mcp_app(mcp_servers)


@pytest.fixture
def transport(mcp_app):
    return httpx.ASGITransport(app=mcp_app)


def posts(app: FastAPI, host: str | None = None) -> list[str]:
    """RPC methods the mock received, optionally for one host."""
    return [m for h, verb, m in app.state.calls if verb == "POST" and (host is None or h == host)]
