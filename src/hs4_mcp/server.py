"""Entrypoint for the HS4 MCP server."""

from __future__ import annotations

import logging
import threading

from hs4_mcp import __version__
from hs4_mcp.config import load_settings
from hs4_mcp.logging_utils import configure_logging
from hs4_mcp.mcp_runtime import MCPServer
from hs4_mcp.tools import register_tools

SERVER_NAME = "hs4-mcp"


def build_server() -> MCPServer:
    """Create and configure the MCP server instance."""
    settings = load_settings()

    server = MCPServer(
        name=SERVER_NAME,
        version=__version__,
        instructions=settings.server.instructions,
    )

    # FastMCP installs its own handlers; re-apply ours afterwards.
    configure_logging()

    logging.info("Initializing HS4 MCP Server v%s", __version__)
    logging.info("HS4 base URL: %s", settings.hs4.base_url)
    register_tools(server)
    return server


def run_entrypoint() -> None:
    """Run the server based on transport settings."""
    settings = load_settings()
    if settings.server.transport_mode == "http":
        _run_http()
        return
    get_server().run()


def _run_http() -> None:
    import uvicorn

    from hs4_mcp.transport.http_server import create_http_app

    settings = load_settings()
    configure_logging()
    app = create_http_app()
    # MCP over HTTP only; no websocket endpoints.
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


_server: MCPServer | None = None
_server_lock = threading.Lock()


def get_server() -> MCPServer:
    """Lazily initialise and return the module-level server instance."""
    global _server
    if _server is not None:
        return _server
    with _server_lock:
        if _server is None:
            _server = build_server()
        return _server


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
