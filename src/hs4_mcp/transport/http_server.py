"""Starlette HTTP server assembly."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from hs4_mcp.app import get_app_context
from hs4_mcp.config import load_settings

logger = logging.getLogger(__name__)


def create_http_app() -> Starlette:
    """Create the HTTP MCP server application."""
    settings = load_settings()

    async def mcp_handler(request: Request) -> Response:
        from hs4_mcp.transport.mcp_handler import handle_mcp_request

        return await handle_mcp_request(request)

    async def health_handler(request: Request) -> Response:
        return JSONResponse({"status": "healthy"})

    async def ready_handler(request: Request) -> Response:
        ctx = get_app_context()
        return JSONResponse(
            {
                "status": "ready",
                "safeMode": ctx.policy_engine.config.safe_mode,
                "adminExecutionMode": ctx.router.mode,
            }
        )

    routes = [
        Route("/mcp", endpoint=mcp_handler, methods=["POST", "OPTIONS"]),
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/ready", endpoint=ready_handler, methods=["GET"]),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Starting HS4 MCP HTTP server on %s:%s", settings.server.host, settings.server.port)
        ctx = get_app_context()
        await ctx.changes.init()
        try:
            yield
        finally:
            logger.info("Stopping HS4 MCP HTTP server...")
            await ctx.client.aclose()

    return Starlette(routes=routes, lifespan=lifespan)
