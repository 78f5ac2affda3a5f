"""Guarded MCP gateway for HomeSeer HS4."""

__version__ = "0.1.0"
