"""Sticky Notes: a local notes server with a REST API, MCP tools and a live web UI."""

__version__ = "1.2.0"
