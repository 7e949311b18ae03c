"""
Copyright (c) 2025 DevRev, Inc.
SPDX-License-Identifier: MIT

SiYuan MCP Server package.
This package provides a FastMCP-based server for the SiYuan note-taking application,
with a shared cache and per-client sessions over Streamable HTTP.
"""

from .app import create_app
from .server import SERVER_VERSION, build_server, main

__version__ = SERVER_VERSION
__all__ = ["main", "build_server", "create_app"]

# Export the main function for the CLI entry point
def main_cli():
    """CLI entry point for the SiYuan MCP server."""
    main()
