"""ERPNext MCP server over stdio.

Run locally:
    uv run erpnext-mcp

Install to Claude Desktop (command + environment):
    erpnext-mcp stdio   with ERPNEXT_URL, ERPNEXT_API_KEY, ERPNEXT_API_SECRET

Inspect with MCP Inspector:
    npx @modelcontextprotocol/inspector uv run erpnext-mcp
"""

from __future__ import annotations

import logging

import anyio
from mcp.server.stdio import stdio_server

from erpnext_mcp.app import create_server
from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.settings import Settings, get_settings

logger = logging.getLogger(__name__)


async def serve_stdio(settings: Settings) -> None:
    """Serve a single MCP session on stdin/stdout for the process lifetime."""
    logger.info("Initializing ERPNext MCP server")
    async with ERPNextClient(settings) as client:
        server = create_server(client)
        async with stdio_server() as (read_stream, write_stream):
            logger.info("ERPNext MCP server running on stdio")
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )


def main() -> None:
    """Run the MCP server over stdio (default transport for Claude Desktop)."""
    anyio.run(serve_stdio, get_settings())


if __name__ == "__main__":
    main()
