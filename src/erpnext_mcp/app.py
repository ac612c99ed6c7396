"""MCP protocol server construction.

``create_server`` binds the tool registry and the resource handlers to a
fresh low-level ``mcp.server.Server``.  The stdio transport builds one for
the process lifetime; the HTTP transport builds one per session.

Tool definitions are advertised verbatim (see ``tools/_base.tool``), so the
JSON schemas clients see never depend on Python signatures.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable
from importlib.metadata import PackageNotFoundError, version

from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.types import (
    CallToolRequest,
    Resource,
    ResourceTemplate,
    ServerResult,
    Tool,
)
from pydantic import AnyUrl

from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.resources import (
    JSON_MIME_TYPE,
    RESOURCE_TEMPLATES,
    RESOURCES,
    read_resource,
)
from erpnext_mcp.tools._base import call_tool, registered_tools

logger = logging.getLogger(__name__)

SERVER_NAME = "erpnext-server"

# Tool module short-names (suffix of `erpnext_mcp.tools.*`).
_TOOL_MODULES: list[str] = ["documents", "schema", "reports"]


def _load_tool_modules() -> None:
    """Import tool modules so their @tool() decorators register."""
    for name in _TOOL_MODULES:
        importlib.import_module(f"erpnext_mcp.tools.{name}")


def _server_version() -> str:
    try:
        return version("erpnext-mcp-server")
    except PackageNotFoundError:
        return "0.0.0"


def _build_instructions(client: ERPNextClient) -> str:
    base = (
        "You are connected to an ERPNext (Frappe) site. "
        "Use get_doctypes and get_doctype_fields to discover record types "
        "and their fields, get_documents to query records, "
        "create_document and update_document to change data, and "
        "run_report to execute reports. Single documents can also be read "
        "as resources at erpnext://{doctype}/{name}."
    )
    if not client.is_authenticated():
        base += (
            " IMPORTANT: No API credentials are configured "
            "(ERPNEXT_API_KEY / ERPNEXT_API_SECRET), so every call will be "
            "rejected as not authenticated."
        )
    return base


_load_tool_modules()


def create_server(client: ERPNextClient) -> Server:
    """Return a new protocol server whose handlers all use *client*."""
    server: Server = Server(
        SERVER_NAME,
        version=_server_version(),
        instructions=_build_instructions(client),
    )

    @server.list_tools()
    async def handle_list_tools() -> list[Tool]:
        logger.debug("Handling ListToolsRequest")
        return [registered.definition for registered in registered_tools()]

    async def handle_call_tool(request: CallToolRequest) -> ServerResult:
        logger.debug("Handling CallToolRequest: %s", request.params.name)
        result = await call_tool(client, request.params.name, request.params.arguments)
        return ServerResult(result)

    # Registered directly rather than through @server.call_tool(): that
    # decorator turns every exception, McpError included, into an isError
    # result, but an unknown tool name must reach the client as a JSON-RPC
    # error.
    server.request_handlers[CallToolRequest] = handle_call_tool

    @server.list_resources()
    async def handle_list_resources() -> list[Resource]:
        logger.debug("Handling ListResourcesRequest")
        return RESOURCES

    @server.list_resource_templates()
    async def handle_list_resource_templates() -> list[ResourceTemplate]:
        logger.debug("Handling ListResourceTemplatesRequest")
        return RESOURCE_TEMPLATES

    @server.read_resource()
    async def handle_read_resource(uri: AnyUrl) -> Iterable[ReadResourceContents]:
        text = await read_resource(client, str(uri))
        return [ReadResourceContents(content=text, mime_type=JSON_MIME_TYPE)]

    return server
