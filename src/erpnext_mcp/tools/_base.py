"""Shared helpers for ERPNext tool modules.

Centralises what every tool module needs:
  - ``tool``: decorator registering a handler with its exact MCP definition
  - ``call_tool``: dispatch with the authentication precheck and the
    conversion of argument/upstream failures into ``isError`` results
  - ``to_json``: the pretty-printed JSON every tool answers with
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from mcp.shared.exceptions import McpError
from mcp.types import METHOD_NOT_FOUND, CallToolResult, ErrorData, TextContent, Tool

from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.errors import ERPNextError
from erpnext_mcp.validation import ArgumentError

__all__ = [
    "NOT_AUTHENTICATED",
    "RegisteredTool",
    "call_tool",
    "error_result",
    "registered_tools",
    "text_result",
    "to_json",
    "tool",
]

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = (
    "Not authenticated with ERPNext. Please configure API key authentication."
)

ToolHandler = Callable[[ERPNextClient, dict[str, Any]], Awaitable[str]]

# Shared property schemas, reused verbatim by several tool definitions.
DOCTYPE_PROPERTY: dict[str, Any] = {
    "type": "string",
    "description": "ERPNext DocType (e.g., Customer, Item)",
}


@dataclass(frozen=True)
class RegisteredTool:
    """A tool handler plus the definition advertised in ``tools/list``."""

    definition: Tool
    handler: ToolHandler
    error_prefix: str


_REGISTRY: dict[str, RegisteredTool] = {}


def tool(
    name: str,
    *,
    description: str,
    input_schema: dict[str, Any],
    error_prefix: str,
) -> Callable[[ToolHandler], ToolHandler]:
    """Register the decorated coroutine as the handler for tool *name*.

    The handler receives the shared client and the raw argument mapping and
    returns the text of a successful result.  It signals failure by raising
    ArgumentError or ERPNextError; ``call_tool`` turns those into an
    ``isError`` result prefixed with *error_prefix*.

    Usage::

        @tool("get_doctypes", description="...", input_schema={...},
              error_prefix="Failed to get DocTypes")
        async def get_doctypes(client: ERPNextClient, arguments: dict) -> str:
            ...
    """

    def decorator(func: ToolHandler) -> ToolHandler:
        _REGISTRY[name] = RegisteredTool(
            definition=Tool(name=name, description=description, inputSchema=input_schema),
            handler=func,
            error_prefix=error_prefix,
        )
        return func

    return decorator


def registered_tools() -> list[RegisteredTool]:
    """Return every registered tool in registration order."""
    return list(_REGISTRY.values())


def text_result(text: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=text)])


def error_result(message: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=message)], isError=True)


def to_json(value: Any) -> str:
    """Serialize a tool payload the way every tool presents it."""
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


async def call_tool(
    client: ERPNextClient, name: str, arguments: dict[str, Any] | None
) -> CallToolResult:
    """Run tool *name* and wrap its outcome in a CallToolResult.

    An unknown tool is a protocol error (McpError); everything else,
    including a missing API key, is reported as an ``isError`` result.
    """
    registered = _REGISTRY.get(name)
    if registered is None:
        raise McpError(ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown tool: {name}"))

    if not client.is_authenticated():
        return error_result(NOT_AUTHENTICATED)

    try:
        text = await registered.handler(client, arguments or {})
    except (ArgumentError, ERPNextError) as exc:
        logger.debug("Tool %s failed: %s", name, exc)
        return error_result(f"{registered.error_prefix}: {exc}")
    return text_result(text)
