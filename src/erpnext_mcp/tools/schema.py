"""MCP tools for ERPNext schema discovery.

Endpoints covered:
  GET /api/resource/DocType                      -> get_doctypes
  GET /api/method/frappe.desk.search.search_link -> get_doctypes (fallback)
  GET /api/resource/DocType/{doctype}            -> get_doctype_fields
"""

from __future__ import annotations

import logging
from typing import Any

from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.tools._base import DOCTYPE_PROPERTY, to_json, tool
from erpnext_mcp.validation import validate_identifier

logger = logging.getLogger(__name__)


@tool(
    "get_doctypes",
    description="Get a list of all available DocTypes",
    input_schema={"type": "object", "properties": {}},
    error_prefix="Failed to get DocTypes",
)
async def get_doctypes(client: ERPNextClient, arguments: dict[str, Any]) -> str:
    """Return every DocType name as a JSON array.

    Never fails on its own: the client falls back to a built-in list of
    common DocTypes when the site cannot be listed.
    """
    logger.debug("Getting all DocTypes")
    return to_json(await client.get_all_doctypes())


@tool(
    "get_doctype_fields",
    description="Get fields list for a specific DocType",
    input_schema={
        "type": "object",
        "properties": {"doctype": DOCTYPE_PROPERTY},
        "required": ["doctype"],
    },
    error_prefix="Failed to get fields",
)
async def get_doctype_fields(client: ERPNextClient, arguments: dict[str, Any]) -> str:
    """Return the field definitions of a DocType as a JSON array."""
    doctype = validate_identifier(arguments.get("doctype"), "doctype")

    logger.debug("Getting fields for doctype: %s", doctype)
    fields = await client.get_doctype_fields(doctype)
    return to_json([field.model_dump() for field in fields])
