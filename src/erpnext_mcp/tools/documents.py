"""MCP tools for reading and writing ERPNext documents.

Endpoints covered:
  GET  /api/resource/{doctype}          -> get_documents
  POST /api/resource/{doctype}          -> create_document
  PUT  /api/resource/{doctype}/{name}   -> update_document
"""

from __future__ import annotations

import logging
from typing import Any

from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.tools._base import DOCTYPE_PROPERTY, to_json, tool
from erpnext_mcp.validation import (
    validate_filters,
    validate_identifier,
    validate_object,
    validate_positive_int,
    validate_string_array,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@tool(
    "get_documents",
    description="Get a list of documents for a specific doctype",
    input_schema={
        "type": "object",
        "properties": {
            "doctype": DOCTYPE_PROPERTY,
            "fields": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Fields to include (optional)",
            },
            "filters": {
                "type": "object",
                "additionalProperties": True,
                "description": "Filters in the format {field: value} (optional)",
            },
            "limit": {
                "type": "number",
                "description": "Maximum number of documents to return (optional)",
            },
        },
        "required": ["doctype"],
    },
    error_prefix="Failed to get documents",
)
async def get_documents(client: ERPNextClient, arguments: dict[str, Any]) -> str:
    """Return the matching documents as a JSON array.

    ``fields`` defaults to ERPNext's own choice (usually just ``name``) and
    ``limit`` to the site's page length when omitted.
    """
    doctype = validate_identifier(arguments.get("doctype"), "doctype")
    fields = validate_string_array(arguments.get("fields"), "fields")
    filters = validate_filters(arguments.get("filters"), "filters")
    limit = validate_positive_int(arguments.get("limit"), "limit")

    logger.debug("Getting documents for doctype: %s", doctype)
    documents = await client.get_doc_list(doctype, filters, fields, limit)
    return to_json(documents)


@tool(
    "create_document",
    description="Create a new document in ERPNext",
    input_schema={
        "type": "object",
        "properties": {
            "doctype": DOCTYPE_PROPERTY,
            "data": {
                "type": "object",
                "additionalProperties": True,
                "description": "Document data",
            },
        },
        "required": ["doctype", "data"],
    },
    error_prefix="Failed to create document",
)
async def create_document(client: ERPNextClient, arguments: dict[str, Any]) -> str:
    """Insert a document and report its server-assigned name."""
    doctype = validate_identifier(arguments.get("doctype"), "doctype")
    data = validate_object(arguments.get("data"), "data")

    logger.debug("Creating document of type: %s", doctype)
    document = await client.create_document(doctype, data)
    return f"Created {doctype}: {document.get('name')}\n\n{to_json(document)}"


@tool(
    "update_document",
    description="Update an existing document in ERPNext",
    input_schema={
        "type": "object",
        "properties": {
            "doctype": DOCTYPE_PROPERTY,
            "name": {
                "type": "string",
                "description": "Document name/ID",
            },
            "data": {
                "type": "object",
                "additionalProperties": True,
                "description": "Document data to update",
            },
        },
        "required": ["doctype", "name", "data"],
    },
    error_prefix="Failed to update document",
)
async def update_document(client: ERPNextClient, arguments: dict[str, Any]) -> str:
    """Apply a partial update; only the keys present in ``data`` change."""
    doctype = validate_identifier(arguments.get("doctype"), "doctype")
    name = validate_identifier(arguments.get("name"), "name")
    data = validate_object(arguments.get("data"), "data")

    logger.debug("Updating document: %s/%s", doctype, name)
    document = await client.update_document(doctype, name, data)
    return f"Updated {doctype} {name}\n\n{to_json(document)}"
