"""MCP resources exposing ERPNext data by URI.

Resources covered:
  erpnext://DocTypes            -> list of every DocType name
  erpnext://{doctype}/{name}    -> one document

Unlike tools, every failure here is a protocol-level error (McpError), so
the client sees a JSON-RPC error rather than a successful read.
"""

from __future__ import annotations

import logging
from urllib.parse import unquote

from mcp.shared.exceptions import McpError
from mcp.types import (
    INVALID_PARAMS,
    INVALID_REQUEST,
    ErrorData,
    Resource,
    ResourceTemplate,
)

from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.errors import ERPNextError
from erpnext_mcp.tools._base import NOT_AUTHENTICATED, to_json
from erpnext_mcp.validation import ArgumentError, validate_identifier

logger = logging.getLogger(__name__)

SCHEME = "erpnext://"
DOCTYPES_URI = f"{SCHEME}DocTypes"
DOCUMENT_URI_TEMPLATE = f"{SCHEME}{{doctype}}/{{name}}"
JSON_MIME_TYPE = "application/json"

RESOURCES = [
    Resource(
        uri=DOCTYPES_URI,
        name="All DocTypes",
        mimeType=JSON_MIME_TYPE,
        description="List of all available DocTypes in the ERPNext instance",
    ),
]

RESOURCE_TEMPLATES = [
    ResourceTemplate(
        uriTemplate=DOCUMENT_URI_TEMPLATE,
        name="ERPNext Document",
        mimeType=JSON_MIME_TYPE,
        description="Fetch an ERPNext document by doctype and name",
    ),
]


def _protocol_error(code: int, message: str) -> McpError:
    return McpError(ErrorData(code=code, message=message))


def parse_document_uri(uri: str) -> tuple[str, str]:
    """Split ``erpnext://{doctype}/{name}`` into validated, decoded parts.

    The split happens on the first ``/`` after the scheme.  A URI with the
    wrong scheme, or with either segment missing, is rejected here with a
    message naming the expected shape.
    """
    if not uri.startswith(SCHEME):
        raise _protocol_error(INVALID_PARAMS, f"Invalid ERPNext resource URI: {uri}")

    doctype, separator, name = uri[len(SCHEME):].partition("/")
    if not separator or not doctype or not name:
        raise _protocol_error(
            INVALID_PARAMS,
            f"Invalid ERPNext resource URI: {uri} "
            f"(expected {DOCUMENT_URI_TEMPLATE} or {DOCTYPES_URI})",
        )

    try:
        return (
            validate_identifier(unquote(doctype), "doctype"),
            validate_identifier(unquote(name), "name"),
        )
    except ArgumentError as exc:
        raise _protocol_error(
            INVALID_PARAMS, f"Invalid ERPNext resource URI: {uri} ({exc})"
        ) from exc


async def read_resource(client: ERPNextClient, uri: str) -> str:
    """Return the JSON text of the resource at *uri*."""
    logger.debug("Handling ReadResourceRequest: %s", uri)

    if not client.is_authenticated():
        raise _protocol_error(INVALID_REQUEST, NOT_AUTHENTICATED)

    if uri.rstrip("/") == DOCTYPES_URI:
        return to_json({"doctypes": await client.get_all_doctypes()})

    doctype, name = parse_document_uri(uri)
    try:
        document = await client.get_document(doctype, name)
    except ERPNextError as exc:
        raise _protocol_error(INVALID_REQUEST, str(exc)) from exc
    return to_json(document)
