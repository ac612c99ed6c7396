"""MCP tool for running ERPNext query and script reports.

Endpoints covered:
  GET /api/method/frappe.desk.query_report.run -> run_report
"""

from __future__ import annotations

import logging
from typing import Any

from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.tools._base import to_json, tool
from erpnext_mcp.validation import validate_filters, validate_identifier

logger = logging.getLogger(__name__)


@tool(
    "run_report",
    description="Run an ERPNext report",
    input_schema={
        "type": "object",
        "properties": {
            "report_name": {
                "type": "string",
                "description": "Name of the report",
            },
            "filters": {
                "type": "object",
                "additionalProperties": True,
                "description": "Report filters (optional)",
            },
        },
        "required": ["report_name"],
    },
    error_prefix="Failed to run report",
)
async def run_report(client: ERPNextClient, arguments: dict[str, Any]) -> str:
    """Return the report's ``columns``/``result`` payload as JSON."""
    report_name = validate_identifier(arguments.get("report_name"), "report_name")
    filters = validate_filters(arguments.get("filters"), "filters")

    logger.debug("Running report: %s", report_name)
    return to_json(await client.run_report(report_name, filters))
