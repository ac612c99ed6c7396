"""Shared fixtures for the tools test sub-package.

Tools are exercised through ``call_tool`` so every test sees exactly what
an MCP client would: a CallToolResult with text content and ``isError``.
"""

from __future__ import annotations

from typing import Any

import pytest
from mcp.types import CallToolResult

import erpnext_mcp.app  # noqa: F401  (registers every tool module)
from erpnext_mcp.tools._base import call_tool


@pytest.fixture
def run_tool(mock_client):
    """Return a coroutine function calling a tool against ``mock_client``."""

    async def _run(name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        return await call_tool(mock_client, name, arguments)

    return _run
