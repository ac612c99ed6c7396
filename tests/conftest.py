"""Shared pytest fixtures for the erpnext-mcp test suite."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

import erpnext_mcp.settings as settings_module
from erpnext_mcp.client import ERPNextClient
from erpnext_mcp.settings import Settings


def make_isolated_settings(**overrides: object) -> Settings:
    """Return a Settings instance isolated from .env and env vars.

    ``model_validate`` skips the environment sources, so only the values
    given here (and the field defaults) are used.
    """
    defaults: dict[str, object] = {
        "url": "https://erp.example.invalid",
        "api_key": "test-key",
        "api_secret": "test-secret",
    }
    defaults.update(overrides)
    return Settings.model_validate(defaults)


@pytest.fixture(autouse=True)
def reset_globals() -> None:
    """Reset the cached settings before and after every test."""
    settings_module._settings = None
    yield
    settings_module._settings = None


@pytest.fixture
def mock_settings() -> Settings:
    """Return a Settings instance with safe, test-only values."""
    return make_isolated_settings()


@pytest.fixture
def mock_client() -> MagicMock:
    """Return a MagicMock of ERPNextClient with async API methods.

    The mock reports itself as authenticated; tests of the unauthenticated
    paths flip ``is_authenticated.return_value``.
    """
    client = MagicMock(spec=ERPNextClient)
    client.is_authenticated.return_value = True
    client.get_document = AsyncMock(return_value={})
    client.get_doc_list = AsyncMock(return_value=[])
    client.create_document = AsyncMock(return_value={})
    client.update_document = AsyncMock(return_value={})
    client.run_report = AsyncMock(return_value={})
    client.get_all_doctypes = AsyncMock(return_value=[])
    client.get_doctype_fields = AsyncMock(return_value=[])
    return client
