"""Async HTTP client wrapper for the ERPNext / Frappe REST API.

Handles:
  - Base URL injection
  - ``Authorization: token <key>:<secret>`` header when credentials are set
  - URL-quoting of DocType and document names in paths
  - Error normalization into ERPNextError (see ``errors.describe_error``)
  - A degrade-not-fail DocType listing used for tool discovery
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from urllib.parse import quote

import httpx

from erpnext_mcp.errors import DocumentNotFoundError, ERPNextError, describe_error
from erpnext_mcp.models import DocTypeField, ERPNextDocument
from erpnext_mcp.settings import Settings

logger = logging.getLogger(__name__)

REPORT_METHOD = "/api/method/frappe.desk.query_report.run"
SEARCH_LINK_METHOD = "/api/method/frappe.desk.search.search_link"
DOCTYPE_LIST_LIMIT = 500

# Returned when neither DocType listing endpoint is reachable.
COMMON_DOCTYPES: tuple[str, ...] = (
    "Customer",
    "Supplier",
    "Item",
    "Sales Order",
    "Purchase Order",
    "Sales Invoice",
    "Purchase Invoice",
    "Employee",
    "Lead",
    "Opportunity",
    "Quotation",
    "Payment Entry",
    "Journal Entry",
    "Stock Entry",
)


def _resource_path(doctype: str, name: str | None = None) -> str:
    path = f"/api/resource/{quote(doctype, safe='')}"
    if name is not None:
        path += f"/{quote(name, safe='')}"
    return path


@contextmanager
def _upstream(operation: str) -> Iterator[None]:
    """Re-raise transport and payload failures as ERPNextError prefixed by *operation*."""
    try:
        yield
    except (httpx.HTTPError, ValueError) as exc:
        status_code = (
            exc.response.status_code if isinstance(exc, httpx.HTTPStatusError) else None
        )
        error_cls = DocumentNotFoundError if status_code == 404 else ERPNextError
        raise error_cls(
            f"{operation}: {describe_error(exc)}", status_code=status_code
        ) from exc


class ERPNextClient:
    """Thin async wrapper around httpx for the ERPNext API."""

    def __init__(self, settings: Settings) -> None:
        """Create a client bound to the site and credentials in *settings*."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._authenticated = settings.has_api_key_auth
        if self._authenticated:
            headers["Authorization"] = f"token {settings.api_key}:{settings.api_secret}"
            logger.info("Initialized with API key authentication")
        else:
            logger.warning(
                "No ERPNext API credentials configured; tool calls will be refused"
            )
        self._client = httpx.AsyncClient(
            base_url=settings.url,
            timeout=settings.timeout,
            headers=headers,
        )

    def is_authenticated(self) -> bool:
        """Return True when API credentials were supplied (no server handshake)."""
        return self._authenticated

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Execute a request and return the decoded JSON object body."""
        response = await self._client.request(method, path, **kwargs)
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError("Unexpected response from ERPNext: expected a JSON object")
        return body

    # ── Documents ───────────────────────────────────────────────────────────

    async def get_document(self, doctype: str, name: str) -> ERPNextDocument:
        """Fetch one document by DocType and name."""
        with _upstream(f"Failed to get {doctype} {name}"):
            body = await self._request("GET", _resource_path(doctype, name))
            return _document(body)

    async def get_doc_list(
        self,
        doctype: str,
        filters: dict[str, Any] | list[Any] | None = None,
        fields: list[str] | None = None,
        limit: int | None = None,
    ) -> list[ERPNextDocument]:
        """List documents of *doctype*; unset arguments are not sent at all."""
        params: dict[str, Any] = {}
        if fields:
            params["fields"] = json.dumps(fields)
        if filters:
            params["filters"] = json.dumps(filters)
        if limit:
            params["limit_page_length"] = limit

        with _upstream(f"Failed to get {doctype} list"):
            body = await self._request("GET", _resource_path(doctype), params=params)
            return _rows(_data(body))

    async def create_document(
        self, doctype: str, data: dict[str, Any]
    ) -> ERPNextDocument:
        """Insert a new document and return it with its server-assigned name."""
        with _upstream(f"Failed to create {doctype}"):
            body = await self._request(
                "POST", _resource_path(doctype), json={"data": data}
            )
            return _document(body)

    async def update_document(
        self, doctype: str, name: str, data: dict[str, Any]
    ) -> ERPNextDocument:
        """Apply a partial update to an existing document."""
        with _upstream(f"Failed to update {doctype} {name}"):
            body = await self._request(
                "PUT", _resource_path(doctype, name), json={"data": data}
            )
            return _document(body)

    # ── Reports ─────────────────────────────────────────────────────────────

    async def run_report(
        self, report_name: str, filters: dict[str, Any] | list[Any] | None = None
    ) -> Any:
        """Run a query/script report and return its raw result."""
        params: dict[str, Any] = {"report_name": report_name}
        if filters is not None:
            params["filters"] = json.dumps(filters)

        with _upstream(f"Failed to run report {report_name}"):
            body = await self._request("GET", REPORT_METHOD, params=params)
            return body.get("message")

    # ── Schema ──────────────────────────────────────────────────────────────

    async def get_all_doctypes(self) -> list[str]:
        """Return DocType names, degrading to a built-in list instead of failing.

        Tool discovery depends on this listing, so each strategy that fails
        is logged and the next one is tried.
        """
        strategies = (self._doctypes_from_resource, self._doctypes_from_search)
        for strategy in strategies:
            try:
                return await strategy()
            except (httpx.HTTPError, ValueError) as exc:
                logger.warning(
                    "DocType listing via %s failed: %s",
                    strategy.__name__,
                    describe_error(exc),
                )
        logger.warning("Using the built-in list of common DocTypes")
        return list(COMMON_DOCTYPES)

    async def _doctypes_from_resource(self) -> list[str]:
        body = await self._request(
            "GET",
            _resource_path("DocType"),
            params={
                "fields": json.dumps(["name"]),
                "limit_page_length": DOCTYPE_LIST_LIMIT,
            },
        )
        rows = _rows(body.get("data"))
        return [row["name"] for row in rows if isinstance(row, dict) and "name" in row]

    async def _doctypes_from_search(self) -> list[str]:
        body = await self._request(
            "GET",
            SEARCH_LINK_METHOD,
            params={"doctype": "DocType", "txt": "", "limit": DOCTYPE_LIST_LIMIT},
        )
        # Older Frappe versions answer under "results", newer ones under "message".
        rows = _rows(body["results"] if "results" in body else body.get("message"))
        return [
            row["value"] for row in rows if isinstance(row, dict) and "value" in row
        ]

    async def get_doctype_fields(self, doctype: str) -> list[DocTypeField]:
        """Return the field definitions of *doctype* ([] if the schema has none)."""
        with _upstream(f"Failed to get fields for {doctype}"):
            body = await self._request("GET", _resource_path("DocType", doctype))

        meta = body.get("data")
        fields = meta.get("fields") if isinstance(meta, dict) else None
        if not isinstance(fields, list):
            return []
        return [DocTypeField.from_meta(field) for field in fields if isinstance(field, dict)]

    # ── Lifecycle ───────────────────────────────────────────────────────────

    async def aclose(self) -> None:
        """Close the underlying HTTP client connection."""
        await self._client.aclose()

    async def __aenter__(self) -> ERPNextClient:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()


def _data(body: dict[str, Any]) -> Any:
    if "data" not in body:
        raise ValueError("Unexpected response from ERPNext: missing 'data'")
    return body["data"]


def _document(body: dict[str, Any]) -> ERPNextDocument:
    document = _data(body)
    if not isinstance(document, dict):
        raise ValueError("Unexpected response from ERPNext: 'data' is not an object")
    return document


def _rows(rows: Any) -> list[Any]:
    if not isinstance(rows, list):
        raise ValueError("Unexpected response from ERPNext: expected a list")
    return rows
