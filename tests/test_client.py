"""Tests for erpnext_mcp.client.

HTTP calls are intercepted by replacing the internal ``_client`` attribute
with an ``httpx.AsyncClient`` backed by ``httpx.MockTransport``, so request
building and response handling run for real without network I/O.
"""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from erpnext_mcp.client import COMMON_DOCTYPES, ERPNextClient
from erpnext_mcp.errors import DocumentNotFoundError, ERPNextError
from erpnext_mcp.models import DocTypeField
from erpnext_mcp.settings import Settings

Handler = Callable[[httpx.Request], httpx.Response]

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_settings(**overrides: object) -> Settings:
    """Return a minimal Settings instance suitable for unit tests."""
    defaults: dict[str, object] = {
        "url": "https://erp.example.invalid",
        "api_key": "test-key",
        "api_secret": "test-secret",
    }
    defaults.update(overrides)
    return Settings.model_validate(defaults)


def _make_client(handler: Handler, **overrides: object) -> ERPNextClient:
    """Return an ERPNextClient whose HTTP traffic is answered by *handler*."""
    client = ERPNextClient(_make_settings(**overrides))
    client._client = httpx.AsyncClient(
        base_url=client._client.base_url,
        headers=client._client.headers,
        transport=httpx.MockTransport(handler),
    )
    return client


class _Recorder:
    """Handler that records requests and answers with canned responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responses.pop(0)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestClientConstruction:
    """Authentication header and base URL."""

    def test_token_header_with_credentials(self) -> None:
        client = ERPNextClient(_make_settings())
        assert client.is_authenticated() is True
        assert client._client.headers["Authorization"] == "token test-key:test-secret"
        assert str(client._client.base_url) == "https://erp.example.invalid"

    def test_no_header_without_credentials(self) -> None:
        client = ERPNextClient(_make_settings(api_key=None, api_secret=None))
        assert client.is_authenticated() is False
        assert "Authorization" not in client._client.headers

    async def test_async_context_manager_closes(self) -> None:
        async with ERPNextClient(_make_settings()) as client:
            inner = client._client
        assert inner.is_closed


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocuments:
    """get_document, get_doc_list, create_document and update_document."""

    async def test_get_document_quotes_path_segments(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"data": {"name": "SINV 1"}}))
        client = _make_client(recorder)

        document = await client.get_document("Sales Invoice", "SINV 1")

        assert document == {"name": "SINV 1"}
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.raw_path == b"/api/resource/Sales%20Invoice/SINV%201"

    async def test_get_document_404_raises_not_found(self) -> None:
        recorder = _Recorder(
            httpx.Response(404, json={"exc_type": "DoesNotExistError"})
        )
        client = _make_client(recorder)

        with pytest.raises(DocumentNotFoundError) as exc_info:
            await client.get_document("Customer", "NOPE")

        assert exc_info.value.status_code == 404
        assert str(exc_info.value) == (
            "Failed to get Customer NOPE: HTTP 404 Not Found - DoesNotExistError"
        )

    async def test_get_doc_list_encodes_parameters(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"data": [{"name": "C1"}]}))
        client = _make_client(recorder)

        rows = await client.get_doc_list(
            "Customer", {"customer_group": "Retail"}, ["name", "customer_name"], 20
        )

        assert rows == [{"name": "C1"}]
        params = recorder.requests[0].url.params
        assert json.loads(params["fields"]) == ["name", "customer_name"]
        assert json.loads(params["filters"]) == {"customer_group": "Retail"}
        assert params["limit_page_length"] == "20"

    async def test_get_doc_list_omits_unset_parameters(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"data": []}))
        client = _make_client(recorder)

        await client.get_doc_list("Customer")

        assert not recorder.requests[0].url.params

    async def test_create_document_wraps_data(self) -> None:
        recorder = _Recorder(
            httpx.Response(200, json={"data": {"name": "CUST-1", "customer_name": "Acme"}})
        )
        client = _make_client(recorder)

        created = await client.create_document("Customer", {"customer_name": "Acme"})

        assert created["name"] == "CUST-1"
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/api/resource/Customer"
        assert json.loads(request.content) == {"data": {"customer_name": "Acme"}}

    async def test_update_document_uses_put(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"data": {"name": "ITEM-1"}}))
        client = _make_client(recorder)

        await client.update_document("Item", "ITEM-1", {"item_name": "Widget"})

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/api/resource/Item/ITEM-1"
        assert json.loads(request.content) == {"data": {"item_name": "Widget"}}

    async def test_validation_error_message_is_normalized(self) -> None:
        server_messages = json.dumps([json.dumps({"message": "Item Name is mandatory"})])
        recorder = _Recorder(
            httpx.Response(417, json={"_server_messages": server_messages})
        )
        client = _make_client(recorder)

        with pytest.raises(ERPNextError) as exc_info:
            await client.create_document("Item", {})

        assert not isinstance(exc_info.value, DocumentNotFoundError)
        assert str(exc_info.value) == (
            "Failed to create Item: HTTP 417 Expectation Failed - Item Name is mandatory"
        )

    async def test_response_without_data_is_an_error(self) -> None:
        client = _make_client(_Recorder(httpx.Response(200, json={"message": "ok"})))

        with pytest.raises(ERPNextError, match="missing 'data'"):
            await client.get_document("Customer", "C1")

    @pytest.mark.parametrize("data", [["CUST-1"], "CUST-1", None])
    async def test_document_that_is_not_an_object_is_an_error(self, data) -> None:
        client = _make_client(_Recorder(httpx.Response(200, json={"data": data})))

        with pytest.raises(ERPNextError, match="'data' is not an object"):
            await client.create_document("Customer", {"customer_name": "Acme"})

    async def test_list_that_is_not_an_array_is_an_error(self) -> None:
        client = _make_client(_Recorder(httpx.Response(200, json={"data": {"name": "C1"}})))

        with pytest.raises(ERPNextError, match="expected a list"):
            await client.get_doc_list("Customer")

    async def test_transport_failure_is_an_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        client = _make_client(refuse)

        with pytest.raises(ERPNextError) as exc_info:
            await client.get_doc_list("Customer")

        assert str(exc_info.value) == "Failed to get Customer list: Connection refused"
        assert exc_info.value.status_code is None


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class TestRunReport:
    async def test_returns_message(self) -> None:
        payload = {"columns": ["Item"], "result": [["Widget"]]}
        recorder = _Recorder(httpx.Response(200, json={"message": payload}))
        client = _make_client(recorder)

        result = await client.run_report("Stock Balance", {"company": "Acme"})

        assert result == payload
        request = recorder.requests[0]
        assert request.url.path == "/api/method/frappe.desk.query_report.run"
        assert request.url.params["report_name"] == "Stock Balance"
        assert json.loads(request.url.params["filters"]) == {"company": "Acme"}

    async def test_filters_omitted_when_none(self) -> None:
        recorder = _Recorder(httpx.Response(200, json={"message": {}}))
        client = _make_client(recorder)

        await client.run_report("Stock Balance")

        assert "filters" not in recorder.requests[0].url.params


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class TestDocTypeListing:
    """get_all_doctypes degrades through its strategies instead of failing."""

    async def test_primary_listing(self) -> None:
        recorder = _Recorder(
            httpx.Response(200, json={"data": [{"name": "Customer"}, {"name": "Item"}]})
        )
        client = _make_client(recorder)

        assert await client.get_all_doctypes() == ["Customer", "Item"]
        assert recorder.requests[0].url.path == "/api/resource/DocType"
        assert recorder.requests[0].url.params["limit_page_length"] == "500"

    async def test_falls_back_to_search_link(self) -> None:
        recorder = _Recorder(
            httpx.Response(403, json={"message": "Not permitted"}),
            httpx.Response(200, json={"message": [{"value": "Customer"}, {"value": "Lead"}]}),
        )
        client = _make_client(recorder)

        assert await client.get_all_doctypes() == ["Customer", "Lead"]
        assert recorder.requests[1].url.path == (
            "/api/method/frappe.desk.search.search_link"
        )

    async def test_search_link_results_key(self) -> None:
        recorder = _Recorder(
            httpx.Response(500),
            httpx.Response(200, json={"results": [{"value": "Item"}]}),
        )
        client = _make_client(recorder)

        assert await client.get_all_doctypes() == ["Item"]

    async def test_falls_back_to_common_doctypes(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        recorder = _Recorder(httpx.Response(500), httpx.Response(403))
        client = _make_client(recorder)

        with caplog.at_level("WARNING", logger="erpnext_mcp.client"):
            doctypes = await client.get_all_doctypes()

        assert doctypes == list(COMMON_DOCTYPES)
        assert "Customer" in doctypes
        assert any("common DocTypes" in record.message for record in caplog.records)


    async def test_malformed_payloads_fall_back_to_common_doctypes(self) -> None:
        """Listings that are not arrays move on to the next tier."""
        recorder = _Recorder(
            httpx.Response(200, json={"data": 5}),
            httpx.Response(200, json={"message": 7}),
        )
        client = _make_client(recorder)

        assert await client.get_all_doctypes() == list(COMMON_DOCTYPES)
        assert len(recorder.requests) == 2

    async def test_empty_search_results_are_kept(self) -> None:
        recorder = _Recorder(
            httpx.Response(403),
            httpx.Response(200, json={"results": []}),
        )
        client = _make_client(recorder)

        assert await client.get_all_doctypes() == []


class TestDocTypeFields:
    async def test_projects_fields(self) -> None:
        recorder = _Recorder(
            httpx.Response(
                200,
                json={
                    "data": {
                        "name": "Customer",
                        "fields": [
                            {
                                "fieldname": "customer_name",
                                "fieldtype": "Data",
                                "label": "Customer Name",
                                "reqd": 1,
                                "options": "",
                                "idx": 1,
                            },
                            {"fieldname": "territory", "fieldtype": "Link", "options": "Territory"},
                        ],
                    }
                },
            )
        )
        client = _make_client(recorder)

        fields = await client.get_doctype_fields("Customer")

        assert fields == [
            DocTypeField(
                fieldname="customer_name", fieldtype="Data", label="Customer Name", reqd=1
            ),
            DocTypeField(fieldname="territory", fieldtype="Link", options="Territory"),
        ]
        assert recorder.requests[0].url.path == "/api/resource/DocType/Customer"

    async def test_missing_fields_returns_empty_list(self) -> None:
        client = _make_client(_Recorder(httpx.Response(200, json={"data": {"name": "X"}})))
        assert await client.get_doctype_fields("X") == []

    async def test_unknown_doctype_raises(self) -> None:
        client = _make_client(_Recorder(httpx.Response(404)))
        with pytest.raises(DocumentNotFoundError, match="Failed to get fields for Nope"):
            await client.get_doctype_fields("Nope")
