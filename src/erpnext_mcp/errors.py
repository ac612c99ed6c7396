"""Error types and upstream error-message normalization.

Frappe reports failures in several incompatible shapes:

  - ``_server_messages``: a JSON array of JSON-encoded ``{"message": ...}``
    objects (validation errors raised with ``frappe.throw``)
  - ``message``: a plain string or JSON value
  - ``exception``: a full Python traceback whose last line is the error
  - ``exc``: a serialized traceback
  - ``exc_type``: only the exception class name

``describe_error`` turns any of them, or a transport failure with no
response at all, into one line of text an agent can act on.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

_TRACE_LIMIT = 500


class ERPNextError(Exception):
    """Raised when a call to the ERPNext API fails.

    The message is already normalized and prefixed with the operation that
    failed, e.g. ``"Failed to get Customer CUST-0001: HTTP 403 Forbidden"``.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DocumentNotFoundError(ERPNextError):
    """Raised when ERPNext answers 404 for a document or DocType."""


def describe_error(error: BaseException) -> str:
    """Return a single display string for an exception raised by a remote call."""
    fallback = _generic_message(error)
    response = getattr(error, "response", None)
    if not isinstance(response, httpx.Response):
        return fallback or "Unknown error"

    status_line = f"HTTP {response.status_code}"
    if response.reason_phrase:
        status_line += f" {response.reason_phrase}"
    parts = [status_line]

    detail = _body_detail(_json_body(response))
    if detail:
        parts.append(detail)

    if len(parts) == 1 and fallback:
        parts.append(fallback)

    return " - ".join(parts)


def _generic_message(error: BaseException) -> str:
    # httpx appends a documentation link on a second line.
    text = str(error).strip()
    return text.splitlines()[0] if text else ""


def _json_body(response: httpx.Response) -> dict[str, Any] | None:
    try:
        body = response.json()
    except (ValueError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _body_detail(body: dict[str, Any] | None) -> str | None:
    if not body:
        return None

    if body.get("_server_messages"):
        return _server_messages(body["_server_messages"])

    if body.get("message") is not None:
        return _stringify(body["message"])

    if body.get("exception"):
        return _last_trace_line(str(body["exception"]))

    if body.get("exc"):
        return str(body["exc"])[:_TRACE_LIMIT]

    if body.get("exc_type"):
        return str(body["exc_type"])

    return None


def _server_messages(raw: Any) -> str:
    """Join the ``message`` of every entry in a ``_server_messages`` payload."""
    try:
        entries = json.loads(raw) if isinstance(raw, str) else raw
        messages = []
        for entry in entries:
            item = json.loads(entry) if isinstance(entry, str) else entry
            if isinstance(item, dict) and item.get("message") is not None:
                messages.append(_stringify(item["message"]))
    except (TypeError, ValueError):
        return _stringify(raw)
    return "; ".join(messages) if messages else _stringify(raw)


def _last_trace_line(trace: str) -> str:
    lines = [line for line in trace.splitlines() if line.strip()]
    if lines:
        last = lines[-1]
        if not last.startswith("Traceback") and not last[0].isspace():
            return last
    return trace[:_TRACE_LIMIT]


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)
