"""Argument validation for tool and resource inputs.

DocType names, document names and report names are interpolated into
ERPNext URL paths, so identifiers are checked against a strict allow-list
before any request is built.  The remaining helpers only check shape.
"""

from __future__ import annotations

import re
from typing import Any

MAX_IDENTIFIER_LENGTH = 140
"""ERPNext's default maximum length for a document name."""

_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_\- ]+")


class ArgumentError(ValueError):
    """Raised when a tool or resource argument fails validation.

    ``reason`` is one of ``required``, ``empty``, ``too_long``,
    ``invalid_chars``, ``not_object``, ``not_positive_integer`` or
    ``not_array``.
    """

    def __init__(self, message: str, reason: str) -> None:
        super().__init__(message)
        self.reason = reason


def validate_identifier(value: Any, field_name: str) -> str:
    """Return *value* trimmed, or raise ArgumentError if it is not a safe identifier."""
    if value is None:
        raise ArgumentError(f"{field_name} is required", "required")

    text = str(value).strip()

    if not text:
        raise ArgumentError(f"{field_name} cannot be empty", "empty")

    if len(text) > MAX_IDENTIFIER_LENGTH:
        raise ArgumentError(
            f"{field_name} exceeds maximum length of "
            f"{MAX_IDENTIFIER_LENGTH} characters",
            "too_long",
        )

    if not _IDENTIFIER_RE.fullmatch(text):
        raise ArgumentError(
            f"{field_name} contains invalid characters. Only alphanumeric "
            "characters, spaces, hyphens, and underscores are allowed.",
            "invalid_chars",
        )

    return text


def validate_object(value: Any, field_name: str) -> dict[str, Any]:
    """Return *value* unchanged if it is a mapping."""
    if value is None:
        raise ArgumentError(f"{field_name} is required", "required")
    if not isinstance(value, dict):
        raise ArgumentError(f"{field_name} must be an object", "not_object")
    return value


def validate_positive_int(value: Any, field_name: str) -> int | None:
    """Coerce *value* to a strictly positive int; ``None`` passes through.

    Numeric strings (``"50"``) and whole floats (``5.0``) are accepted.
    """
    if value is None:
        return None

    error = ArgumentError(
        f"{field_name} must be a positive integer", "not_positive_integer"
    )

    if isinstance(value, bool):
        raise error
    if isinstance(value, str):
        try:
            number: int | float = int(value.strip())
        except ValueError:
            try:
                number = float(value)
            except ValueError:
                raise error from None
    elif isinstance(value, (int, float)):
        number = value
    else:
        raise error

    if isinstance(number, float):
        if not number.is_integer():
            raise error
        number = int(number)

    if number <= 0:
        raise error
    return number


def validate_string_array(value: Any, field_name: str) -> list[str] | None:
    """Return every element of *value* as a string; ``None`` passes through."""
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise ArgumentError(f"{field_name} must be an array", "not_array")
    return [str(item) for item in value]


def validate_filters(value: Any, field_name: str) -> dict[str, Any] | list[Any] | None:
    """Accept Frappe filters as a ``{field: value}`` mapping or a list of triples."""
    if value is None:
        return None
    if not isinstance(value, (dict, list)):
        raise ArgumentError(f"{field_name} must be an object", "not_object")
    return value
