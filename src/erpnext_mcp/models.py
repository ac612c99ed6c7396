"""Data shapes returned by the ERPNext client."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

ERPNextDocument = dict[str, Any]
"""An ERPNext record: arbitrary fields, always including ``name``."""


class DocTypeField(BaseModel):
    """Metadata for one field of a DocType schema."""

    fieldname: str | None = None
    fieldtype: str | None = None
    label: str | None = None
    reqd: int = Field(default=0, description="1 when the field is mandatory.")
    options: str | None = None
    description: str | None = None

    @classmethod
    def from_meta(cls, field: dict[str, Any]) -> DocTypeField:
        """Project a raw ``DocField`` row, defaulting falsy extras."""
        return cls(
            fieldname=field.get("fieldname"),
            fieldtype=field.get("fieldtype"),
            label=field.get("label"),
            reqd=field.get("reqd") or 0,
            options=field.get("options") or None,
            description=field.get("description") or None,
        )
