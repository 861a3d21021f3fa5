# receipt_export/models.py
"""Request models for receipt exports.

Amounts and dates stay loosely typed on purpose: the formatters decide how to
display whatever the client sent, and bad values degrade to zero / raw text
instead of rejecting the batch.
"""
from __future__ import annotations

import json
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALL_CATEGORIES = "all"


def as_text(value: Any) -> Optional[str]:
    """Render any JSON value as display text; only null stays missing."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, default=str, ensure_ascii=False)


class ReceiptRecord(BaseModel):
    """One receipt row as submitted by the client."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True, frozen=True)

    id: Optional[str] = None
    store_name: Optional[str] = None
    amount: Any = None
    receipt_date: Any = None
    category: Optional[str] = None
    description: Optional[str] = None
    image_id: Optional[str] = None

    @field_validator("id", "store_name", "category", "description", mode="before")
    @classmethod
    def text_fields_accept_any_json(cls, v):
        return as_text(v)

    @field_validator("image_id", mode="before")
    @classmethod
    def blank_image_id_is_none(cls, v):
        if v is None or v is False:
            return None
        text = as_text(v)
        return text if text.strip() else None


class ExportFilters(BaseModel):
    """Filters the client applied before sending records; rendered, never re-applied."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    search: Optional[str] = None
    category: Optional[str] = None

    @field_validator("search", "category", mode="before")
    @classmethod
    def text_fields_accept_any_json(cls, v):
        return as_text(v)

    def summary_parts(self) -> List[str]:
        parts = []
        if self.search:
            parts.append(f'Search: "{self.search}"')
        if self.category and self.category != ALL_CATEGORIES:
            parts.append(f"Category: {self.category}")
        return parts

    @property
    def is_active(self) -> bool:
        return bool(self.summary_parts())


class RequesterInfo(BaseModel):
    """Who asked for the export; only used as workbook metadata."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def text_fields_accept_any_json(cls, v):
        return as_text(v)


class ExportRequest(BaseModel):
    """Validated export request."""
    records: List[ReceiptRecord] = Field(..., min_length=1)
    filters: ExportFilters = Field(default_factory=ExportFilters)
    requester: RequesterInfo = Field(default_factory=RequesterInfo)
