"""Structured output schema for generated or transformed rows."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RowsSchema(BaseModel):
    """
    ``{"data": [...]}`` wrapper around a list of row objects.

    Elements are left untyped so malformed rows can be dropped one by one
    instead of failing the whole response.
    """

    data: list[Any] = Field(description="One object per row, keyed by column name")
