"""
Structured output schemas for request analysis.

Field names are camelCase to match what the models are asked to return.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from src.nl2table.models import EntityType, Strategy


def clean_columns(values: list[str]) -> list[str]:
    """Strip names, drop blanks, keep the first occurrence of each."""
    seen: list[str] = []
    for value in values:
        name = str(value).strip()
        if name and name not in seen:
            seen.append(name)
    return seen


class AnalysisSchema(BaseModel):
    """What a request for tabular data is asking for."""

    entityType: EntityType = Field(description="Kind of entity each row describes")
    columns: list[str] = Field(description="Column names in display order")
    estimatedRows: int = Field(ge=0, description="How many rows the user wants")
    searchStrategy: Strategy = Field(description="Where the data should come from")
    searchTerms: list[str] = Field(default_factory=list, description="Dataset search keywords")
    reasoning: str = Field(default="", description="Short justification")

    @field_validator("entityType", mode="before")
    @classmethod
    def _normalize_entity(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().lower()
            if value not in {e.value for e in EntityType}:
                return EntityType.GENERAL
        return value

    @field_validator("searchStrategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip().lower()
            if value == "kaggle":
                return Strategy.CATALOG
        return value

    @field_validator("columns")
    @classmethod
    def _unique_columns(cls, value: list[str]) -> list[str]:
        cleaned = clean_columns(value)
        if not cleaned:
            raise ValueError("at least one column is required")
        return cleaned

    @field_validator("searchTerms")
    @classmethod
    def _strip_terms(cls, value: list[str]) -> list[str]:
        return [t.strip() for t in value if t and t.strip()]
