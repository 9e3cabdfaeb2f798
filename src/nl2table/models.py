"""
nl2table Data Models

Request, analysis, catalog and result types shared by the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

# Hard cap on rows returned, cached, or generated for a single request
MAX_PREVIEW_ROWS = 20

RetrievedRow = dict[str, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SourcePreference(str, Enum):
    """Where the caller would like data to come from."""

    AUTO = "auto"
    CATALOG = "catalog"
    WEB = "web"
    SYNTHETIC = "synthetic"

    @classmethod
    def _missing_(cls, value: object) -> SourcePreference | None:
        if isinstance(value, str):
            lowered = value.strip().lower()
            # Older clients send the catalog's vendor name
            if lowered == "kaggle":
                return cls.CATALOG
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class EntityType(str, Enum):
    """Kind of entity the requested rows describe."""

    MOVIES = "movies"
    COMPANIES = "companies"
    PEOPLE = "people"
    PRODUCTS = "products"
    SPORTS = "sports"
    GENERAL = "general"


class Strategy(str, Enum):
    """Retrieval strategy suggested by request analysis."""

    CATALOG = "catalog"
    WEB = "web"
    SYNTHETIC = "synthetic"
    HYBRID = "hybrid"

    @classmethod
    def _missing_(cls, value: object) -> Strategy | None:
        if isinstance(value, str) and value.lower() == "kaggle":
            return cls.CATALOG
        return None


class SourceUsed(str, Enum):
    """Stage that produced the rows of a result."""

    CATALOG = "catalog"
    FIXTURE = "fixture"
    SYNTHETIC = "synthetic"


class RetrievalStage(str, Enum):
    """States of one retrieval run."""

    ANALYZING = "analyzing"
    CATALOG_SEARCH = "catalog_search"
    CATALOG_DOWNLOAD = "catalog_download"
    FIXTURE_LOOKUP = "fixture_lookup"
    SYNTHETIC_GENERATION = "synthetic_generation"
    DONE = "done"


@dataclass(frozen=True)
class ProviderCredential:
    """
    Per-call LLM backend selection supplied by the caller.

    Never persisted and never logged; ``api_key`` is excluded from repr.
    """

    provider_id: str | None = None
    model: str | None = None
    api_key: str | None = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ProviderCredential | None:
        """Build from a request payload; returns None when nothing was given."""
        if not data:
            return None
        credential = cls(
            provider_id=(data.get("provider_id") or data.get("provider") or None),
            model=data.get("model") or None,
            api_key=data.get("api_key") or None,
        )
        if credential.provider_id is None and credential.model is None and credential.api_key is None:
            return None
        return credential


@dataclass(frozen=True)
class RetrievalRequest:
    """A caller's free-text request for tabular data."""

    prompt: str
    source_preference: SourcePreference = SourcePreference.AUTO
    credential: ProviderCredential | None = None


@dataclass(frozen=True)
class RequestAnalysis:
    """
    Structured intent extracted from a request.

    ``columns`` is unique and ordered as the columns should be displayed.
    """

    entity_type: EntityType
    columns: tuple[str, ...]
    estimated_row_count: int
    strategy: Strategy
    search_terms: tuple[str, ...] = ()
    rationale: str = ""

    @property
    def target_row_count(self) -> int:
        """Rows to deliver: the estimate, capped at MAX_PREVIEW_ROWS."""
        return min(self.estimated_row_count, MAX_PREVIEW_ROWS)


@dataclass(frozen=True)
class CatalogDataset:
    """
    A dataset discovered in the external catalog.

    ``created_at`` is set when the dataset is first seen and preserved by
    later upserts; everything else reflects the most recent sighting.
    """

    ref: str
    title: str = ""
    description: str = ""
    files: tuple[str, ...] = ()
    column_hints: tuple[str, ...] = ()
    created_at: datetime | None = None
    last_seen_at: datetime | None = None
    user_selected: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "title": self.title,
            "description": self.description,
            "files": list(self.files),
            "columns": list(self.column_hints),
        }


@dataclass(frozen=True)
class FilePreviewCacheEntry:
    """An immutable, append-only preview cache record for (ref, file_name)."""

    ref: str
    file_name: str
    content_hash: str
    preview_rows: tuple[RetrievedRow, ...]
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class FilePreview:
    """Preview rows of a catalog file and whether they came from cache."""

    rows: tuple[RetrievedRow, ...]
    cached: bool

    @property
    def columns(self) -> tuple[str, ...]:
        """Header of the previewed file (keys of the first row)."""
        return tuple(self.rows[0].keys()) if self.rows else ()


@dataclass(frozen=True)
class RetrievalResult:
    """Normalized rows and the stage that produced them."""

    rows: tuple[RetrievedRow, ...]
    source_used: SourceUsed
    is_truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows": [dict(row) for row in self.rows],
            "source_used": self.source_used.value,
            "is_truncated": self.is_truncated,
        }


@dataclass(frozen=True)
class Provenance:
    """Where a result came from and what it contains."""

    source: SourceUsed
    record_count: int
    columns: tuple[str, ...]
    entity_type: EntityType
    rationale: str
    is_truncated: bool
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "record_count": self.record_count,
            "columns": list(self.columns),
            "entity_type": self.entity_type.value,
            "rationale": self.rationale,
            "is_truncated": self.is_truncated,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ErrorPayload:
    """Structured error returned instead of raising across the service boundary."""

    kind: str
    message: str

    @classmethod
    def from_exception(cls, error: BaseException, prefix: str = "") -> ErrorPayload:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        return cls(kind=type(error).__name__, message=f"{prefix}{message}")

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True)
class GenerateDataResponse:
    """
    Outcome of a data generation request.

    Exactly one of (result, provenance) or error is populated. A result with
    zero rows is still a success.
    """

    result: RetrievalResult | None = None
    provenance: Provenance | None = None
    error: ErrorPayload | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"error": self.error.to_dict()}
        if self.result is None or self.provenance is None:
            raise ValueError("GenerateDataResponse has neither a result nor an error")
        return {"result": self.result.to_dict(), "provenance": self.provenance.to_dict()}


@dataclass(frozen=True)
class CellEdit:
    """A single-cell write at a zero-based address."""

    cell_row: str
    cell_column: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"cell_row": self.cell_row, "cell_column": self.cell_column, "value": self.value}


@dataclass(frozen=True)
class CellCommandResponse:
    """Outcome of a natural-language cell command."""

    edit: CellEdit | None = None
    error: ErrorPayload | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"error": self.error.to_dict()}
        if self.edit is None:
            raise ValueError("CellCommandResponse has neither an edit nor an error")
        return self.edit.to_dict()
