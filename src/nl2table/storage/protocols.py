"""
Record Store Protocol

Persistence for catalog dataset metadata, the append-only file preview
cache, and the audit trail. Uses typing.Protocol for duck-typed interface
definitions; any class implementing these methods qualifies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from src.nl2table.models import CatalogDataset, FilePreviewCacheEntry, utc_now


@dataclass(frozen=True)
class AuditEvent:
    """One audit trail record. ``data`` never carries credentials."""

    event_type: str
    data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)


@runtime_checkable
class RecordStore(Protocol):
    """
    Storage for catalog metadata, preview cache entries and audit events.

    Implementations must keep each append atomic. Concurrent appends for the
    same (ref, file_name) are allowed to produce duplicate cache entries.
    """

    async def upsert_dataset(self, dataset: CatalogDataset) -> CatalogDataset:
        """
        Insert or refresh a dataset record.

        The latest metadata wins; ``created_at`` of an existing record is
        preserved and ``last_seen_at`` is set to now. Returns the stored record.
        """
        ...

    async def get_dataset(self, ref: str) -> CatalogDataset | None:
        """Fetch a dataset record by ref."""
        ...

    async def mark_dataset_selected(self, ref: str) -> bool:
        """Flag a dataset as chosen by a user. Returns False if unknown."""
        ...

    async def append_preview(self, entry: FilePreviewCacheEntry) -> None:
        """Append a preview cache entry; existing entries are never modified."""
        ...

    async def latest_preview(self, ref: str, file_name: str) -> FilePreviewCacheEntry | None:
        """Most recent cache entry for (ref, file_name) by ``created_at``."""
        ...

    async def append_audit(self, event_type: str, data: dict[str, Any]) -> None:
        """Append an audit event."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        ...
