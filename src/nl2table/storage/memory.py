"""
In-Memory Record Store

Keeps datasets, preview cache entries and audit events in process memory.
Used for unit tests and for running without PostgreSQL; nothing survives
a restart.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import replace
from typing import Any

from src.nl2table.models import CatalogDataset, FilePreviewCacheEntry, utc_now
from src.nl2table.storage.protocols import AuditEvent

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """
    In-memory implementation of RecordStore.

    The preview cache maps (ref, file_name) to the list of every entry ever
    appended; lookups take the newest by ``created_at``.
    """

    def __init__(self):
        self._datasets: dict[str, CatalogDataset] = {}
        self._previews: dict[tuple[str, str], list[FilePreviewCacheEntry]] = defaultdict(list)
        self._audit: list[AuditEvent] = []
        self._lock = asyncio.Lock()

    async def upsert_dataset(self, dataset: CatalogDataset) -> CatalogDataset:
        now = utc_now()
        async with self._lock:
            existing = self._datasets.get(dataset.ref)
            stored = replace(
                dataset,
                created_at=existing.created_at if existing else (dataset.created_at or now),
                last_seen_at=now,
                user_selected=(existing.user_selected if existing else False)
                or dataset.user_selected,
            )
            self._datasets[dataset.ref] = stored
        return stored

    async def get_dataset(self, ref: str) -> CatalogDataset | None:
        return self._datasets.get(ref)

    async def mark_dataset_selected(self, ref: str) -> bool:
        async with self._lock:
            existing = self._datasets.get(ref)
            if existing is None:
                return False
            self._datasets[ref] = replace(existing, user_selected=True)
        return True

    async def append_preview(self, entry: FilePreviewCacheEntry) -> None:
        async with self._lock:
            self._previews[(entry.ref, entry.file_name)].append(entry)

    async def latest_preview(self, ref: str, file_name: str) -> FilePreviewCacheEntry | None:
        entries = self._previews.get((ref, file_name))
        if not entries:
            return None
        return max(entries, key=lambda e: e.created_at)

    async def append_audit(self, event_type: str, data: dict[str, Any]) -> None:
        async with self._lock:
            self._audit.append(AuditEvent(event_type=event_type, data=dict(data)))

    async def close(self) -> None:
        pass

    # Inspection helpers for tests

    def preview_entries(self, ref: str, file_name: str) -> list[FilePreviewCacheEntry]:
        """Every cache entry appended for (ref, file_name), oldest first."""
        return list(self._previews.get((ref, file_name), []))

    @property
    def audit_events(self) -> list[AuditEvent]:
        return list(self._audit)

    def clear(self) -> None:
        """Clear all stored records."""
        self._datasets.clear()
        self._previews.clear()
        self._audit.clear()
