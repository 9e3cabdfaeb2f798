"""
PostgreSQL Record Store

Implements RecordStore with asyncpg. Tables are created on first connect;
the preview cache table is insert-only.
"""

from __future__ import annotations

import json
import logging
from datetime import timezone
from typing import Any

import asyncpg

from src.nl2table.models import CatalogDataset, FilePreviewCacheEntry

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS catalog_datasets (
    ref TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    description TEXT NOT NULL DEFAULT '',
    files TEXT[] NOT NULL DEFAULT '{}',
    column_hints TEXT[] NOT NULL DEFAULT '{}',
    user_selected BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    last_seen_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS file_preview_cache (
    id BIGSERIAL PRIMARY KEY,
    ref TEXT NOT NULL,
    file_name TEXT NOT NULL,
    content_hash CHAR(64) NOT NULL,
    preview_rows JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS idx_file_preview_cache_key
    ON file_preview_cache (ref, file_name, created_at DESC);

CREATE TABLE IF NOT EXISTS audit_events (
    id BIGSERIAL PRIMARY KEY,
    event_type TEXT NOT NULL,
    data JSONB NOT NULL DEFAULT '{}',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


async def create_pool(
    postgres_url: str,
    min_size: int = 1,
    max_size: int = 5,
) -> asyncpg.Pool:
    """
    Create a connection pool and make sure the tables exist.

    Args:
        postgres_url: PostgreSQL connection URL
        min_size: Minimum pool connections
        max_size: Maximum pool connections

    Returns:
        asyncpg connection pool
    """
    pool = await asyncpg.create_pool(
        postgres_url,
        min_size=min_size,
        max_size=max_size,
        command_timeout=60,
    )
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
    return pool


class PostgresRecordStore:
    """PostgreSQL implementation of RecordStore."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize store with connection pool.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    @classmethod
    async def connect(
        cls,
        postgres_url: str,
        min_size: int = 1,
        max_size: int = 5,
    ) -> PostgresRecordStore:
        """Create a pool for ``postgres_url`` and wrap it."""
        return cls(await create_pool(postgres_url, min_size=min_size, max_size=max_size))

    async def upsert_dataset(self, dataset: CatalogDataset) -> CatalogDataset:
        row = await self.pool.fetchrow(
            """
            INSERT INTO catalog_datasets (
                ref, title, description, files, column_hints, user_selected
            ) VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (ref) DO UPDATE SET
                title = EXCLUDED.title,
                description = EXCLUDED.description,
                files = EXCLUDED.files,
                column_hints = EXCLUDED.column_hints,
                user_selected = catalog_datasets.user_selected OR EXCLUDED.user_selected,
                last_seen_at = now()
            RETURNING *
            """,
            dataset.ref,
            dataset.title,
            dataset.description,
            list(dataset.files),
            list(dataset.column_hints),
            dataset.user_selected,
        )
        return self._row_to_dataset(row)

    async def get_dataset(self, ref: str) -> CatalogDataset | None:
        row = await self.pool.fetchrow("SELECT * FROM catalog_datasets WHERE ref = $1", ref)
        return self._row_to_dataset(row) if row else None

    async def mark_dataset_selected(self, ref: str) -> bool:
        result = await self.pool.execute(
            "UPDATE catalog_datasets SET user_selected = TRUE WHERE ref = $1",
            ref,
        )
        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return result.split()[-1] != "0"

    async def append_preview(self, entry: FilePreviewCacheEntry) -> None:
        await self.pool.execute(
            """
            INSERT INTO file_preview_cache (
                ref, file_name, content_hash, preview_rows, created_at
            ) VALUES ($1, $2, $3, $4::jsonb, $5)
            """,
            entry.ref,
            entry.file_name,
            entry.content_hash,
            json.dumps([dict(row) for row in entry.preview_rows]),
            entry.created_at,
        )

    async def latest_preview(self, ref: str, file_name: str) -> FilePreviewCacheEntry | None:
        row = await self.pool.fetchrow(
            """
            SELECT * FROM file_preview_cache
            WHERE ref = $1 AND file_name = $2
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """,
            ref,
            file_name,
        )
        if row is None:
            return None

        created_at = row["created_at"]
        if created_at and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        rows = row["preview_rows"]
        if isinstance(rows, str):
            rows = json.loads(rows)

        return FilePreviewCacheEntry(
            ref=row["ref"],
            file_name=row["file_name"],
            content_hash=row["content_hash"],
            preview_rows=tuple({str(k): str(v) for k, v in r.items()} for r in rows),
            created_at=created_at,
        )

    async def append_audit(self, event_type: str, data: dict[str, Any]) -> None:
        await self.pool.execute(
            "INSERT INTO audit_events (event_type, data) VALUES ($1, $2::jsonb)",
            event_type,
            json.dumps(data, default=str),
        )

    async def close(self) -> None:
        await self.pool.close()

    def _row_to_dataset(self, row: asyncpg.Record) -> CatalogDataset:
        """Convert database row to CatalogDataset."""
        created_at = row["created_at"]
        if created_at and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        last_seen_at = row["last_seen_at"]
        if last_seen_at and last_seen_at.tzinfo is None:
            last_seen_at = last_seen_at.replace(tzinfo=timezone.utc)

        return CatalogDataset(
            ref=row["ref"],
            title=row["title"],
            description=row["description"],
            files=tuple(row["files"] or ()),
            column_hints=tuple(row["column_hints"] or ()),
            created_at=created_at,
            last_seen_at=last_seen_at,
            user_selected=row["user_selected"],
        )
