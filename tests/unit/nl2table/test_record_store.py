"""
Tests for the record stores.

InMemoryRecordStore is exercised directly; PostgresRecordStore runs against
a mocked asyncpg pool so no database is needed.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.nl2table.config import NL2TableConfig
from src.nl2table.models import CatalogDataset, FilePreviewCacheEntry
from src.nl2table.storage import InMemoryRecordStore, RecordStore, create_record_store
from src.nl2table.storage.postgres import PostgresRecordStore


def _entry(content_hash: str, created_at: datetime, value: str = "1") -> FilePreviewCacheEntry:
    return FilePreviewCacheEntry(
        ref="owner/movies",
        file_name="movies.csv",
        content_hash=content_hash,
        preview_rows=({"id": value},),
        created_at=created_at,
    )


class TestInMemoryRecordStore:
    """Tests for InMemoryRecordStore."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryRecordStore(), RecordStore)

    @pytest.mark.asyncio
    async def test_upsert_preserves_created_at(self) -> None:
        store = InMemoryRecordStore()

        first = await store.upsert_dataset(CatalogDataset(ref="a/b", title="Old"))
        second = await store.upsert_dataset(CatalogDataset(ref="a/b", title="New", files=("x.csv",)))

        assert second.created_at == first.created_at
        assert second.last_seen_at >= first.last_seen_at
        stored = await store.get_dataset("a/b")
        assert stored.title == "New"
        assert stored.files == ("x.csv",)

    @pytest.mark.asyncio
    async def test_selection_survives_upsert(self) -> None:
        store = InMemoryRecordStore()
        await store.upsert_dataset(CatalogDataset(ref="a/b"))

        assert await store.mark_dataset_selected("a/b") is True
        await store.upsert_dataset(CatalogDataset(ref="a/b", title="refreshed"))

        assert (await store.get_dataset("a/b")).user_selected is True

    @pytest.mark.asyncio
    async def test_mark_unknown_dataset(self) -> None:
        assert await InMemoryRecordStore().mark_dataset_selected("missing/ref") is False

    @pytest.mark.asyncio
    async def test_preview_cache_is_append_only(self) -> None:
        """Appending never replaces; lookups return the newest entry."""
        store = InMemoryRecordStore()
        now = datetime.now(timezone.utc)
        older = _entry("a" * 64, now - timedelta(minutes=5), value="old")
        newer = _entry("b" * 64, now, value="new")

        await store.append_preview(newer)
        await store.append_preview(older)

        latest = await store.latest_preview("owner/movies", "movies.csv")
        assert latest == newer
        assert store.preview_entries("owner/movies", "movies.csv") == [newer, older]

    @pytest.mark.asyncio
    async def test_preview_miss(self) -> None:
        assert await InMemoryRecordStore().latest_preview("owner/movies", "other.csv") is None

    @pytest.mark.asyncio
    async def test_audit_events_are_copied(self) -> None:
        store = InMemoryRecordStore()
        data = {"ref": "a/b"}

        await store.append_audit("dataset_selected", data)
        data["ref"] = "changed"

        events = store.audit_events
        assert len(events) == 1
        assert events[0].event_type == "dataset_selected"
        assert events[0].data == {"ref": "a/b"}

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        store = InMemoryRecordStore()
        await store.upsert_dataset(CatalogDataset(ref="a/b"))
        await store.append_audit("x", {})

        store.clear()

        assert await store.get_dataset("a/b") is None
        assert store.audit_events == []


class TestCreateRecordStore:
    """Tests for create_record_store."""

    @pytest.mark.asyncio
    async def test_memory_by_default(self) -> None:
        store = await create_record_store(NL2TableConfig(_env_file=None))
        assert isinstance(store, InMemoryRecordStore)


def _pool() -> MagicMock:
    pool = MagicMock()
    pool.fetchrow = AsyncMock()
    pool.execute = AsyncMock()
    pool.close = AsyncMock()
    return pool


class TestPostgresRecordStore:
    """Tests for PostgresRecordStore against a mocked pool."""

    @pytest.mark.asyncio
    async def test_upsert_maps_returned_row(self) -> None:
        pool = _pool()
        naive = datetime(2024, 1, 2, 3, 4, 5)
        pool.fetchrow.return_value = {
            "ref": "a/b",
            "title": "T",
            "description": "D",
            "files": ["x.csv"],
            "column_hints": None,
            "user_selected": False,
            "created_at": naive,
            "last_seen_at": naive,
        }
        store = PostgresRecordStore(pool)

        stored = await store.upsert_dataset(CatalogDataset(ref="a/b", title="T", files=("x.csv",)))

        sql, *params = pool.fetchrow.call_args.args
        assert "ON CONFLICT (ref) DO UPDATE" in sql
        assert params[0] == "a/b"
        assert params[3] == ["x.csv"]
        assert stored.files == ("x.csv",)
        assert stored.column_hints == ()
        assert stored.created_at.tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_mark_selected_reads_command_tag(self) -> None:
        pool = _pool()
        store = PostgresRecordStore(pool)

        pool.execute.return_value = "UPDATE 1"
        assert await store.mark_dataset_selected("a/b") is True
        pool.execute.return_value = "UPDATE 0"
        assert await store.mark_dataset_selected("a/b") is False

    @pytest.mark.asyncio
    async def test_append_preview_is_insert_only(self) -> None:
        pool = _pool()
        store = PostgresRecordStore(pool)
        entry = _entry("c" * 64, datetime.now(timezone.utc))

        await store.append_preview(entry)

        sql, *params = pool.execute.call_args.args
        assert sql.strip().startswith("INSERT INTO file_preview_cache")
        assert "UPDATE" not in sql
        assert json.loads(params[3]) == [{"id": "1"}]

    @pytest.mark.asyncio
    async def test_latest_preview_decodes_json_text(self) -> None:
        pool = _pool()
        created = datetime(2024, 5, 1, tzinfo=timezone.utc)
        pool.fetchrow.return_value = {
            "ref": "owner/movies",
            "file_name": "movies.csv",
            "content_hash": "d" * 64,
            "preview_rows": json.dumps([{"id": 7, "title": "Heat"}]),
            "created_at": created,
        }
        store = PostgresRecordStore(pool)

        entry = await store.latest_preview("owner/movies", "movies.csv")

        assert entry.preview_rows == ({"id": "7", "title": "Heat"},)
        assert entry.created_at == created
        assert "ORDER BY created_at DESC" in pool.fetchrow.call_args.args[0]

    @pytest.mark.asyncio
    async def test_latest_preview_miss(self) -> None:
        pool = _pool()
        pool.fetchrow.return_value = None

        assert await PostgresRecordStore(pool).latest_preview("a/b", "c.csv") is None

    @pytest.mark.asyncio
    async def test_close_closes_pool(self) -> None:
        pool = _pool()

        await PostgresRecordStore(pool).close()

        pool.close.assert_awaited_once()
