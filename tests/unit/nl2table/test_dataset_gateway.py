"""
Tests for DatasetGateway

Covers:
- Search with metadata upsert and failure degradation
- The append-only preview cache keyed by (ref, file_name)
- Failure paths that must leave the cache untouched
- Dataset selection
- Audit events
"""

from __future__ import annotations

import hashlib
from unittest.mock import AsyncMock

import httpx
import pytest

from src.nl2table.catalog.gateway import DatasetGateway
from src.nl2table.catalog.kaggle import KaggleClient
from src.nl2table.catalog.protocols import DatasetMetadata, DatasetSummary
from src.nl2table.exceptions import (
    ConfigurationError,
    DownloadError,
    FileNotFound,
    NotFound,
    UpstreamUnavailable,
)
from src.nl2table.models import CatalogDataset
from src.nl2table.storage import InMemoryRecordStore
from tests.unit.nl2table.fakes import StubCatalogClient, make_zip

REF = "shivamb/netflix-shows"
CSV = "show_id,title,type\ns1,Heat,Movie\ns2,Dark,TV Show\n"


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def client() -> StubCatalogClient:
    return StubCatalogClient(
        hits=[
            DatasetSummary(ref=REF, title="Netflix Movies and TV Shows"),
            DatasetSummary(ref="owner/other", title="Other"),
        ],
        metadata={
            REF: DatasetMetadata(files=("netflix_titles.csv",), columns=("show_id", "title", "type")),
            "owner/other": DatasetMetadata(files=("x.csv",)),
        },
        packages={REF: make_zip({"netflix_titles.csv": CSV})},
    )


def _events(store: InMemoryRecordStore, event_type: str) -> list[dict]:
    return [e.data for e in store.audit_events if e.event_type == event_type]


class TestSearch:
    """Tests for DatasetGateway.search."""

    @pytest.mark.asyncio
    async def test_upserts_hits_with_metadata(self, client, store) -> None:
        gateway = DatasetGateway(client, store)

        datasets = await gateway.search(["netflix", "movies"])

        assert [d.ref for d in datasets] == [REF, "owner/other"]
        assert client.search_calls == ["netflix movies"]
        stored = await store.get_dataset(REF)
        assert stored.files == ("netflix_titles.csv",)
        assert stored.column_hints == ("show_id", "title", "type")
        assert _events(store, "catalog_search") == [
            {"query": "netflix movies", "results": [REF, "owner/other"]}
        ]

    @pytest.mark.asyncio
    async def test_limit(self, client, store) -> None:
        datasets = await DatasetGateway(client, store, search_limit=1).search("netflix")

        assert [d.ref for d in datasets] == [REF]

    @pytest.mark.asyncio
    async def test_failure_degrades_to_empty(self, store) -> None:
        client = StubCatalogClient(search_error=UpstreamUnavailable("down", source="kaggle"))

        assert await DatasetGateway(client, store).search("netflix") == []
        assert store.audit_events == []

    @pytest.mark.asyncio
    async def test_metadata_failure_keeps_hit(self, store) -> None:
        client = StubCatalogClient(hits=[DatasetSummary(ref="owner/no-meta")])

        datasets = await DatasetGateway(client, store).search("x")

        assert [d.ref for d in datasets] == ["owner/no-meta"]
        assert datasets[0].files == ()

    @pytest.mark.asyncio
    async def test_malformed_metadata_body_keeps_hit(self, store) -> None:
        routes = {
            "/api/v1/datasets/list": httpx.Response(200, json=[{"ref": "a/b", "title": "AB"}]),
            "/api/v1/datasets/list/a/b": httpx.Response(200, json={"datasetFiles": 5}),
        }
        client = KaggleClient(
            "alice",
            "kaggle-key",
            base_url="https://kaggle.test/api/v1",
            retry_base_delay=0.0,
            transport=httpx.MockTransport(lambda request: routes[request.url.path]),
        )

        datasets = await DatasetGateway(client, store).search(["movies"])

        assert [d.ref for d in datasets] == ["a/b"]
        assert datasets[0].files == ()

    @pytest.mark.asyncio
    async def test_unexpected_client_error_degrades_to_empty(self, store) -> None:
        client = StubCatalogClient(search_error=TypeError("'int' object is not iterable"))

        assert await DatasetGateway(client, store).search("netflix") == []

    @pytest.mark.asyncio
    async def test_store_failure_degrades_to_empty(self, client, store) -> None:
        store.upsert_dataset = AsyncMock(side_effect=RuntimeError("store offline"))

        assert await DatasetGateway(client, store).search("netflix") == []
        assert store.audit_events == []

    @pytest.mark.asyncio
    async def test_unconfigured_makes_no_calls(self, store) -> None:
        client = StubCatalogClient(hits=[DatasetSummary(ref=REF)], configured=False)

        assert await DatasetGateway(client, store).search("netflix") == []
        assert await DatasetGateway(None, store).search("netflix") == []
        assert client.total_calls == 0

    @pytest.mark.asyncio
    async def test_blank_query(self, client, store) -> None:
        assert await DatasetGateway(client, store).search(["", "  "]) == []
        assert client.total_calls == 0


class TestFetchPreview:
    """Tests for DatasetGateway.fetch_preview."""

    @pytest.mark.asyncio
    async def test_second_fetch_is_served_from_cache(self, client, store) -> None:
        gateway = DatasetGateway(client, store)

        first = await gateway.fetch_preview(REF, "netflix_titles.csv")
        second = await gateway.fetch_preview(REF, "netflix_titles.csv")

        assert first.cached is False
        assert second.cached is True
        assert second.rows == first.rows
        assert first.rows[0] == {"show_id": "s1", "title": "Heat", "type": "Movie"}
        assert client.download_calls == [REF]

    @pytest.mark.asyncio
    async def test_cache_entry_hashes_raw_bytes(self, client, store) -> None:
        await DatasetGateway(client, store).fetch_preview(REF, "netflix_titles.csv")

        entries = store.preview_entries(REF, "netflix_titles.csv")
        assert len(entries) == 1
        assert entries[0].content_hash == hashlib.sha256(CSV.encode()).hexdigest()
        assert _events(store, "file_preview_generated") == [
            {"ref": REF, "file_name": "netflix_titles.csv", "content_hash": entries[0].content_hash}
        ]

    @pytest.mark.asyncio
    async def test_cache_hit_is_audited(self, client, store) -> None:
        gateway = DatasetGateway(client, store)
        await gateway.fetch_preview(REF, "netflix_titles.csv")
        await gateway.fetch_preview(REF, "netflix_titles.csv")

        assert _events(store, "file_cache_hit") == [{"ref": REF, "file_name": "netflix_titles.csv"}]
        assert len(store.preview_entries(REF, "netflix_titles.csv")) == 1

    @pytest.mark.asyncio
    async def test_preview_is_capped(self, store) -> None:
        body = "n\n" + "".join(f"{i}\n" for i in range(100))
        client = StubCatalogClient(packages={"o/big": make_zip({"big.csv": body})})

        preview = await DatasetGateway(client, store).fetch_preview("o/big", "big.csv")

        assert len(preview.rows) == 20

    @pytest.mark.asyncio
    async def test_download_failure_caches_nothing(self, store) -> None:
        client = StubCatalogClient(
            packages={REF: DownloadError("connection reset", source="kaggle")}
        )

        with pytest.raises(UpstreamUnavailable):
            await DatasetGateway(client, store).fetch_preview(REF, "netflix_titles.csv")

        assert await store.latest_preview(REF, "netflix_titles.csv") is None

    @pytest.mark.asyncio
    async def test_missing_file(self, client, store) -> None:
        with pytest.raises(FileNotFound):
            await DatasetGateway(client, store).fetch_preview(REF, "missing.csv")

        assert store.preview_entries(REF, "missing.csv") == []

    @pytest.mark.asyncio
    async def test_corrupt_package(self, store) -> None:
        client = StubCatalogClient(packages={REF: b"not a zip"})

        with pytest.raises(DownloadError):
            await DatasetGateway(client, store).fetch_preview(REF, "netflix_titles.csv")

    @pytest.mark.asyncio
    async def test_cache_miss_without_credentials(self, store) -> None:
        with pytest.raises(ConfigurationError):
            await DatasetGateway(None, store).fetch_preview(REF, "netflix_titles.csv")

    @pytest.mark.asyncio
    async def test_cache_hit_without_credentials(self, client, store) -> None:
        await DatasetGateway(client, store).fetch_preview(REF, "netflix_titles.csv")

        preview = await DatasetGateway(None, store).fetch_preview(REF, "netflix_titles.csv")

        assert preview.cached is True


class TestFetchFirstTabularPreview:
    """Tests for DatasetGateway.fetch_first_tabular_preview."""

    @pytest.mark.asyncio
    async def test_picks_first_tabular_entry_and_caches(self, store) -> None:
        package = make_zip({"docs/": "", "README.md": "# netflix", "netflix_titles.csv": CSV, "b.csv": "x\n1\n"})
        client = StubCatalogClient(packages={REF: package})
        gateway = DatasetGateway(client, store)

        file_name, first = await gateway.fetch_first_tabular_preview(REF)
        _, second = await gateway.fetch_first_tabular_preview(REF)

        assert file_name == "netflix_titles.csv"
        assert first.cached is False
        assert first.rows[0] == {"show_id": "s1", "title": "Heat", "type": "Movie"}
        assert second.cached is True
        assert second.rows == first.rows
        assert len(store.preview_entries(REF, "netflix_titles.csv")) == 1

    @pytest.mark.asyncio
    async def test_package_without_tabular_entry(self, store) -> None:
        client = StubCatalogClient(packages={REF: make_zip({"weights.pkl": b"\x00"})})

        with pytest.raises(FileNotFound):
            await DatasetGateway(client, store).fetch_first_tabular_preview(REF)

    @pytest.mark.asyncio
    async def test_requires_credentials(self, store) -> None:
        with pytest.raises(ConfigurationError):
            await DatasetGateway(None, store).fetch_first_tabular_preview(REF)


class TestDatasetFiles:
    """Tests for DatasetGateway.dataset_files."""

    @pytest.mark.asyncio
    async def test_uses_stored_files(self, client, store) -> None:
        await store.upsert_dataset(CatalogDataset(ref=REF, files=("stored.csv",)))

        files = await DatasetGateway(client, store).dataset_files(REF)

        assert files == ["stored.csv"]
        assert client.metadata_calls == []
        assert (await store.get_dataset(REF)).user_selected is True
        assert _events(store, "dataset_selected") == [{"ref": REF, "files": ["stored.csv"]}]

    @pytest.mark.asyncio
    async def test_fetches_metadata_for_unknown_dataset(self, client, store) -> None:
        files = await DatasetGateway(client, store).dataset_files(REF)

        assert files == ["netflix_titles.csv"]
        assert client.metadata_calls == [REF]
        stored = await store.get_dataset(REF)
        assert stored.user_selected is True

    @pytest.mark.asyncio
    async def test_unknown_dataset(self, client, store) -> None:
        with pytest.raises(NotFound):
            await DatasetGateway(client, store).dataset_files("owner/missing")


class TestFirstTabularFile:
    """Tests for DatasetGateway.first_tabular_file."""

    def test_picks_first_tabular(self) -> None:
        assert DatasetGateway.first_tabular_file(["a.json", "b.tsv", "c.csv"]) == "b.tsv"
