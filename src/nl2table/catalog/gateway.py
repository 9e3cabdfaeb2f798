"""
External Dataset Gateway

Searches the dataset catalog, keeps dataset metadata in the record store,
and extracts file previews through an append-only, content-hashed cache.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence

from src.common.telemetry import (
    NL2TableMetrics,
    add_span_event,
    get_nl2table_metrics,
    record_exception,
    trace_span,
)
from src.nl2table.catalog.archive import (
    archive_entries,
    first_tabular_file,
    parse_delimited,
    read_archive_entry,
)
from src.nl2table.catalog.protocols import CatalogClient, DatasetMetadata
from src.nl2table.exceptions import (
    ConfigurationError,
    DownloadError,
    FileNotFound,
    NotFound,
)
from src.nl2table.models import (
    MAX_PREVIEW_ROWS,
    CatalogDataset,
    FilePreview,
    FilePreviewCacheEntry,
)
from src.nl2table.storage.protocols import RecordStore

logger = logging.getLogger(__name__)


class DatasetGateway:
    """
    Gateway to the external dataset catalog.

    ``search`` degrades to an empty list on any catalog failure.
    ``fetch_preview`` and ``dataset_files`` raise.
    """

    def __init__(
        self,
        client: CatalogClient | None,
        store: RecordStore,
        search_limit: int = 5,
        metrics: NL2TableMetrics | None = None,
    ):
        """
        Args:
            client: Catalog client, or None when the catalog is disabled
            store: Record store for metadata, preview cache and audit events
            search_limit: Datasets kept per search
            metrics: Metrics sink (defaults to the global instance)
        """
        self._client = client
        self._store = store
        self._search_limit = search_limit
        self._metrics = metrics or get_nl2table_metrics()

    @property
    def is_configured(self) -> bool:
        return self._client is not None and self._client.is_configured

    def _require_client(self) -> CatalogClient:
        if self._client is None or not self._client.is_configured:
            raise ConfigurationError("Dataset catalog credentials are not configured", code="CONFIG_MISSING")
        return self._client

    async def search(self, terms: str | Sequence[str]) -> list[CatalogDataset]:
        """
        Find up to ``search_limit`` datasets for the given terms.

        Each hit's file list and column hints are fetched and upserted into
        the record store. Returns an empty list when the catalog is not
        configured or any catalog call fails.
        """
        query = terms if isinstance(terms, str) else " ".join(t for t in terms if t)
        query = query.strip()
        if not query:
            return []
        client = self._client
        if client is None or not client.is_configured:
            logger.info("Catalog search skipped: no catalog credentials configured")
            return []

        with trace_span("catalog.search", {"catalog.query": query}) as span:
            try:
                datasets = await self._search_and_store(client, query)
            except Exception as e:
                logger.warning(f"Catalog search failed for '{query}': {e}")
                record_exception(e)
                return []
            span.set_attribute("catalog.result_count", len(datasets))

        logger.info(f"Catalog search '{query}' found {len(datasets)} dataset(s)")
        return datasets

    async def _search_and_store(self, client: CatalogClient, query: str) -> list[CatalogDataset]:
        hits = await client.search(query, limit=self._search_limit)

        datasets: list[CatalogDataset] = []
        for hit in hits[: self._search_limit]:
            metadata = await self._metadata_or_empty(client, hit.ref)
            stored = await self._store.upsert_dataset(
                CatalogDataset(
                    ref=hit.ref,
                    title=hit.title,
                    description=hit.description,
                    files=metadata.files,
                    column_hints=metadata.columns,
                )
            )
            datasets.append(stored)

        await self._store.append_audit(
            "catalog_search",
            {"query": query, "results": [d.ref for d in datasets]},
        )
        return datasets

    @staticmethod
    async def _metadata_or_empty(client: CatalogClient, ref: str) -> DatasetMetadata:
        try:
            return await client.metadata(ref)
        except Exception as e:
            logger.warning(f"Could not fetch metadata for '{ref}': {e}")
            return DatasetMetadata()

    async def fetch_preview(self, ref: str, file_name: str) -> FilePreview:
        """
        Return up to MAX_PREVIEW_ROWS records of ``file_name`` inside dataset ``ref``.

        Served from the most recent cache entry when one exists; otherwise
        the package is downloaded, the entry parsed, and a new cache entry
        appended. Nothing is cached when any step fails.

        Raises:
            ConfigurationError: On a cache miss with no catalog credentials
            DownloadError: If the download fails, is empty, or is not a zip
            FileNotFound: If the package has no entry with that path
            ValidationError: If the entry cannot be parsed
        """
        with trace_span(
            "catalog.fetch_preview",
            {"catalog.ref": ref, "catalog.file_name": file_name},
        ) as span:
            cached = await self._cached_preview(ref, file_name)
            if cached is not None:
                span.set_attribute("catalog.cached", True)
                return cached

            payload = await self._download(ref)
            preview = await self._generate_preview(ref, file_name, payload)
            span.set_attribute("catalog.cached", False)
            span.set_attribute("catalog.rows", len(preview.rows))

        return preview

    async def fetch_first_tabular_preview(self, ref: str) -> tuple[str, FilePreview]:
        """
        Preview the first tabular entry of a dataset whose file list is unknown.

        The package is downloaded and its entries listed; the chosen entry is
        then served from cache or parsed and cached like ``fetch_preview``.

        Returns:
            (file_name, preview) for the chosen entry

        Raises:
            ConfigurationError: If no catalog credentials are configured
            DownloadError: If the download fails, is empty, or is not a zip
            FileNotFound: If the package has no tabular entry
            ValidationError: If the entry cannot be parsed
        """
        with trace_span("catalog.fetch_preview", {"catalog.ref": ref}) as span:
            payload = await self._download(ref)
            file_name = first_tabular_file(tuple(archive_entries(payload, ref)))
            if file_name is None:
                raise FileNotFound(ref, "*.csv")
            span.set_attribute("catalog.file_name", file_name)

            cached = await self._cached_preview(ref, file_name)
            if cached is not None:
                span.set_attribute("catalog.cached", True)
                return file_name, cached

            preview = await self._generate_preview(ref, file_name, payload)
            span.set_attribute("catalog.cached", False)
            span.set_attribute("catalog.rows", len(preview.rows))

        return file_name, preview

    async def _cached_preview(self, ref: str, file_name: str) -> FilePreview | None:
        cached = await self._store.latest_preview(ref, file_name)
        self._metrics.record_preview_lookup(hit=cached is not None)
        if cached is None:
            return None
        logger.debug(f"Preview cache hit for {ref}/{file_name}")
        add_span_event("cache_hit")
        await self._store.append_audit("file_cache_hit", {"ref": ref, "file_name": file_name})
        return FilePreview(rows=cached.preview_rows, cached=True)

    async def _download(self, ref: str) -> bytes:
        payload = await self._require_client().download(ref)
        if not payload:
            raise DownloadError(f"Empty download for dataset '{ref}'", source="catalog")
        return payload

    async def _generate_preview(self, ref: str, file_name: str, payload: bytes) -> FilePreview:
        raw = read_archive_entry(payload, ref, file_name)
        rows = tuple(parse_delimited(raw, limit=MAX_PREVIEW_ROWS))
        content_hash = hashlib.sha256(raw).hexdigest()

        await self._store.append_preview(
            FilePreviewCacheEntry(
                ref=ref,
                file_name=file_name,
                content_hash=content_hash,
                preview_rows=rows,
            )
        )
        await self._store.append_audit(
            "file_preview_generated",
            {"ref": ref, "file_name": file_name, "content_hash": content_hash},
        )
        logger.info(f"Generated preview for {ref}/{file_name}: {len(rows)} row(s)")
        return FilePreview(rows=rows, cached=False)

    async def dataset_files(self, ref: str) -> list[str]:
        """
        File names of a dataset, marking it as selected by the user.

        Uses the stored file list when the dataset was seen before;
        otherwise fetches metadata and upserts the dataset.

        Raises:
            NotFound: If the catalog has no such dataset
            ConfigurationError: If metadata is needed without credentials
            UpstreamUnavailable: If the metadata call fails
        """
        existing = await self._store.get_dataset(ref)
        if existing is not None and existing.files:
            files = existing.files
        else:
            metadata = await self._require_client().metadata(ref)
            if not metadata.files and existing is None:
                raise NotFound(f"Dataset '{ref}' has no files")
            stored = await self._store.upsert_dataset(
                CatalogDataset(
                    ref=ref,
                    title=existing.title if existing else "",
                    description=existing.description if existing else "",
                    files=metadata.files,
                    column_hints=metadata.columns,
                )
            )
            files = stored.files

        await self._store.mark_dataset_selected(ref)
        await self._store.append_audit("dataset_selected", {"ref": ref, "files": list(files)})
        return list(files)

    @staticmethod
    def first_tabular_file(files: Sequence[str]) -> str | None:
        """First file with a tabular extension (.csv, .tsv, .txt)."""
        return first_tabular_file(tuple(files))
