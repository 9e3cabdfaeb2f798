"""
Kaggle API Client

Minimal async client for the Kaggle public API (v1): dataset search,
dataset metadata and dataset package download. Authenticates with HTTP
basic auth (username + API key).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.common.resilience import RetryConfig, retry_with_backoff
from src.nl2table.catalog.protocols import DatasetMetadata, DatasetSummary
from src.nl2table.exceptions import DownloadError, NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

KAGGLE_API_BASE_URL = "https://www.kaggle.com/api/v1"


class TransientHTTPError(Exception):
    """A 429 or 5xx response worth retrying."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"HTTP {status_code} for {url}")


class KaggleClient:
    """
    Client for the Kaggle datasets API.

    Handles:
    - Dataset search by relevance
    - Dataset metadata (file names, column hints)
    - Dataset package download
    - Retry with exponential backoff on transport errors, 429 and 5xx
    """

    def __init__(
        self,
        username: str | None,
        key: str | None,
        base_url: str = KAGGLE_API_BASE_URL,
        timeout_seconds: float = 30.0,
        download_timeout_seconds: float = 120.0,
        max_attempts: int = 3,
        retry_base_delay: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the Kaggle client.

        Args:
            username: Kaggle username
            key: Kaggle API key
            base_url: API base URL
            timeout_seconds: Timeout for search and metadata calls
            download_timeout_seconds: Timeout for package downloads
            max_attempts: Attempts per request for transient failures
            retry_base_delay: First backoff delay in seconds
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self._username = username
        self._key = key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._download_timeout_seconds = download_timeout_seconds
        self._transport = transport
        self._retry_config = RetryConfig(
            max_attempts=max_attempts,
            base_delay=retry_base_delay,
            retryable_exceptions=(httpx.TransportError, TransientHTTPError),
        )
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._username and self._key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            auth = httpx.BasicAuth(self._username or "", self._key or "")
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=auth,
                timeout=httpx.Timeout(self._timeout_seconds),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_once(self, path: str, **kwargs) -> httpx.Response:
        response = await self._get_client().get(path, **kwargs)
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientHTTPError(response.status_code, path)
        return response

    async def _get(self, path: str, **kwargs) -> httpx.Response:
        """
        GET with retry.

        Raises:
            UpstreamUnavailable: On transport failure or non-2xx after retries
            NotFound: On HTTP 404
        """
        try:
            response = await retry_with_backoff(self._get_once, path, config=self._retry_config, **kwargs)
        except (httpx.HTTPError, TransientHTTPError) as e:
            raise UpstreamUnavailable(f"Kaggle request failed: {e}", source="kaggle") from e

        if response.status_code == 404:
            raise NotFound(f"Kaggle resource not found: {path}")
        if response.status_code >= 400:
            raise UpstreamUnavailable(
                f"Kaggle returned HTTP {response.status_code} for {path}",
                source="kaggle",
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamUnavailable("Kaggle returned a non-JSON body", source="kaggle") from e

    async def search(self, query: str, limit: int = 5) -> list[DatasetSummary]:
        """Search datasets, most relevant first."""
        response = await self._get(
            "/datasets/list",
            params={"search": query, "sortBy": "relevance", "page": 1},
        )
        data = self._json(response)

        # The API returns a bare list; some proxies wrap it as {"datasets": [...]}
        items = data.get("datasets", []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise UpstreamUnavailable("Kaggle search response has unexpected shape", source="kaggle")

        results = []
        for item in items:
            if not isinstance(item, dict) or not item.get("ref"):
                continue
            results.append(
                DatasetSummary(
                    ref=str(item["ref"]),
                    title=str(item.get("title") or ""),
                    description=str(item.get("subtitle") or item.get("description") or ""),
                )
            )
            if len(results) >= limit:
                break

        logger.debug(f"Kaggle search '{query}' returned {len(results)} dataset(s)")
        return results

    async def metadata(self, ref: str) -> DatasetMetadata:
        """Fetch the file listing and column hints for a dataset."""
        response = await self._get(f"/datasets/list/{ref}")
        data = self._json(response)
        if not isinstance(data, dict):
            raise UpstreamUnavailable("Kaggle metadata response has unexpected shape", source="kaggle")
        return parse_metadata(data)

    async def download(self, ref: str) -> bytes:
        """Download the zipped dataset package."""
        try:
            response = await self._get(
                f"/datasets/download/{ref}",
                timeout=httpx.Timeout(self._download_timeout_seconds),
            )
        except UpstreamUnavailable as e:
            raise DownloadError(f"Failed to download dataset '{ref}': {e.message}", source="kaggle") from e
        except NotFound as e:
            raise DownloadError(f"Dataset '{ref}' not found for download", source="kaggle") from e

        payload = response.content
        if not payload:
            raise DownloadError(f"Empty download for dataset '{ref}'", source="kaggle")

        logger.info(f"Downloaded dataset '{ref}' ({len(payload)} bytes)")
        return payload


def _names(items: Any) -> list[str]:
    names: list[str] = []
    if not isinstance(items, list):
        return names
    for item in items:
        if isinstance(item, str):
            name = item
        elif isinstance(item, dict):
            name = item.get("name") or item.get("nameNullable") or ""
        else:
            continue
        if name and name not in names:
            names.append(str(name))
    return names


def parse_metadata(data: dict[str, Any]) -> DatasetMetadata:
    """
    Read file names and column hints from a metadata or file-list response.

    Accepts ``{"datasetFiles": [{"name", "columns": [...]}]}`` as returned by
    the file-list endpoint as well as flat ``{"files": [...], "columns": [...]}``.
    Fields that are not lists are treated as empty.
    """
    file_items = data.get("datasetFiles") or data.get("files") or []
    if not isinstance(file_items, list):
        logger.debug(f"Ignoring non-list file listing of type {type(file_items).__name__}")
        file_items = []
    files = _names(file_items)

    columns = _names(data.get("columns"))
    if not columns:
        for item in file_items:
            if isinstance(item, dict):
                columns.extend(c for c in _names(item.get("columns")) if c not in columns)

    return DatasetMetadata(files=tuple(files), columns=tuple(columns))
