"""
Dataset Catalog Protocols

The gateway treats the third-party catalog as a black box that can
search, describe and download packaged datasets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class DatasetSummary:
    """A search hit as returned by the catalog."""

    ref: str
    title: str = ""
    description: str = ""


@dataclass(frozen=True)
class DatasetMetadata:
    """File listing and column hints for one dataset."""

    files: tuple[str, ...] = ()
    columns: tuple[str, ...] = ()


@runtime_checkable
class CatalogClient(Protocol):
    """Protocol for a dataset catalog client."""

    @property
    def is_configured(self) -> bool:
        """Whether credentials are available for catalog calls."""
        ...

    async def search(self, query: str, limit: int = 5) -> list[DatasetSummary]:
        """
        Search datasets by relevance.

        Raises:
            UpstreamUnavailable: On transport or response-shape failure
        """
        ...

    async def metadata(self, ref: str) -> DatasetMetadata:
        """
        Fetch file listing and column hints.

        Raises:
            NotFound: If the dataset does not exist
            UpstreamUnavailable: On transport or response-shape failure
        """
        ...

    async def download(self, ref: str) -> bytes:
        """
        Download the packaged (zip) dataset.

        Raises:
            DownloadError: On transport failure or empty payload
        """
        ...
