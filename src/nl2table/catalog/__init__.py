"""
External dataset catalog: Kaggle client, package extraction and gateway.
"""

from src.nl2table.catalog.archive import first_tabular_file, parse_delimited, read_archive_entry
from src.nl2table.catalog.gateway import DatasetGateway
from src.nl2table.catalog.kaggle import KaggleClient, parse_metadata
from src.nl2table.catalog.protocols import CatalogClient, DatasetMetadata, DatasetSummary

__all__ = [
    "CatalogClient",
    "DatasetGateway",
    "DatasetMetadata",
    "DatasetSummary",
    "KaggleClient",
    "first_tabular_file",
    "parse_delimited",
    "parse_metadata",
    "read_archive_entry",
]
