"""
Dataset package extraction.

Pulls one entry out of a zipped dataset and parses it as delimited text
with a header row.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
import zlib

from src.nl2table.exceptions import DownloadError, FileNotFound, ValidationError
from src.nl2table.models import RetrievedRow

logger = logging.getLogger(__name__)

TABULAR_EXTENSIONS = (".csv", ".tsv", ".txt")
SNIFF_DELIMITERS = ",;\t|"
SNIFF_SAMPLE_BYTES = 64 * 1024


def read_archive_entry(payload: bytes, ref: str, file_name: str) -> bytes:
    """
    Return the raw bytes of the entry whose path equals ``file_name``.

    Raises:
        DownloadError: If the payload is not a readable zip archive
        FileNotFound: If no entry has that exact path
    """
    try:
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            if file_name not in archive.namelist():
                raise FileNotFound(ref, file_name)
            return archive.read(file_name)
    except (zipfile.BadZipFile, zlib.error) as e:
        raise DownloadError(f"Dataset '{ref}' is not a valid zip archive", source="catalog") from e


def archive_entries(payload: bytes, ref: str) -> list[str]:
    """
    Entry paths of a zipped dataset, directories excluded.

    Raises:
        DownloadError: If the payload is not a readable zip archive
    """
    try:
        with zipfile.ZipFile(io.BytesIO(payload)) as archive:
            return [info.filename for info in archive.infolist() if not info.is_dir()]
    except (zipfile.BadZipFile, zlib.error) as e:
        raise DownloadError(f"Dataset '{ref}' is not a valid zip archive", source="catalog") from e


def _sniff_dialect(sample: str) -> type[csv.Dialect] | csv.Dialect:
    try:
        return csv.Sniffer().sniff(sample, delimiters=SNIFF_DELIMITERS)
    except csv.Error:
        return csv.excel


def parse_delimited(data: bytes, limit: int | None = None) -> list[RetrievedRow]:
    """
    Parse delimited text with a header row into string-valued records.

    Decodes as UTF-8, dropping a leading BOM. The delimiter is sniffed among
    comma, semicolon, tab and pipe, defaulting to comma. Short rows are
    padded with empty strings; cells beyond the header are dropped.

    Args:
        data: Raw file bytes
        limit: Maximum number of records to return

    Raises:
        ValidationError: If the text cannot be parsed
    """
    text = data.decode("utf-8-sig", errors="replace")
    if not text.strip():
        return []

    dialect = _sniff_dialect(text[:SNIFF_SAMPLE_BYTES])
    reader = csv.DictReader(io.StringIO(text, newline=""), dialect=dialect, restval="")

    rows: list[RetrievedRow] = []
    try:
        if reader.fieldnames is None:
            return []
        reader.fieldnames = [name.strip() for name in reader.fieldnames]
        for record in reader:
            if limit is not None and len(rows) >= limit:
                break
            rows.append({k: (v or "") for k, v in record.items() if k is not None})
    except csv.Error as e:
        raise ValidationError(f"Could not parse delimited file: {e}") from e

    return rows


def first_tabular_file(files: list[str] | tuple[str, ...]) -> str | None:
    """First file name with a tabular extension, or None."""
    for name in files:
        if name.lower().endswith(TABULAR_EXTENSIONS):
            return name
    return None
