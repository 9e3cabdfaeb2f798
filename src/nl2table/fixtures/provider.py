"""
Curated Fixture Provider

Serves static, hand-picked sample rows for common entity types so that
typical requests are answered without an LLM call.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

from src.nl2table.fixtures.data import FIELD_ALIASES, FIXTURES
from src.nl2table.models import EntityType, RetrievedRow

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_field(name: str) -> str:
    """Lowercase and drop everything but letters and digits."""
    return _NON_ALNUM.sub("", name.lower())


@runtime_checkable
class FixtureProvider(Protocol):
    """Protocol for deterministic, side-effect-free fixture lookup."""

    def get_fixture_rows(
        self,
        entity_type: EntityType,
        columns: Sequence[str],
        max_rows: int,
    ) -> list[RetrievedRow]:
        """Rows keyed exactly by ``columns``, or an empty list."""
        ...


class CuratedFixtureProvider:
    """
    Fixture provider backed by the built-in curated records.

    A fixture answers a request only when it covers every requested
    column; partial coverage returns nothing so that generation can
    produce complete rows instead.
    """

    def __init__(
        self,
        fixtures: Mapping[EntityType, Sequence[Mapping[str, str]]] | None = None,
        aliases: Mapping[EntityType, Mapping[str, str]] | None = None,
    ):
        self._fixtures = fixtures if fixtures is not None else FIXTURES
        self._aliases = aliases if aliases is not None else FIELD_ALIASES

    def _resolve_columns(self, entity_type: EntityType, columns: Sequence[str]) -> dict[str, str] | None:
        records = self._fixtures.get(entity_type)
        if not records:
            return None

        fields = {normalize_field(f): f for f in records[0]}
        aliases = self._aliases.get(entity_type, {})

        mapping: dict[str, str] = {}
        for column in columns:
            key = normalize_field(column)
            source = fields.get(key) or fields.get(normalize_field(aliases.get(key, "")))
            if source is None:
                return None
            mapping[column] = source
        return mapping

    def get_fixture_rows(
        self,
        entity_type: EntityType,
        columns: Sequence[str],
        max_rows: int,
    ) -> list[RetrievedRow]:
        if max_rows <= 0 or not columns:
            return []

        mapping = self._resolve_columns(entity_type, columns)
        if mapping is None:
            logger.debug(f"No curated fixture covers {entity_type.value} columns {list(columns)}")
            return []

        records = self._fixtures[entity_type][:max_rows]
        return [{column: record.get(source, "") for column, source in mapping.items()} for record in records]
