"""
Schema-Conforming Transformer

Remaps retrieved records onto a target column set with one structured
completion call, then keeps only the rows that came back well-formed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from src.nl2table.exceptions import PartialData
from src.nl2table.models import MAX_PREVIEW_ROWS, ProviderCredential, RetrievedRow
from src.nl2table.transform.schemas import RowsSchema

if TYPE_CHECKING:
    from src.nl2table.llm.router import StructuredCompletionRouter

logger = logging.getLogger(__name__)


TRANSFORM_PROMPT = """Transform the following raw data to match the target schema.

Raw Data Sample: {sample}
Target Columns: {columns}

Rules:
1. Map existing fields to target columns where possible
2. Fill missing target columns with values that make logical sense for the row
3. Every value must be a string
4. Keep one output object per input record

Return a JSON object with a single property "data" that is an array of
objects, where each object has exactly the target columns as keys."""


@dataclass(frozen=True)
class ConformResult:
    """Rows that passed post-validation and how many were dropped."""

    rows: tuple[RetrievedRow, ...]
    dropped: int = 0


def is_conforming_row(value: Any, columns: Sequence[str]) -> bool:
    """A mapping with string values that has every target column."""
    if not isinstance(value, Mapping):
        return False
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in value.items()):
        return False
    return all(column in value for column in columns)


def build_transform_prompt(records: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> str:
    return TRANSFORM_PROMPT.format(
        sample=json.dumps([dict(r) for r in records], ensure_ascii=False),
        columns=", ".join(columns),
    )


class SchemaConformer:
    """Maps foreign records onto the analysis columns via the completion router."""

    def __init__(self, router: StructuredCompletionRouter):
        self._router = router

    async def conform(
        self,
        raw_records: Sequence[Mapping[str, Any]],
        target_columns: Sequence[str],
        credential: ProviderCredential | None = None,
    ) -> ConformResult:
        """
        Transform records to the target columns.

        At most MAX_PREVIEW_ROWS records are sent. Returned elements that are
        not string-valued mappings covering every target column are dropped,
        never patched.

        Raises:
            Whatever the router raises; callers decide how to degrade.
        """
        if not raw_records or not target_columns:
            return ConformResult(rows=())

        sample = list(raw_records[:MAX_PREVIEW_ROWS])
        result = await self._router.complete(
            build_transform_prompt(sample, target_columns),
            RowsSchema,
            credential=credential,
        )

        rows: list[RetrievedRow] = []
        dropped = 0
        for element in result.data:
            if is_conforming_row(element, target_columns):
                rows.append({column: element[column] for column in target_columns})
            else:
                dropped += 1

        if dropped:
            logger.warning(str(PartialData(kept=len(rows), dropped=dropped)))

        logger.debug(f"Conformed {len(rows)} row(s) to {len(target_columns)} column(s)")
        return ConformResult(rows=tuple(rows), dropped=dropped)
