"""Schema-conforming transformation of retrieved records."""

from src.nl2table.transform.conformer import (
    ConformResult,
    SchemaConformer,
    build_transform_prompt,
    is_conforming_row,
)
from src.nl2table.transform.schemas import RowsSchema

__all__ = [
    "ConformResult",
    "RowsSchema",
    "SchemaConformer",
    "build_transform_prompt",
    "is_conforming_row",
]
