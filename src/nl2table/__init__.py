"""
nl2table - natural language requests to tabular data previews.

Pipeline: request analysis, catalog/fixture/synthetic retrieval with
fallback, schema-conforming transformation, all LLM calls routed through
a multi-backend structured completion router.

Usage:
    from src.nl2table import build_service, load_config
    from src.nl2table.storage import InMemoryRecordStore

    service = build_service(load_config(), InMemoryRecordStore())
    response = await service.generate_data("top 10 sci-fi movies with title and year")
"""

from src.nl2table.config import NL2TableConfig, load_config
from src.nl2table.models import (
    MAX_PREVIEW_ROWS,
    CellCommandResponse,
    GenerateDataResponse,
    ProviderCredential,
    SourcePreference,
)
from src.nl2table.service import DataGenerationService, build_service

__all__ = [
    "MAX_PREVIEW_ROWS",
    "CellCommandResponse",
    "DataGenerationService",
    "GenerateDataResponse",
    "NL2TableConfig",
    "ProviderCredential",
    "SourcePreference",
    "build_service",
    "load_config",
]
