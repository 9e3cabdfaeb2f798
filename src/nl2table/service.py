"""
Data Generation Service

The two inbound operations: turn a natural-language request into a
preview table, and turn a natural-language cell command into a single
cell edit. Neither raises for pipeline failures; errors come back as
structured payloads.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from src.common.telemetry import NL2TableMetrics, get_nl2table_metrics
from src.nl2table.analysis.analyzer import RequestAnalyzer
from src.nl2table.catalog.gateway import DatasetGateway
from src.nl2table.catalog.kaggle import KaggleClient
from src.nl2table.catalog.protocols import CatalogClient
from src.nl2table.config import NL2TableConfig
from src.nl2table.exceptions import NL2TableError, ValidationError
from src.nl2table.fixtures.provider import CuratedFixtureProvider, FixtureProvider
from src.nl2table.llm.factory import create_default_backends
from src.nl2table.llm.protocols import StructuredBackend
from src.nl2table.llm.router import StructuredCompletionRouter
from src.nl2table.models import (
    CellCommandResponse,
    CellEdit,
    ErrorPayload,
    GenerateDataResponse,
    ProviderCredential,
    RetrievalRequest,
    SourcePreference,
)
from src.nl2table.orchestrator import RetrievalOrchestrator
from src.nl2table.storage.protocols import RecordStore
from src.nl2table.transform.conformer import SchemaConformer

logger = logging.getLogger(__name__)

_CELL_REF_RE = re.compile(r"^\$?([A-Za-z]+)\$?([0-9]+)$")


class CellCommandSchema(BaseModel):
    """A single cell write extracted from a command."""

    cell: str = Field(description='Spreadsheet-style cell reference such as "B3"')
    value: str = Field(description="Value to write into the cell")


CELL_COMMAND_PROMPT = """Parse this spreadsheet cell command.

Command: "{command}"

Extract the target cell reference in spreadsheet notation (column letters
followed by a 1-based row number, e.g. A1, B3, AA12) and the value to put
in that cell.

Return a JSON object with "cell" (the reference) and "value" (a string)."""


def parse_cell_reference(reference: str) -> tuple[int, int]:
    """
    Convert a reference like "B3" to zero-based (row, column).

    Column letters are bijective base-26 (A=0, Z=25, AA=26); the row
    number is 1-based.

    Raises:
        ValidationError: If the reference is malformed or the row is 0
    """
    match = _CELL_REF_RE.match(reference.strip())
    if not match:
        raise ValidationError(f"Invalid cell reference: '{reference}'")

    letters, digits = match.groups()
    column = 0
    for char in letters.upper():
        column = column * 26 + (ord(char) - ord("A") + 1)

    row = int(digits)
    if row < 1:
        raise ValidationError(f"Invalid cell reference: '{reference}' (rows start at 1)")

    return row - 1, column - 1


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class DataGenerationService:
    """Entry point for GenerateData and ExecuteCellCommand."""

    def __init__(
        self,
        router: StructuredCompletionRouter,
        gateway: DatasetGateway,
        orchestrator: RetrievalOrchestrator,
        closeables: Sequence[Any] = (),
        metrics: NL2TableMetrics | None = None,
    ):
        self.router = router
        self.gateway = gateway
        self.orchestrator = orchestrator
        self._closeables = list(closeables)
        self._metrics = metrics or get_nl2table_metrics()

    async def generate_data(
        self,
        prompt: str,
        source_preference: SourcePreference | str = SourcePreference.AUTO,
        credential: ProviderCredential | None = None,
    ) -> GenerateDataResponse:
        """
        Produce a preview table for a free-text request.

        Returns:
            GenerateDataResponse with result and provenance, or an error
            payload. A result with zero rows is a success.
        """
        start = time.perf_counter()
        try:
            if not prompt or not prompt.strip():
                raise ValidationError("Prompt must not be empty")
            try:
                preference = SourcePreference(source_preference)
            except ValueError as e:
                raise ValidationError(f"Unknown source preference: '{source_preference}'") from e

            run = await self.orchestrator.run(
                RetrievalRequest(prompt=prompt, source_preference=preference, credential=credential)
            )
        except NL2TableError as e:
            logger.warning(f"Data generation failed: {e}")
            self._metrics.record_generate(None, False, _elapsed_ms(start))
            return GenerateDataResponse(error=ErrorPayload.from_exception(e, "Failed to generate data: "))
        except Exception as e:
            logger.exception(f"Unexpected error during data generation: {e}")
            self._metrics.record_generate(None, False, _elapsed_ms(start))
            return GenerateDataResponse(error=ErrorPayload.from_exception(e, "Failed to generate data: "))

        self._metrics.record_generate(run.result.source_used.value, True, _elapsed_ms(start))
        return GenerateDataResponse(result=run.result, provenance=run.provenance())

    async def execute_cell_command(
        self,
        command: str,
        credential: ProviderCredential | None = None,
    ) -> CellCommandResponse:
        """
        Turn a command like "set B3 to 42" into a zero-based cell edit.

        Returns:
            CellCommandResponse with the edit, or an error payload
        """
        try:
            if not command or not command.strip():
                raise ValidationError("Command must not be empty")

            parsed = await self.router.complete(
                CELL_COMMAND_PROMPT.format(command=command.strip()),
                CellCommandSchema,
                credential=credential,
            )
            row, column = parse_cell_reference(parsed.cell)
        except NL2TableError as e:
            logger.warning(f"Cell command failed: {e}")
            return CellCommandResponse(error=ErrorPayload.from_exception(e))
        except Exception as e:
            logger.exception(f"Unexpected error during cell command: {e}")
            return CellCommandResponse(error=ErrorPayload.from_exception(e))

        return CellCommandResponse(
            edit=CellEdit(cell_row=str(row), cell_column=str(column), value=parsed.value)
        )

    async def close(self) -> None:
        """Close backends, the catalog client and the record store."""
        for resource in self._closeables:
            close = getattr(resource, "close", None)
            if close is not None:
                await close()


def build_service(
    config: NL2TableConfig,
    store: RecordStore,
    backends: Sequence[StructuredBackend] | None = None,
    catalog_client: CatalogClient | None = None,
    fixtures: FixtureProvider | None = None,
    metrics: NL2TableMetrics | None = None,
) -> DataGenerationService:
    """
    Wire the pipeline from configuration.

    Args:
        config: Service configuration
        store: Record store for catalog metadata, previews and audit events
        backends: LLM backends (defaults to every known backend)
        catalog_client: Catalog client (defaults to Kaggle when configured)
        fixtures: Fixture provider (defaults to the curated fixtures)
        metrics: Metrics sink shared by the router, gateway and service
    """
    backends = list(backends) if backends is not None else create_default_backends(config)
    router = StructuredCompletionRouter(
        backends,
        timeout_seconds=config.llm_timeout_seconds,
        temperature=config.llm_temperature,
        max_tokens=config.llm_max_tokens,
        metrics=metrics,
    )

    if catalog_client is None and config.catalog_configured:
        catalog_client = KaggleClient(
            username=config.kaggle_username,
            key=config.kaggle_key,
            base_url=config.kaggle_base_url,
            timeout_seconds=config.catalog_timeout_seconds,
            download_timeout_seconds=config.catalog_download_timeout_seconds,
            max_attempts=config.catalog_retry_max_attempts,
        )
    gateway = DatasetGateway(
        catalog_client,
        store,
        search_limit=config.catalog_search_limit,
        metrics=metrics,
    )

    orchestrator = RetrievalOrchestrator(
        analyzer=RequestAnalyzer(router),
        gateway=gateway,
        fixtures=fixtures or CuratedFixtureProvider(),
        router=router,
        conformer=SchemaConformer(router),
    )

    closeables: list[Any] = [*backends, store]
    if catalog_client is not None:
        closeables.append(catalog_client)

    return DataGenerationService(router, gateway, orchestrator, closeables=closeables, metrics=metrics)
