"""
Retrieval Orchestrator

Runs one request through analysis and then the retrieval stages in
priority order: catalog, curated fixtures, synthetic generation. The
first stage that yields at least one row wins; sources are never mixed.
"""

from __future__ import annotations

import functools
import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from src.common.resilience import FallbackExhausted, first_success
from src.common.telemetry import add_span_event, trace_span
from src.nl2table.models import (
    MAX_PREVIEW_ROWS,
    Provenance,
    RequestAnalysis,
    RetrievalRequest,
    RetrievalResult,
    RetrievalStage,
    RetrievedRow,
    SourcePreference,
    SourceUsed,
    Strategy,
    utc_now,
)
from src.nl2table.transform.schemas import RowsSchema

if TYPE_CHECKING:
    from src.nl2table.analysis.analyzer import RequestAnalyzer
    from src.nl2table.catalog.gateway import DatasetGateway
    from src.nl2table.fixtures.provider import FixtureProvider
    from src.nl2table.llm.router import StructuredCompletionRouter
    from src.nl2table.transform.conformer import SchemaConformer

logger = logging.getLogger(__name__)


SYNTHETIC_PROMPT = """Generate {rows} realistic rows of {entity} data with these columns: {columns}.

Return a JSON object with a single property "data" that is an array of
exactly {rows} objects. Each object must have exactly these keys, with
string values: {keys}"""


def stringify(value: Any) -> str:
    """Render a scalar cell value as a string; None becomes empty."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def normalize_rows(
    rows: Iterable[Mapping[str, Any]],
    columns: Sequence[str],
    limit: int,
) -> tuple[RetrievedRow, ...]:
    """
    Project rows onto ``columns`` and cap them at ``limit``.

    Missing keys become "", extra keys are dropped and non-string values
    are stringified, so every returned row has exactly ``columns`` as keys.
    """
    normalized: list[RetrievedRow] = []
    for row in rows:
        if len(normalized) >= limit:
            break
        normalized.append({column: stringify(row.get(column)) for column in columns})
    return tuple(normalized)


def build_synthetic_prompt(analysis: RequestAnalysis, rows: int) -> str:
    return SYNTHETIC_PROMPT.format(
        rows=rows,
        entity=analysis.entity_type.value,
        columns=", ".join(analysis.columns),
        keys=json.dumps(list(analysis.columns), ensure_ascii=False),
    )


@dataclass(frozen=True)
class RetrievalRun:
    """Outcome of one orchestrated request, with the stages it went through."""

    analysis: RequestAnalysis
    result: RetrievalResult
    stages: tuple[RetrievalStage, ...]

    def provenance(self) -> Provenance:
        return Provenance(
            source=self.result.source_used,
            record_count=len(self.result.rows),
            columns=self.analysis.columns,
            entity_type=self.analysis.entity_type,
            rationale=self.analysis.rationale,
            is_truncated=self.result.is_truncated,
            timestamp=utc_now().isoformat(),
        )


class RetrievalOrchestrator:
    """
    Sequences Analyzer, Gateway, fixture lookup and synthetic generation.

    Catalog and fixture failures are logged and fall through to the next
    stage. A synthetic generation failure ends the run with zero rows and
    ``source_used=synthetic``. Only analysis failures propagate.
    """

    def __init__(
        self,
        analyzer: RequestAnalyzer,
        gateway: DatasetGateway,
        fixtures: FixtureProvider,
        router: StructuredCompletionRouter,
        conformer: SchemaConformer,
    ):
        self._analyzer = analyzer
        self._gateway = gateway
        self._fixtures = fixtures
        self._router = router
        self._conformer = conformer

    @staticmethod
    def uses_catalog(request: RetrievalRequest, analysis: RequestAnalysis) -> bool:
        """Catalog search runs for catalog preference or strategy, never for synthetic preference."""
        if request.source_preference == SourcePreference.SYNTHETIC:
            return False
        return (
            request.source_preference == SourcePreference.CATALOG
            or analysis.strategy == Strategy.CATALOG
        )

    async def run(self, request: RetrievalRequest) -> RetrievalRun:
        """
        Execute one retrieval run.

        Raises:
            AnalysisFailed: If the request could not be analyzed
        """
        stages: list[RetrievalStage] = []

        with trace_span(
            "retrieval.run",
            {"retrieval.preference": request.source_preference.value},
        ) as span:
            self._enter(stages, RetrievalStage.ANALYZING)
            analysis = await self._analyzer.analyze(
                request.prompt,
                request.source_preference,
                credential=request.credential,
            )
            limit = analysis.target_row_count

            attempts = []
            if self.uses_catalog(request, analysis):
                attempts.append(
                    (SourceUsed.CATALOG.value, functools.partial(self._from_catalog, request, analysis, stages))
                )
            attempts.append(
                (SourceUsed.FIXTURE.value, functools.partial(self._from_fixtures, analysis, limit, stages))
            )
            attempts.append(
                (SourceUsed.SYNTHETIC.value, functools.partial(self._from_synthetic, request, analysis, limit, stages))
            )

            try:
                outcome = await first_success(
                    attempts,
                    accept=lambda rows: bool(normalize_rows(rows, analysis.columns, limit)),
                    label="retrieval",
                )
                source = SourceUsed(outcome.name)
                rows = normalize_rows(outcome.value, analysis.columns, limit)
            except FallbackExhausted:
                logger.warning("Every retrieval stage came back empty; returning no rows")
                source = SourceUsed.SYNTHETIC
                rows = ()

            self._enter(stages, RetrievalStage.DONE)
            result = RetrievalResult(
                rows=rows,
                source_used=source,
                is_truncated=len(rows) >= MAX_PREVIEW_ROWS,
            )
            span.set_attribute("retrieval.source", source.value)
            span.set_attribute("retrieval.rows", len(rows))

        logger.info(f"Retrieval finished: source={source.value}, rows={len(rows)}")
        return RetrievalRun(analysis=analysis, result=result, stages=tuple(stages))

    def _enter(self, stages: list[RetrievalStage], stage: RetrievalStage) -> None:
        stages.append(stage)
        add_span_event("retrieval.stage", {"stage": stage.value})
        logger.debug(f"Retrieval stage: {stage.value}")

    async def _from_catalog(
        self,
        request: RetrievalRequest,
        analysis: RequestAnalysis,
        stages: list[RetrievalStage],
    ) -> Sequence[Mapping[str, Any]]:
        self._enter(stages, RetrievalStage.CATALOG_SEARCH)
        datasets = await self._gateway.search(analysis.search_terms or (request.prompt,))
        if not datasets:
            return []

        dataset = datasets[0]
        if not dataset.files:
            # File listing unavailable; pick the first tabular entry of the package
            self._enter(stages, RetrievalStage.CATALOG_DOWNLOAD)
            _, preview = await self._gateway.fetch_first_tabular_preview(dataset.ref)
        else:
            file_name = self._gateway.first_tabular_file(dataset.files)
            if file_name is None:
                logger.info(f"Dataset '{dataset.ref}' has no tabular file")
                return []
            self._enter(stages, RetrievalStage.CATALOG_DOWNLOAD)
            preview = await self._gateway.fetch_preview(dataset.ref, file_name)

        if not preview.rows:
            return []

        if set(analysis.columns) <= set(preview.columns):
            return preview.rows

        logger.info(
            f"Catalog columns {list(preview.columns)} do not cover "
            f"{list(analysis.columns)}; transforming"
        )
        conformed = await self._conformer.conform(
            preview.rows,
            analysis.columns,
            credential=request.credential,
        )
        return conformed.rows

    async def _from_fixtures(
        self,
        analysis: RequestAnalysis,
        limit: int,
        stages: list[RetrievalStage],
    ) -> Sequence[Mapping[str, Any]]:
        self._enter(stages, RetrievalStage.FIXTURE_LOOKUP)
        return self._fixtures.get_fixture_rows(analysis.entity_type, analysis.columns, limit)

    async def _from_synthetic(
        self,
        request: RetrievalRequest,
        analysis: RequestAnalysis,
        limit: int,
        stages: list[RetrievalStage],
    ) -> Sequence[Mapping[str, Any]]:
        self._enter(stages, RetrievalStage.SYNTHETIC_GENERATION)
        if limit <= 0:
            return []

        result = await self._router.complete(
            build_synthetic_prompt(analysis, limit),
            RowsSchema,
            credential=request.credential,
        )
        return [row for row in result.data if isinstance(row, Mapping)]
