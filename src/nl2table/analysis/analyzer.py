"""
Request Analyzer

Turns a free-text data request into a RequestAnalysis with one structured
completion call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.nl2table.analysis.schemas import AnalysisSchema
from src.nl2table.exceptions import AnalysisFailed
from src.nl2table.models import (
    EntityType,
    ProviderCredential,
    RequestAnalysis,
    SourcePreference,
    Strategy,
)

if TYPE_CHECKING:
    from src.nl2table.llm.router import StructuredCompletionRouter

logger = logging.getLogger(__name__)


ANALYSIS_PROMPT = """Analyze this data request and determine the table structure needed.

Request: "{prompt}"
Data Source Preference: {preference}

Return a JSON object with:
- "entityType": one of {entity_types}
- "columns": the column names the table should have, in display order
- "estimatedRows": how many rows the user wants (integer)
- "searchStrategy": one of {strategies}
- "searchTerms": keywords for searching public dataset catalogs
- "reasoning": one sentence explaining the choices"""


def build_analysis_prompt(prompt: str, source_preference: SourcePreference) -> str:
    """Render the analysis prompt. Depends only on its arguments."""
    return ANALYSIS_PROMPT.format(
        prompt=prompt.strip(),
        preference=source_preference.value,
        entity_types=", ".join(e.value for e in EntityType),
        strategies=", ".join(s.value for s in Strategy),
    )


class RequestAnalyzer:
    """Extracts structured intent from a request via the completion router."""

    def __init__(self, router: StructuredCompletionRouter):
        self._router = router

    async def analyze(
        self,
        prompt: str,
        source_preference: SourcePreference = SourcePreference.AUTO,
        credential: ProviderCredential | None = None,
    ) -> RequestAnalysis:
        """
        Analyze a request.

        Args:
            prompt: The user's free-text request
            source_preference: Where the user would like data to come from
            credential: Optional per-call LLM backend selection

        Returns:
            RequestAnalysis with unique, stripped column names

        Raises:
            AnalysisFailed: If the router fails for any reason
        """
        try:
            result = await self._router.complete(
                build_analysis_prompt(prompt, source_preference),
                AnalysisSchema,
                credential=credential,
            )
        except Exception as e:
            logger.warning(f"Request analysis failed: {e}")
            raise AnalysisFailed(f"Could not analyze request: {e}") from e

        analysis = RequestAnalysis(
            entity_type=result.entityType,
            columns=tuple(result.columns),
            estimated_row_count=result.estimatedRows,
            strategy=result.searchStrategy,
            search_terms=tuple(result.searchTerms),
            rationale=result.reasoning,
        )
        logger.info(
            f"Analyzed request: entity={analysis.entity_type.value}, "
            f"strategy={analysis.strategy.value}, columns={len(analysis.columns)}, "
            f"rows={analysis.estimated_row_count}"
        )
        return analysis
