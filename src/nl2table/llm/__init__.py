"""
LLM backends and the structured completion router.

Usage:
    from src.nl2table.llm import StructuredCompletionRouter, create_default_backends

    router = StructuredCompletionRouter(create_default_backends(config))
    analysis = await router.complete(prompt, AnalysisSchema)
"""

from src.nl2table.llm.factory import create_backend, create_default_backends
from src.nl2table.llm.parsing import parse_structured, schema_instructions, strip_code_fence
from src.nl2table.llm.protocols import (
    FALLBACK_ORDER,
    BackendName,
    CompletionRequest,
    StructuredBackend,
)
from src.nl2table.llm.router import StructuredCompletionRouter

__all__ = [
    "FALLBACK_ORDER",
    "BackendName",
    "CompletionRequest",
    "StructuredBackend",
    "StructuredCompletionRouter",
    "create_backend",
    "create_default_backends",
    "parse_structured",
    "schema_instructions",
    "strip_code_fence",
]
