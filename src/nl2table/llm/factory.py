"""
LLM Backend Factory

Builds backend adapters from configuration.
"""

from __future__ import annotations

from src.nl2table.config import NL2TableConfig
from src.nl2table.llm.protocols import FALLBACK_ORDER, BackendName, StructuredBackend


def create_backend(name: BackendName, config: NL2TableConfig) -> StructuredBackend:
    """
    Create a single backend adapter.

    The adapter is created even without a configured key; a per-call key can
    still make it usable.

    Args:
        name: Which backend to build
        config: Service configuration (keys, default models, timeout)

    Returns:
        StructuredBackend instance
    """
    api_key = config.backend_api_key(name.value)
    model = config.backend_model(name.value)
    timeout = config.llm_timeout_seconds

    if name == BackendName.GROQ:
        from src.nl2table.llm.groq import GroqBackend

        return GroqBackend(api_key=api_key, model=model, timeout_seconds=timeout)

    elif name == BackendName.COHERE:
        from src.nl2table.llm.cohere import CohereBackend

        return CohereBackend(api_key=api_key, model=model, timeout_seconds=timeout)

    elif name == BackendName.GEMINI:
        from src.nl2table.llm.gemini import GeminiBackend

        return GeminiBackend(api_key=api_key, model=model, timeout_seconds=timeout)

    elif name == BackendName.ANTHROPIC:
        from src.nl2table.llm.claude import ClaudeBackend

        return ClaudeBackend(api_key=api_key, model=model, timeout_seconds=timeout)

    elif name == BackendName.OPENAI:
        from src.nl2table.llm.openai import OpenAIBackend

        return OpenAIBackend(api_key=api_key, model=model, timeout_seconds=timeout)

    else:
        raise ValueError(f"Unknown LLM backend: {name}")


def create_default_backends(config: NL2TableConfig) -> list[StructuredBackend]:
    """One adapter per known backend, in fallback order."""
    return [create_backend(name, config) for name in FALLBACK_ORDER]
