"""
Structured Completion Protocols

Defines the closed set of LLM backends and the single capability each one
adapts its transport to: take a prompt, return the model's raw text.
Uses typing.Protocol for duck-typed interface definitions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class BackendName(str, Enum):
    """Known LLM backends, declared in fallback order (fast/cheap first)."""

    GROQ = "groq"
    COHERE = "cohere"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    OPENAI = "openai"

    @classmethod
    def parse(cls, value: str) -> BackendName | None:
        """Case-insensitive lookup; returns None for unknown names."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


FALLBACK_ORDER: tuple[BackendName, ...] = tuple(BackendName)


@dataclass(frozen=True)
class CompletionRequest:
    """A prompt ready to send to any backend."""

    system: str
    prompt: str
    temperature: float = 0.7
    max_tokens: int = 2048


@runtime_checkable
class StructuredBackend(Protocol):
    """
    Protocol for a single LLM backend.

    Implementations resolve the API key per call: an explicit ``api_key``
    argument wins over the key the backend was configured with. No call may
    store a per-request key on the instance.
    """

    @property
    def name(self) -> BackendName:
        """Which backend this is."""
        ...

    @property
    def default_model(self) -> str:
        """Model used when the caller does not pick one."""
        ...

    def is_configured(self, api_key: str | None = None) -> bool:
        """Whether a call with this (optional) override key could authenticate."""
        ...

    async def complete_text(
        self,
        request: CompletionRequest,
        *,
        api_key: str | None = None,
        model: str | None = None,
    ) -> str:
        """
        Send the request and return the model's raw text.

        Raises:
            MissingCredentialError: If no API key is available
            UpstreamUnavailable: If the transport call fails or returns no text
        """
        ...
