"""
OpenAI LLM Backend

Adapts the OpenAI chat completions API to the StructuredBackend protocol.
Uses JSON mode so replies parse without fence stripping.
"""

from __future__ import annotations

import logging
from typing import Any

import openai

from src.nl2table.exceptions import MissingCredentialError, UpstreamUnavailable
from src.nl2table.llm.protocols import BackendName, CompletionRequest

logger = logging.getLogger(__name__)


class OpenAIBackend:
    """Backend using OpenAI's chat completions API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o",
        timeout_seconds: float = 30.0,
        client: Any | None = None,
    ):
        """
        Args:
            api_key: OpenAI API key from process configuration
            model: Default model name
            timeout_seconds: SDK request timeout
            client: Pre-built AsyncOpenAI client (tests pass a mock)
        """
        self._api_key = api_key
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._client = client

    @property
    def name(self) -> BackendName:
        return BackendName.OPENAI

    @property
    def default_model(self) -> str:
        return self._model

    def is_configured(self, api_key: str | None = None) -> bool:
        return bool(api_key or self._api_key or self._client is not None)

    def _new_client(self, api_key: str) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(
            api_key=api_key,
            timeout=self._timeout_seconds,
            max_retries=0,
        )

    def _shared_client(self) -> Any:
        if self._client is None:
            if not self._api_key:
                raise MissingCredentialError(self.name.value)
            self._client = self._new_client(self._api_key)
        return self._client

    async def complete_text(
        self,
        request: CompletionRequest,
        *,
        api_key: str | None = None,
        model: str | None = None,
    ) -> str:
        # max_completion_tokens replaces max_tokens on newer models
        kwargs: dict[str, Any] = {
            "model": model or self._model,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.prompt},
            ],
            "max_completion_tokens": request.max_tokens,
            "temperature": request.temperature,
            "response_format": {"type": "json_object"},
        }

        try:
            if api_key and api_key != self._api_key:
                async with self._new_client(api_key) as client:
                    response = await client.chat.completions.create(**kwargs)
            else:
                response = await self._shared_client().chat.completions.create(**kwargs)
        except openai.OpenAIError as e:
            raise UpstreamUnavailable(f"openai request failed: {e}", source="openai") from e

        if not response.choices:
            raise UpstreamUnavailable("openai: no choices in response", source="openai")

        text = response.choices[0].message.content
        if not text:
            raise UpstreamUnavailable("openai: no content in response", source="openai")

        logger.debug(
            f"openai returned {len(text)} characters "
            f"(finish_reason={response.choices[0].finish_reason})"
        )
        return text

    async def close(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None
