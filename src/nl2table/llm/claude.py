"""
Claude (Anthropic) LLM Backend

Adapts the Anthropic Messages API to the StructuredBackend protocol.
"""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from src.nl2table.exceptions import MissingCredentialError, UpstreamUnavailable
from src.nl2table.llm.protocols import BackendName, CompletionRequest

logger = logging.getLogger(__name__)


class ClaudeBackend:
    """
    Backend using Anthropic's Claude API.

    The configured key gets a long-lived client. A caller-supplied key gets a
    client scoped to that one call, closed when the call returns.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-20250514",
        timeout_seconds: float = 30.0,
        client: Any | None = None,
    ):
        """
        Args:
            api_key: Anthropic API key from process configuration
            model: Default model name
            timeout_seconds: SDK request timeout
            client: Pre-built AsyncAnthropic client (tests pass a mock)
        """
        self._api_key = api_key
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._client = client

    @property
    def name(self) -> BackendName:
        return BackendName.ANTHROPIC

    @property
    def default_model(self) -> str:
        return self._model

    def is_configured(self, api_key: str | None = None) -> bool:
        return bool(api_key or self._api_key or self._client is not None)

    def _new_client(self, api_key: str) -> anthropic.AsyncAnthropic:
        # The router owns retries across backends
        return anthropic.AsyncAnthropic(
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
        kwargs: dict[str, Any] = {
            "model": model or self._model,
            "system": request.system,
            "messages": [{"role": "user", "content": request.prompt}],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }

        try:
            if api_key and api_key != self._api_key:
                async with self._new_client(api_key) as client:
                    response = await client.messages.create(**kwargs)
            else:
                response = await self._shared_client().messages.create(**kwargs)
        except anthropic.APIError as e:
            raise UpstreamUnavailable(f"anthropic request failed: {e}", source="anthropic") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise UpstreamUnavailable("anthropic: no text content in response", source="anthropic")

        logger.debug(
            f"anthropic returned {len(text)} characters (stop_reason={response.stop_reason})"
        )
        return text

    async def close(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
        self._client = None
