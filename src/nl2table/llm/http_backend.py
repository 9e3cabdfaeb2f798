"""
Shared plumbing for backends spoken to over plain HTTP JSON.

Authentication headers are built per request, so one pooled client can
serve concurrent calls that carry different caller keys.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.nl2table.exceptions import MissingCredentialError, UpstreamUnavailable
from src.nl2table.llm.protocols import BackendName, CompletionRequest

logger = logging.getLogger(__name__)


class HttpJsonBackend:
    """
    Base class for HTTP JSON chat backends.

    Subclasses set ``backend_name`` and ``base_url`` and implement
    ``_build_call`` and ``_extract_text``.
    """

    backend_name: BackendName
    base_url: str
    fallback_model: str = ""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            api_key: Key from process configuration (may be None)
            model: Default model for this backend
            timeout_seconds: Per-request HTTP timeout
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self._api_key = api_key
        self._model = model or self.fallback_model
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> BackendName:
        return self.backend_name

    @property
    def default_model(self) -> str:
        return self._model

    def is_configured(self, api_key: str | None = None) -> bool:
        return bool(api_key or self._api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _resolve_key(self, api_key: str | None) -> str:
        key = api_key or self._api_key
        if not key:
            raise MissingCredentialError(self.backend_name.value)
        return key

    def _build_call(
        self,
        request: CompletionRequest,
        api_key: str,
        model: str,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (path, headers, json body) for one completion call."""
        raise NotImplementedError

    def _extract_text(self, data: dict[str, Any]) -> str | None:
        """Pull the generated text out of a decoded response body."""
        raise NotImplementedError

    async def complete_text(
        self,
        request: CompletionRequest,
        *,
        api_key: str | None = None,
        model: str | None = None,
    ) -> str:
        name = self.backend_name.value
        key = self._resolve_key(api_key)
        path, headers, payload = self._build_call(request, key, model or self._model)

        try:
            response = await self._get_client().post(path, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{name} request failed: {e}", source=name) from e

        if response.status_code >= 400:
            raise UpstreamUnavailable(
                f"{name} returned HTTP {response.status_code}: {response.text[:200]}",
                source=name,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamUnavailable(f"{name} returned a non-JSON body", source=name) from e

        try:
            text = self._extract_text(data)
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamUnavailable(f"{name} response has unexpected shape", source=name) from e

        if not text:
            raise UpstreamUnavailable(f"{name}: no content in response", source=name)

        logger.debug(f"{name} returned {len(text)} characters")
        return text
