"""
Structured Completion Router

Sends a prompt plus a result schema to an LLM backend and returns a
validated pydantic instance. With no explicit provider, backends are tried
in the fixed fallback order until one returns schema-valid JSON.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Sequence
from typing import TypeVar

from pydantic import BaseModel

from src.common.resilience import FallbackExhausted, FallbackOutcome, first_success
from src.common.telemetry import NL2TableMetrics, get_nl2table_metrics, trace_span
from src.nl2table.exceptions import (
    ConfigurationError,
    MissingCredentialError,
    NoProviderAvailable,
    UpstreamUnavailable,
    ValidationError,
)
from src.nl2table.llm.parsing import parse_structured, schema_instructions
from src.nl2table.llm.protocols import (
    FALLBACK_ORDER,
    BackendName,
    CompletionRequest,
    StructuredBackend,
)
from src.nl2table.models import ProviderCredential

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class StructuredCompletionRouter:
    """
    Routes structured completions across LLM backends.

    The router holds no per-request state. A caller's credential flows as
    explicit arguments into the one backend call it applies to.
    """

    def __init__(
        self,
        backends: Sequence[StructuredBackend],
        timeout_seconds: float = 30.0,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        metrics: NL2TableMetrics | None = None,
    ):
        """
        Initialize the router.

        Args:
            backends: Available backend adapters (any order; at most one per name)
            timeout_seconds: Time box for each backend attempt
            temperature: Sampling temperature for every call
            max_tokens: Maximum tokens per completion
            metrics: Metrics sink (defaults to the global instance)
        """
        self._backends: dict[BackendName, StructuredBackend] = {}
        for backend in backends:
            if backend.name in self._backends:
                raise ValueError(f"Duplicate backend: {backend.name.value}")
            self._backends[backend.name] = backend

        self._timeout_seconds = timeout_seconds
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._metrics = metrics or get_nl2table_metrics()

    @property
    def backend_names(self) -> list[BackendName]:
        """Registered backends in fallback order."""
        return [name for name in FALLBACK_ORDER if name in self._backends]

    async def complete(
        self,
        prompt: str,
        schema: type[M],
        credential: ProviderCredential | None = None,
    ) -> M:
        """
        Get a schema-valid structured completion.

        Args:
            prompt: User prompt
            schema: Pydantic model the response must validate against
            credential: Optional per-call backend selection and key

        Returns:
            A validated instance of ``schema``

        Raises:
            ConfigurationError: Unknown or unconfigured explicit provider
            UpstreamUnavailable: Explicit provider call failed or timed out
            ValidationError: Explicit provider returned invalid output
            NoProviderAvailable: Every backend failed in fallback mode
        """
        request = CompletionRequest(
            system=schema_instructions(schema),
            prompt=prompt,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )

        explicit = credential if credential is not None and credential.provider_id else None
        with trace_span(
            "llm.router.complete",
            {"llm.schema": schema.__name__, "llm.explicit_provider": explicit is not None},
        ) as span:
            if explicit is not None:
                backend = self._explicit_backend(explicit)
                span.set_attribute("llm.backend", backend.name.value)
                return await self._attempt(
                    backend,
                    request,
                    schema,
                    api_key=explicit.api_key,
                    model=explicit.model,
                )

            outcome = await self._fallback(request, schema)
            span.set_attribute("llm.backend", outcome.name)
            return outcome.value

    def _explicit_backend(self, credential: ProviderCredential) -> StructuredBackend:
        provider_id = credential.provider_id or ""
        name = BackendName.parse(provider_id)
        if name is None:
            known = ", ".join(n.value for n in FALLBACK_ORDER)
            raise ConfigurationError(f"Unknown provider '{provider_id}' (expected one of: {known})")

        backend = self._backends.get(name)
        if backend is None:
            raise ConfigurationError(f"Provider '{name.value}' is not enabled")
        if not backend.is_configured(credential.api_key):
            raise MissingCredentialError(name.value)
        return backend

    async def _fallback(self, request: CompletionRequest, schema: type[M]) -> FallbackOutcome[M]:
        skipped: list[str] = []
        attempts = []
        for name in self.backend_names:
            backend = self._backends[name]
            if not backend.is_configured():
                logger.debug(f"Skipping LLM backend '{name.value}': no API key configured")
                skipped.append(f"{name.value}: skipped (no API key configured)")
                continue
            attempts.append(
                (name.value, functools.partial(self._attempt, backend, request, schema))
            )

        try:
            outcome = await first_success(attempts, label="llm.router")
        except FallbackExhausted as e:
            failures = skipped + [f.describe() for f in e.failures]
            logger.error(f"No LLM backend produced a valid {schema.__name__}")
            raise NoProviderAvailable(failures) from e

        if outcome.failures:
            logger.info(
                f"LLM backend '{outcome.name}' succeeded after "
                f"{len(outcome.failures)} failed attempt(s)"
            )
        return outcome

    async def _attempt(
        self,
        backend: StructuredBackend,
        request: CompletionRequest,
        schema: type[M],
        api_key: str | None = None,
        model: str | None = None,
    ) -> M:
        name = backend.name.value
        with trace_span(
            f"llm.backend.{name}",
            {"llm.backend": name, "llm.model": model or backend.default_model},
        ):
            try:
                text = await asyncio.wait_for(
                    backend.complete_text(request, api_key=api_key, model=model),
                    timeout=self._timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                self._metrics.record_backend_attempt(name, "error")
                raise UpstreamUnavailable(
                    f"{name} timed out after {self._timeout_seconds:.1f}s", source=name
                ) from e
            except Exception:
                self._metrics.record_backend_attempt(name, "error")
                raise

            try:
                result = parse_structured(text, schema, source=name)
            except ValidationError:
                self._metrics.record_backend_attempt(name, "invalid")
                raise

            self._metrics.record_backend_attempt(name, "success")
            return result
