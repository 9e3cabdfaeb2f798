"""
Tests for StructuredCompletionRouter

Covers:
- Fallback order and stopping at the first valid response
- JSON, code fence and schema validation failures
- Explicit provider selection without fallback
- Per-call credential handling, including concurrent calls with different keys
- Timeouts
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import patch

import anthropic
import httpx
import openai
import pytest
from pydantic import BaseModel

from src.nl2table.exceptions import (
    ConfigurationError,
    MissingCredentialError,
    NoProviderAvailable,
    UpstreamUnavailable,
    ValidationError,
)
from src.nl2table.llm.claude import ClaudeBackend
from src.nl2table.llm.groq import GroqBackend
from src.nl2table.llm.openai import OpenAIBackend
from src.nl2table.llm.protocols import FALLBACK_ORDER, BackendName, StructuredBackend
from src.nl2table.llm.router import StructuredCompletionRouter
from src.nl2table.models import ProviderCredential
from tests.unit.nl2table.fakes import MockBackend


class Answer(BaseModel):
    answer: str
    score: int = 0


class SlowBackend(MockBackend):
    """Backend that never answers within the router's time box."""

    async def complete_text(self, request, *, api_key=None, model=None) -> str:
        self.calls.append({"request": request, "api_key": api_key, "model": model})
        await asyncio.sleep(5)
        return '{"answer": "too late"}'


def _router(*backends: MockBackend, timeout: float = 1.0) -> StructuredCompletionRouter:
    return StructuredCompletionRouter(list(backends), timeout_seconds=timeout)


class TestFallback:
    """Tests for fallback across backends."""

    def test_fallback_order_is_fast_first(self) -> None:
        """Groq, Cohere, Gemini, Anthropic, OpenAI."""
        assert [b.value for b in FALLBACK_ORDER] == ["groq", "cohere", "gemini", "anthropic", "openai"]

    def test_backend_names_follow_fallback_order(self) -> None:
        """Registration order does not change the attempt order."""
        router = _router(
            MockBackend(BackendName.OPENAI),
            MockBackend(BackendName.GROQ),
            MockBackend(BackendName.GEMINI),
        )
        assert router.backend_names == [BackendName.GROQ, BackendName.GEMINI, BackendName.OPENAI]

    def test_duplicate_backend_rejected(self) -> None:
        """One adapter per backend name."""
        with pytest.raises(ValueError):
            _router(MockBackend(BackendName.GROQ), MockBackend(BackendName.GROQ))

    def test_mock_backend_satisfies_protocol(self) -> None:
        """MockBackend is a StructuredBackend."""
        assert isinstance(MockBackend(BackendName.GROQ), StructuredBackend)

    @pytest.mark.asyncio
    async def test_failure_then_invalid_json_then_valid(self) -> None:
        """A raises, B returns non-JSON, C is valid: C's value wins and D is never called."""
        a = MockBackend(BackendName.GROQ, [UpstreamUnavailable("503", source="groq")])
        b = MockBackend(BackendName.COHERE, ["Sure! Here is your data."])
        c = MockBackend(BackendName.GEMINI, ['{"answer": "from gemini", "score": 3}'])
        d = MockBackend(BackendName.ANTHROPIC, ['{"answer": "from anthropic"}'])

        result = await _router(a, b, c, d).complete("question", Answer)

        assert result == Answer(answer="from gemini", score=3)
        assert (a.call_count, b.call_count, c.call_count, d.call_count) == (1, 1, 1, 0)

    @pytest.mark.asyncio
    async def test_schema_mismatch_falls_through(self) -> None:
        """Valid JSON that fails schema validation counts as a failure."""
        a = MockBackend(BackendName.GROQ, ['{"wrong": "shape"}'])
        b = MockBackend(BackendName.OPENAI, ['{"answer": "ok"}'])

        result = await _router(a, b).complete("q", Answer)

        assert result.answer == "ok"

    @pytest.mark.asyncio
    async def test_code_fenced_response_is_accepted(self) -> None:
        """A Markdown fence around the JSON is stripped."""
        a = MockBackend(BackendName.GROQ, ['```json\n{"answer": "fenced"}\n```'])

        result = await _router(a).complete("q", Answer)

        assert result.answer == "fenced"

    @pytest.mark.asyncio
    async def test_unconfigured_backends_are_skipped(self) -> None:
        """Backends without a key are not called."""
        a = MockBackend(BackendName.GROQ, api_key=None)
        b = MockBackend(BackendName.COHERE, ['{"answer": "cohere"}'])

        result = await _router(a, b).complete("q", Answer)

        assert result.answer == "cohere"
        assert a.call_count == 0

    @pytest.mark.asyncio
    async def test_all_failures_raise_no_provider(self) -> None:
        """Exhaustion lists every backend's failure."""
        a = MockBackend(BackendName.GROQ, ["not json"])
        b = MockBackend(BackendName.COHERE, [UpstreamUnavailable("down", source="cohere")])
        c = MockBackend(BackendName.GEMINI, api_key=None)

        with pytest.raises(NoProviderAvailable) as exc_info:
            await _router(a, b, c).complete("q", Answer)

        failures = exc_info.value.failures
        assert len(failures) == 3
        assert any(f.startswith("gemini: skipped") for f in failures)
        assert any(f.startswith("groq:") for f in failures)
        assert any(f.startswith("cohere:") for f in failures)

    @pytest.mark.asyncio
    async def test_no_backends_raise_no_provider(self) -> None:
        """An empty router cannot complete anything."""
        with pytest.raises(NoProviderAvailable):
            await _router().complete("q", Answer)

    @pytest.mark.asyncio
    async def test_timeout_becomes_upstream_failure_and_falls_through(self) -> None:
        """A slow backend is abandoned after the time box."""
        slow = SlowBackend(BackendName.GROQ)
        fast = MockBackend(BackendName.COHERE, ['{"answer": "fast"}'])

        result = await _router(slow, fast, timeout=0.05).complete("q", Answer)

        assert result.answer == "fast"
        assert slow.call_count == 1

    @pytest.mark.asyncio
    async def test_credential_without_provider_uses_configured_keys(self) -> None:
        """In fallback mode a per-call key is not sent to arbitrary backends."""
        a = MockBackend(BackendName.GROQ, ['{"answer": "ok"}'])

        await _router(a).complete("q", Answer, credential=ProviderCredential(api_key="user-key"))

        assert a.calls[0]["api_key"] is None

    @pytest.mark.asyncio
    async def test_system_prompt_embeds_schema(self) -> None:
        """Backends receive JSON-only instructions with the schema."""
        a = MockBackend(BackendName.GROQ, ['{"answer": "ok"}'])

        await _router(a).complete("the prompt", Answer)

        request = a.calls[0]["request"]
        assert request.prompt == "the prompt"
        assert '"answer"' in request.system


class TestExplicitProvider:
    """Tests for explicit provider selection."""

    @pytest.mark.asyncio
    async def test_calls_only_the_named_backend(self) -> None:
        """The named backend is used even if earlier ones would work."""
        groq = MockBackend(BackendName.GROQ, ['{"answer": "groq"}'])
        openai = MockBackend(BackendName.OPENAI, ['{"answer": "openai"}'])

        result = await _router(groq, openai).complete(
            "q", Answer, credential=ProviderCredential(provider_id="openai")
        )

        assert result.answer == "openai"
        assert groq.call_count == 0

    @pytest.mark.asyncio
    async def test_failure_is_raised_without_fallback(self) -> None:
        """Transport failure of the explicit backend propagates as-is."""
        groq = MockBackend(BackendName.GROQ, ['{"answer": "groq"}'])
        anthropic = MockBackend(BackendName.ANTHROPIC, [UpstreamUnavailable("overloaded", source="anthropic")])

        with pytest.raises(UpstreamUnavailable, match="overloaded"):
            await _router(groq, anthropic).complete(
                "q", Answer, credential=ProviderCredential(provider_id="anthropic")
            )

        assert groq.call_count == 0
        assert anthropic.call_count == 1

    @pytest.mark.asyncio
    async def test_invalid_output_is_raised_without_fallback(self) -> None:
        """Schema failure of the explicit backend propagates as ValidationError."""
        cohere = MockBackend(BackendName.COHERE, ['{"nope": 1}'])
        gemini = MockBackend(BackendName.GEMINI, ['{"answer": "gemini"}'])

        with pytest.raises(ValidationError):
            await _router(cohere, gemini).complete(
                "q", Answer, credential=ProviderCredential(provider_id="cohere")
            )

        assert gemini.call_count == 0

    @pytest.mark.asyncio
    async def test_key_and_model_are_passed_per_call(self) -> None:
        """The caller's key and model reach the adapter and nothing else."""
        groq = MockBackend(BackendName.GROQ, ['{"answer": "ok"}'], api_key=None)
        router = _router(groq)

        await router.complete(
            "q",
            Answer,
            credential=ProviderCredential(provider_id="GROQ", model="llama-x", api_key="user-key"),
        )

        assert groq.calls[0]["api_key"] == "user-key"
        assert groq.calls[0]["model"] == "llama-x"
        # Nothing leaks into the next, credential-less call
        with pytest.raises(NoProviderAvailable):
            await router.complete("q", Answer)

    @pytest.mark.asyncio
    async def test_unknown_provider_is_configuration_error(self) -> None:
        """Unknown ids fail at the boundary."""
        groq = MockBackend(BackendName.GROQ)

        with pytest.raises(ConfigurationError, match="Unknown provider"):
            await _router(groq).complete("q", Answer, credential=ProviderCredential(provider_id="mistral"))

        assert groq.call_count == 0

    @pytest.mark.asyncio
    async def test_unregistered_provider_is_configuration_error(self) -> None:
        """A known name without an adapter is not enabled."""
        with pytest.raises(ConfigurationError, match="not enabled"):
            await _router(MockBackend(BackendName.GROQ)).complete(
                "q", Answer, credential=ProviderCredential(provider_id="openai")
            )

    @pytest.mark.asyncio
    async def test_explicit_provider_without_any_key(self) -> None:
        """No configured key and no per-call key raises MissingCredentialError."""
        gemini = MockBackend(BackendName.GEMINI, api_key=None)

        with pytest.raises(MissingCredentialError):
            await _router(gemini).complete("q", Answer, credential=ProviderCredential(provider_id="gemini"))

        assert gemini.call_count == 0


class KeyEcho:
    """
    Async MockTransport handler that answers with the key it was called with.

    Every request is held until ``expected`` requests are in flight, so the
    calls under test genuinely overlap.
    """

    def __init__(self, header: str, reply, expected: int = 2):
        self.header = header
        self.reply = reply
        self.expected = expected
        self.seen: list[str] = []
        self._all_in_flight = asyncio.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        key = request.headers[self.header].removeprefix("Bearer ")
        self.seen.append(key)
        if len(self.seen) >= self.expected:
            self._all_in_flight.set()
        await asyncio.wait_for(self._all_in_flight.wait(), timeout=2.0)
        return httpx.Response(200, json=self.reply(json.dumps({"answer": key})))


def _chat_completion(content: str) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4o",
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
    }


def _anthropic_message(content: str) -> dict:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-20250514",
        "content": [{"type": "text", "text": content}],
        "stop_reason": "end_turn",
        "stop_sequence": None,
        "usage": {"input_tokens": 1, "output_tokens": 1},
    }


async def _complete_concurrently(router: StructuredCompletionRouter, provider: str) -> list[Answer]:
    return await asyncio.gather(
        router.complete("q", Answer, ProviderCredential(provider_id=provider, api_key="k1")),
        router.complete("q", Answer, ProviderCredential(provider_id=provider, api_key="k2")),
    )


class TestConcurrentCredentials:
    """Concurrent calls with different keys on one backend stay isolated."""

    @pytest.mark.asyncio
    async def test_groq_requests_carry_their_own_key(self) -> None:
        handler = KeyEcho("authorization", lambda content: {"choices": [{"message": {"content": content}}]})
        backend = GroqBackend(api_key="gsk-configured", transport=httpx.MockTransport(handler))
        router = StructuredCompletionRouter([backend], timeout_seconds=5.0)

        first, second = await _complete_concurrently(router, "groq")

        assert (first.answer, second.answer) == ("k1", "k2")
        assert sorted(handler.seen) == ["k1", "k2"]
        await backend.close()

    @pytest.mark.asyncio
    async def test_anthropic_scoped_clients_carry_their_own_key(self) -> None:
        handler = KeyEcho("x-api-key", _anthropic_message)
        backend = ClaudeBackend(api_key="sk-ant-configured")

        def scoped_client(api_key: str) -> anthropic.AsyncAnthropic:
            return anthropic.AsyncAnthropic(
                api_key=api_key,
                max_retries=0,
                http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            )

        router = StructuredCompletionRouter([backend], timeout_seconds=5.0)
        with patch.object(backend, "_new_client", side_effect=scoped_client):
            first, second = await _complete_concurrently(router, "anthropic")

        assert (first.answer, second.answer) == ("k1", "k2")
        assert sorted(handler.seen) == ["k1", "k2"]

    @pytest.mark.asyncio
    async def test_openai_scoped_clients_carry_their_own_key(self) -> None:
        handler = KeyEcho("authorization", _chat_completion)
        backend = OpenAIBackend(api_key="sk-configured")

        def scoped_client(api_key: str) -> openai.AsyncOpenAI:
            return openai.AsyncOpenAI(
                api_key=api_key,
                max_retries=0,
                http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            )

        router = StructuredCompletionRouter([backend], timeout_seconds=5.0)
        with patch.object(backend, "_new_client", side_effect=scoped_client):
            first, second = await _complete_concurrently(router, "openai")

        assert (first.answer, second.answer) == ("k1", "k2")
        assert sorted(handler.seen) == ["k1", "k2"]
