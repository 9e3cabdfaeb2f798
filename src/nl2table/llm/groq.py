"""
Groq LLM Backend

Calls Groq's OpenAI-compatible chat completions endpoint over httpx.
"""

from __future__ import annotations

from typing import Any

from src.nl2table.llm.http_backend import HttpJsonBackend
from src.nl2table.llm.protocols import BackendName, CompletionRequest


class GroqBackend(HttpJsonBackend):
    """Groq hosted open-weight models; the fastest and cheapest tier."""

    backend_name = BackendName.GROQ
    base_url = "https://api.groq.com/openai/v1"
    fallback_model = "llama-3.3-70b-versatile"

    def _build_call(
        self,
        request: CompletionRequest,
        api_key: str,
        model: str,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.prompt},
            ],
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
        }
        return "/chat/completions", headers, payload

    def _extract_text(self, data: dict[str, Any]) -> str | None:
        choices = data.get("choices") or []
        if not choices:
            return None
        return choices[0]["message"].get("content")
