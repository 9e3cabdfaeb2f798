"""
Cohere LLM Backend

Calls Cohere's v2 chat endpoint over httpx.
"""

from __future__ import annotations

from typing import Any

from src.nl2table.llm.http_backend import HttpJsonBackend
from src.nl2table.llm.protocols import BackendName, CompletionRequest


class CohereBackend(HttpJsonBackend):
    """Cohere Command models."""

    backend_name = BackendName.COHERE
    base_url = "https://api.cohere.com/v2"
    fallback_model = "command-r-plus"

    def _build_call(
        self,
        request: CompletionRequest,
        api_key: str,
        model: str,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.prompt},
            ],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        return "/chat", headers, payload

    def _extract_text(self, data: dict[str, Any]) -> str | None:
        # v2 responses: {"message": {"content": [{"type": "text", "text": "..."}]}}
        blocks = data["message"].get("content") or []
        return "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
