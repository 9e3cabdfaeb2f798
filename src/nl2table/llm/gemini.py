"""
Gemini LLM Backend

Calls the Generative Language REST API (generateContent) over httpx.
The key travels in the x-goog-api-key header rather than the query
string, so it never appears in request URLs or access logs.
"""

from __future__ import annotations

from typing import Any

from src.nl2table.llm.http_backend import HttpJsonBackend
from src.nl2table.llm.protocols import BackendName, CompletionRequest


class GeminiBackend(HttpJsonBackend):
    """Google Gemini models."""

    backend_name = BackendName.GEMINI
    base_url = "https://generativelanguage.googleapis.com/v1beta"
    fallback_model = "gemini-1.5-flash"

    def _build_call(
        self,
        request: CompletionRequest,
        api_key: str,
        model: str,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        payload = {
            "systemInstruction": {"parts": [{"text": request.system}]},
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": request.temperature,
                "maxOutputTokens": request.max_tokens,
                "responseMimeType": "application/json",
            },
        }
        return f"/models/{model}:generateContent", headers, payload

    def _extract_text(self, data: dict[str, Any]) -> str | None:
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = candidates[0]["content"].get("parts") or []
        return "".join(p.get("text", "") for p in parts)
