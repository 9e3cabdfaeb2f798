"""
Structured output parsing.

Turns a backend's raw text into a validated pydantic model.
"""

from __future__ import annotations

import json
import re
from typing import TypeVar

import pydantic
from pydantic import BaseModel

from src.nl2table.exceptions import ValidationError

M = TypeVar("M", bound=BaseModel)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a single Markdown code fence (```json ... ```) around ``text``."""
    match = _FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_structured(text: str, schema: type[M], source: str | None = None) -> M:
    """
    Parse ``text`` as JSON and validate it against ``schema``.

    Args:
        text: Raw model output, optionally wrapped in a code fence
        schema: Pydantic model the value must satisfy
        source: Backend name for error messages

    Returns:
        A validated instance of ``schema``

    Raises:
        ValidationError: If the text is not JSON or fails validation
    """
    origin = f"{source}: " if source else ""
    body = strip_code_fence(text)
    if not body:
        raise ValidationError(f"{origin}empty response")

    try:
        value = json.loads(body)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{origin}response is not valid JSON: {e.msg}") from e

    try:
        return schema.model_validate(value)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"{origin}response does not match {schema.__name__}: {e.error_count()} error(s)"
        ) from e


def schema_instructions(schema: type[BaseModel]) -> str:
    """System prompt asking for JSON that satisfies ``schema``."""
    return (
        "You are a helpful assistant. Respond ONLY with valid JSON that conforms "
        "to this JSON Schema. Do not add explanations, markdown, or code fences.\n"
        f"{json.dumps(schema.model_json_schema(), sort_keys=True)}"
    )
