"""
Log Sanitization

Redacts provider credentials from log records. Callers may hand the
service a per-request API key, so every record that can echo request
data passes through this filter before it reaches a handler.
"""

from __future__ import annotations

import logging
import re
from re import Pattern
from typing import Any

# Order matters: vendor-specific formats run before the generic key=value rules
SENSITIVE_PATTERNS: list[tuple[str, Pattern[str]]] = [
    # Anthropic: sk-ant-api03-...
    ("ANTHROPIC_KEY", re.compile(r"sk-ant-[a-zA-Z0-9\-_]{20,}", re.IGNORECASE)),
    # OpenAI: sk-... or sk-proj-...
    ("OPENAI_KEY", re.compile(r"sk-[a-zA-Z0-9\-_]{20,}", re.IGNORECASE)),
    # Groq: gsk_...
    ("GROQ_KEY", re.compile(r"gsk_[a-zA-Z0-9]{20,}")),
    # Google AI Studio / Gemini: AIza...
    ("GOOGLE_KEY", re.compile(r"AIza[0-9A-Za-z\-_]{30,}")),
    # Query-string keys (Gemini REST passes ?key=...)
    ("QUERY_KEY", re.compile(r"([?&]key=)[^&\s]+", re.IGNORECASE)),
    (
        "API_KEY",
        re.compile(r"(api[_-]?key|apikey)\s*[=:]\s*['\"]?[\w\-]{16,}['\"]?", re.IGNORECASE),
    ),
    (
        "SECRET",
        re.compile(
            r"(secret|password|passwd|pwd)\s*[=:]\s*['\"]?[^\s'\"]{8,}['\"]?", re.IGNORECASE
        ),
    ),
    # Connection strings with embedded passwords
    ("PG_CONN", re.compile(r"postgres(?:ql)?://[^:\s]+:[^@\s]+@", re.IGNORECASE)),
    # Authorization headers
    ("BEARER", re.compile(r"Bearer\s+[a-zA-Z0-9\-_\.:]+", re.IGNORECASE)),
    ("BASIC_AUTH", re.compile(r"Basic\s+[a-zA-Z0-9+/=]{12,}", re.IGNORECASE)),
]

REDACTION_PLACEHOLDER = "[REDACTED]"

# Patterns whose first group is a prefix kept in front of the placeholder
_PREFIX_KEEPING = frozenset({"QUERY_KEY"})


class SanitizingFilter(logging.Filter):
    """
    Redacts credentials from a log record's message and arguments.

    Covers provider API keys (Anthropic, OpenAI, Groq, Google), generic
    ``api_key=...`` pairs, passwords, connection strings, and
    Authorization header values. Records are rewritten, never dropped.

    Usage:
        logger = logging.getLogger(__name__)
        logger.addFilter(SanitizingFilter())
    """

    def __init__(
        self,
        name: str = "",
        additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
        redaction_placeholder: str = REDACTION_PLACEHOLDER,
    ):
        """
        Args:
            name: Filter name (passed to parent)
            additional_patterns: Extra (name, pattern) pairs, applied after the defaults
            redaction_placeholder: Text that replaces each match
        """
        super().__init__(name)
        self._patterns = [*SENSITIVE_PATTERNS, *(additional_patterns or ())]
        self._placeholder = redaction_placeholder

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = self.sanitize(str(record.msg))
        if isinstance(record.args, dict):
            record.args = {key: self._scrub(value) for key, value in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._scrub(arg) for arg in record.args)
        return True

    def sanitize(self, text: str) -> str:
        """Return ``text`` with every sensitive match replaced."""
        for pattern_name, pattern in self._patterns:
            if pattern_name in _PREFIX_KEEPING:
                text = pattern.sub(lambda m: m.group(1) + self._placeholder, text)
            else:
                text = pattern.sub(f"{pattern_name}={self._placeholder}", text)
        return text

    def _scrub(self, value: Any) -> Any:
        return self.sanitize(value) if isinstance(value, str) else value


def _has_sanitizer(filterer: logging.Filterer) -> bool:
    return any(isinstance(f, SanitizingFilter) for f in filterer.filters)


def configure_sanitized_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
) -> None:
    """
    Configure the root logger with sanitization enabled.

    The filter goes on the root logger and on each of its handlers, since
    handler filters are what see records propagated from child loggers.
    Calling this again does not stack filters.

    Args:
        level: Logging level (int or name such as "INFO")
        format_string: Log format string (uses default if not specified)
        additional_patterns: Extra patterns to redact
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=format_string or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    sanitizing_filter = SanitizingFilter(additional_patterns=additional_patterns)
    for target in (root_logger, *root_logger.handlers):
        if not _has_sanitizer(target):
            target.addFilter(sanitizing_filter)


def get_sanitized_logger(name: str) -> logging.Logger:
    """Logger for ``name`` with exactly one SanitizingFilter attached."""
    logger = logging.getLogger(name)
    if not _has_sanitizer(logger):
        logger.addFilter(SanitizingFilter())
    return logger
