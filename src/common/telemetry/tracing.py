"""
Tracing Utilities.

Inline span helpers on top of the configured tracer.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from src.common.telemetry.setup import get_tracer

logger = logging.getLogger(__name__)


def record_exception(exception: BaseException, span: Any = None) -> None:
    """
    Record an exception on the current or specified span.

    Args:
        exception: The exception to record
        span: Optional span (uses current span if not provided)
    """
    span = span or trace.get_current_span()
    if span.is_recording():
        span.record_exception(exception)
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def add_span_event(name: str, attributes: dict[str, Any] | None = None) -> None:
    """Add an event to the current span, e.g. ``add_span_event("cache_hit")``."""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Any, None, None]:
    """
    Context manager for creating a traced span.

    Args:
        name: Span name (e.g., "catalog.search", "llm.router.complete")
        attributes: Optional initial span attributes

    Yields:
        The active span

    Example:
        with trace_span("catalog.fetch_preview", {"catalog.ref": ref}) as span:
            preview = await self._download_preview(ref, file_name)
            span.set_attribute("catalog.rows", len(preview))
    """
    tracer = get_tracer()

    with tracer.start_as_current_span(name, record_exception=False) as span:
        if attributes:
            span.set_attributes(attributes)
        try:
            yield span
        except Exception as e:
            record_exception(e, span)
            raise
