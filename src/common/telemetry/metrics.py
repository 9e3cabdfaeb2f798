"""
nl2table Metrics.

Provides pre-defined metrics for:
- Data generation requests by source and outcome
- LLM backend attempts
- File preview cache lookups
"""

from __future__ import annotations

import logging
from typing import Any

from src.common.telemetry.setup import get_meter

logger = logging.getLogger(__name__)


class NL2TableMetrics:
    """
    Counters and histograms for the data generation pipeline.

    Tracks:
    - Generate requests by source used and status
    - Request latency distribution
    - Backend attempts by backend and outcome
    - Preview cache hits and misses
    """

    def __init__(self, meter: Any | None = None, meter_name: str = "nl2table"):
        """
        Args:
            meter: Meter to create instruments on (defaults to the global one)
            meter_name: Name used when no meter is given
        """
        self._meter = meter or get_meter(meter_name)

        self._requests_total = self._meter.create_counter(
            name="nl2table_generate_requests_total",
            description="Total data generation requests",
            unit="1",
        )
        self._request_duration = self._meter.create_histogram(
            name="nl2table_generate_duration_ms",
            description="Data generation request duration",
            unit="ms",
        )
        self._backend_attempts = self._meter.create_counter(
            name="nl2table_llm_backend_attempts_total",
            description="Structured completion attempts per LLM backend",
            unit="1",
        )
        self._preview_lookups = self._meter.create_counter(
            name="nl2table_preview_cache_lookups_total",
            description="File preview cache lookups",
            unit="1",
        )

    def record_generate(self, source: str | None, success: bool, duration_ms: float) -> None:
        """
        Record a completed GenerateData request.

        Args:
            source: Source that answered, or None on error
            success: Whether a result was produced
            duration_ms: Wall time of the request
        """
        try:
            attrs: dict[str, Any] = {
                "source": source or "none",
                "status": "success" if success else "error",
            }
            self._requests_total.add(1, attrs)
            if duration_ms > 0:
                self._request_duration.record(duration_ms, attrs)
        except Exception as e:
            logger.warning(f"Failed to record generate metrics: {e}")

    def record_backend_attempt(self, backend: str, outcome: str) -> None:
        """Record one backend attempt; outcome is "success", "invalid" or "error"."""
        try:
            self._backend_attempts.add(1, {"backend": backend, "outcome": outcome})
        except Exception as e:
            logger.warning(f"Failed to record backend metrics: {e}")

    def record_preview_lookup(self, hit: bool) -> None:
        try:
            self._preview_lookups.add(1, {"result": "hit" if hit else "miss"})
        except Exception as e:
            logger.warning(f"Failed to record preview cache metrics: {e}")


_nl2table_metrics: NL2TableMetrics | None = None


def get_nl2table_metrics() -> NL2TableMetrics:
    """Get the global nl2table metrics instance."""
    global _nl2table_metrics
    if _nl2table_metrics is None:
        _nl2table_metrics = NL2TableMetrics()
    return _nl2table_metrics
