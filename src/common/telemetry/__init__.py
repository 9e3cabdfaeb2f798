"""
Telemetry for nl2table.

Usage:
    from src.common.telemetry import init_telemetry, trace_span

    init_telemetry(service_name="nl2table", otlp_endpoint="http://localhost:4317")

    with trace_span("retrieval.run", {"retrieval.preference": "auto"}) as span:
        ...

    get_nl2table_metrics().record_preview_lookup(hit=True)
"""

from src.common.telemetry.metrics import NL2TableMetrics, get_nl2table_metrics
from src.common.telemetry.setup import (
    TelemetryConfig,
    get_meter,
    get_tracer,
    init_telemetry,
    is_telemetry_enabled,
    shutdown_telemetry,
)
from src.common.telemetry.tracing import (
    add_span_event,
    record_exception,
    trace_span,
)

__all__ = [
    "init_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "get_meter",
    "is_telemetry_enabled",
    "TelemetryConfig",
    "NL2TableMetrics",
    "get_nl2table_metrics",
    "add_span_event",
    "record_exception",
    "trace_span",
]
