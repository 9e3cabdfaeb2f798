"""
OpenTelemetry Setup and Configuration.

Installs tracer and meter providers exporting over OTLP/gRPC. Until
init_telemetry() runs, the OpenTelemetry API hands out its built-in
proxy tracer and meter, so instrumented code works unchanged in tests
and CLIs.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

TELEMETRY_ENV_FLAG = "NL2TABLE_TELEMETRY_ENABLED"


@dataclass
class TelemetryConfig:
    """Configuration for telemetry setup."""

    service_name: str = "nl2table"
    service_version: str = "0.1.0"
    environment: str = field(default_factory=lambda: os.getenv("NL2TABLE_ENV", "development"))
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    )
    otlp_insecure: bool = True
    metrics_enabled: bool = True
    metrics_export_interval_ms: int = 10000
    resource_attributes: dict[str, str] = field(default_factory=dict)


_telemetry_initialized = False
_tracer_provider: TracerProvider | None = None
_meter_provider: MeterProvider | None = None


def _is_telemetry_disabled_by_env() -> bool:
    value = os.getenv(TELEMETRY_ENV_FLAG, "true").lower()
    return value in ("false", "0", "no", "off")


def init_telemetry(
    service_name: str | None = None,
    otlp_endpoint: str | None = None,
    config: TelemetryConfig | None = None,
) -> bool:
    """
    Initialize OpenTelemetry tracing and metrics.

    Call once at application startup. Disabled when
    NL2TABLE_TELEMETRY_ENABLED is false.

    Returns:
        True if a tracer provider was installed
    """
    global _telemetry_initialized, _tracer_provider, _meter_provider

    if _telemetry_initialized:
        logger.debug("Telemetry already initialized")
        return _tracer_provider is not None

    _telemetry_initialized = True

    if _is_telemetry_disabled_by_env():
        logger.info(f"Telemetry disabled via {TELEMETRY_ENV_FLAG}")
        return False

    config = config or TelemetryConfig()
    if service_name:
        config.service_name = service_name
    if otlp_endpoint:
        config.otlp_endpoint = otlp_endpoint

    try:
        resource_attrs = {
            SERVICE_NAME: config.service_name,
            SERVICE_VERSION: config.service_version,
            "deployment.environment": config.environment,
        }
        resource_attrs.update(config.resource_attributes)
        resource = Resource.create(resource_attrs)

        provider = TracerProvider(resource=resource)
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=config.otlp_insecure)
            )
        )
        trace.set_tracer_provider(provider)
        _tracer_provider = provider
        logger.info(f"Tracing initialized, exporting to {config.otlp_endpoint}")

        if config.metrics_enabled:
            reader = PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=config.otlp_endpoint, insecure=config.otlp_insecure),
                export_interval_millis=config.metrics_export_interval_ms,
            )
            _meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
            metrics.set_meter_provider(_meter_provider)
            logger.info(f"Metrics initialized, exporting to {config.otlp_endpoint}")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize telemetry: {e}")
        return False


def shutdown_telemetry() -> None:
    """Flush and shut down the installed providers."""
    global _tracer_provider, _meter_provider, _telemetry_initialized

    try:
        if _meter_provider is not None:
            _meter_provider.force_flush(timeout_millis=5000)
            _meter_provider.shutdown()
        if _tracer_provider is not None:
            _tracer_provider.force_flush(timeout_millis=5000)
            _tracer_provider.shutdown()
    except Exception as e:
        logger.warning(f"Error during telemetry shutdown: {e}")
    finally:
        _meter_provider = None
        _tracer_provider = None
        _telemetry_initialized = False


def get_tracer(name: str = "nl2table") -> trace.Tracer:
    """
    Get a tracer for creating spans.

    Returns the API's NoOpTracer when telemetry is disabled by environment.
    """
    if _is_telemetry_disabled_by_env():
        return trace.NoOpTracer()
    return trace.get_tracer(name)


def get_meter(name: str = "nl2table") -> metrics.Meter:
    """
    Get a meter for creating metrics.

    Returns the API's NoOpMeter when telemetry is disabled by environment.
    """
    if _is_telemetry_disabled_by_env():
        return metrics.NoOpMeter(name)
    return metrics.get_meter(name)


def is_telemetry_enabled() -> bool:
    """Check whether a tracer provider is installed."""
    return _tracer_provider is not None
