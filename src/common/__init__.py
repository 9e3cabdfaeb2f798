"""
Shared infrastructure used across nl2table.

Submodules:
- logging: log sanitization for secrets redaction
- resilience: retry with backoff and sequential fallback
- telemetry: OpenTelemetry setup and tracing helpers
"""
