"""
Pytest configuration for unit tests.

Disables telemetry and keeps provider keys from the developer's shell out
of the tests.
"""

import os

_PROVIDER_KEY_VARS = (
    "GROQ_API_KEY",
    "COHERE_API_KEY",
    "GEMINI_API_KEY",
    "ANTHROPIC_API_KEY",
    "OPENAI_API_KEY",
    "KAGGLE_USERNAME",
    "KAGGLE_KEY",
    "KAGGLE_API_KEY",
)


def pytest_configure(config):
    """Configure telemetry and environment for unit tests."""
    # get_tracer() returns a NoOpTracer instead of the SDK tracer
    os.environ["NL2TABLE_TELEMETRY_ENABLED"] = "false"

    for name in _PROVIDER_KEY_VARS:
        os.environ.pop(name, None)
        os.environ.pop(f"NL2TABLE_{name}", None)
