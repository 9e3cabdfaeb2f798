"""
nl2table Exception Hierarchy

All service-specific exceptions inherit from NL2TableError, which carries a
human-readable message and a machine-readable code. ``kind`` is the name
surfaced to callers in error payloads.

Usage:
    from src.nl2table.exceptions import NotFound, UpstreamUnavailable

    try:
        preview = await gateway.fetch_preview(ref, file_name)
    except NotFound as e:
        logger.warning(f"Requested file missing: {e}")
"""

from __future__ import annotations

from collections.abc import Sequence


class NL2TableError(Exception):
    """
    Base exception for all nl2table errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
    """

    default_code: str = "NL2TABLE_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.default_code
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(NL2TableError):
    """A backend or collaborator was asked for but is not configured."""

    default_code = "CONFIG_INVALID"


class MissingCredentialError(ConfigurationError):
    """No API key is available for an explicitly requested backend."""

    def __init__(self, backend: str) -> None:
        super().__init__(
            f"No API key configured for backend '{backend}'",
            code="CONFIG_MISSING",
        )
        self.backend = backend


# =============================================================================
# Upstream
# =============================================================================


class UpstreamUnavailable(NL2TableError):
    """A network call to an LLM backend or the dataset catalog failed."""

    default_code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, message: str, source: str | None = None, code: str | None = None) -> None:
        super().__init__(message, code=code)
        self.source = source


class DownloadError(UpstreamUnavailable):
    """A dataset package could not be downloaded or opened."""

    default_code = "DOWNLOAD_FAILED"


# =============================================================================
# Validation / lookup
# =============================================================================


class ValidationError(NL2TableError):
    """A response or input failed a schema or shape check."""

    default_code = "VALIDATION_FAILED"


class NotFound(NL2TableError):
    """A requested dataset or file does not exist."""

    default_code = "NOT_FOUND"


class FileNotFound(NotFound):
    """The dataset package has no entry with the requested path."""

    def __init__(self, ref: str, file_name: str) -> None:
        super().__init__(f"File '{file_name}' not found in dataset '{ref}'")
        self.ref = ref
        self.file_name = file_name


# =============================================================================
# Pipeline outcomes
# =============================================================================


class NoProviderAvailable(NL2TableError):
    """Every backend in the fallback order failed to return a valid result."""

    default_code = "NO_PROVIDER"

    def __init__(self, failures: Sequence[str] = ()) -> None:
        self.failures = tuple(failures)
        detail = "; ".join(self.failures) if self.failures else "no backends configured"
        super().__init__(f"No LLM backend produced a valid result ({detail})")


class PartialData(NL2TableError):
    """Some transformed rows were dropped. Informational, logged rather than raised."""

    default_code = "PARTIAL_DATA"

    def __init__(self, kept: int, dropped: int) -> None:
        super().__init__(f"Dropped {dropped} malformed row(s), kept {kept}")
        self.kept = kept
        self.dropped = dropped


class AnalysisFailed(NL2TableError):
    """The request could not be turned into a structured analysis."""

    default_code = "ANALYSIS_FAILED"
