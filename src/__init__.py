"""nl2table - Natural language requests to tabular data previews."""

__version__ = "0.1.0"
