"""HTTP transport (FastAPI)."""

from src.nl2table.transports.http.app import create_app, run_http_server, status_for

__all__ = ["create_app", "run_http_server", "status_for"]
