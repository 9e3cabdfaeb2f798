"""
nl2table - CLI Entry Point

Usage:
    python -m src.nl2table [options]

Examples:
    # Start HTTP server with in-memory storage (default)
    python -m src.nl2table --port 8090

    # Persist catalog metadata and previews in PostgreSQL
    python -m src.nl2table --storage postgres --log-level debug
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from src.common.logging import configure_sanitized_logging
from src.common.telemetry import init_telemetry, shutdown_telemetry
from src.nl2table.config import NL2TableConfig


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="nl2table - natural language requests to tabular data previews",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind (default: from config or 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind (default: from config or 8090)",
    )
    parser.add_argument(
        "--storage",
        choices=["memory", "postgres"],
        default=None,
        help="Record store backend (default: from config or memory)",
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level (default: from config or info)",
    )

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> NL2TableConfig:
    """Build configuration from args and environment."""
    overrides = {}

    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.storage:
        overrides["storage_backend"] = args.storage
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()

    return NL2TableConfig(**overrides)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    config = build_config(args)
    configure_sanitized_logging(config.log_level)
    logger = logging.getLogger(__name__)

    init_telemetry(service_name="nl2table")
    logger.info(f"Starting nl2table on {config.host}:{config.port}")

    from src.nl2table.transports.http import run_http_server

    try:
        asyncio.run(run_http_server(config))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)
    finally:
        shutdown_telemetry()


if __name__ == "__main__":
    main()
