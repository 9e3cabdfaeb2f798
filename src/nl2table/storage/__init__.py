"""
Record storage for catalog metadata, the preview cache and audit events.

Usage:
    from src.nl2table.storage import create_record_store

    store = await create_record_store(config)
"""

from __future__ import annotations

import logging

from src.nl2table.config import NL2TableConfig
from src.nl2table.storage.memory import InMemoryRecordStore
from src.nl2table.storage.protocols import AuditEvent, RecordStore

logger = logging.getLogger(__name__)


async def create_record_store(config: NL2TableConfig) -> RecordStore:
    """Create the record store selected by ``config.storage_backend``."""
    if config.storage_backend == "postgres":
        from src.nl2table.storage.postgres import PostgresRecordStore

        logger.info("Using PostgreSQL record store")
        return await PostgresRecordStore.connect(
            config.postgres_url,
            min_size=config.postgres_pool_min,
            max_size=config.postgres_pool_max,
        )

    logger.info("Using in-memory record store")
    return InMemoryRecordStore()


__all__ = [
    "AuditEvent",
    "InMemoryRecordStore",
    "RecordStore",
    "create_record_store",
]
