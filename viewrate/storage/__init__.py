"""Persistence — tracked items, the sample log and the alert log."""

from viewrate.core.config import StorageConfig
from viewrate.storage.base import AlertLog, ItemRepository, SampleStore, Storage
from viewrate.storage.exceptions import DuplicateItemError, StorageError, UnknownItemError
from viewrate.storage.memory import (
    InMemoryAlertLog,
    InMemoryItemRepository,
    InMemorySampleStore,
    create_memory_storage,
)
from viewrate.storage.sqlite import SQLiteDatabase, create_sqlite_storage


def create_storage(config: StorageConfig) -> Storage:
    """Build the configured storage backend."""
    if config.backend == "sqlite":
        return create_sqlite_storage(config.path)
    return create_memory_storage()


__all__ = [
    "AlertLog",
    "DuplicateItemError",
    "InMemoryAlertLog",
    "InMemoryItemRepository",
    "InMemorySampleStore",
    "ItemRepository",
    "SQLiteDatabase",
    "SampleStore",
    "Storage",
    "StorageError",
    "UnknownItemError",
    "create_memory_storage",
    "create_sqlite_storage",
    "create_storage",
]
