"""
pocketdb: an embeddable, in-process document store.
"""

from .collection import Collection, CollectionOptions
from .drivers import Driver, KeyValueDriver, MemoryKeyValueStore, SQLiteTableDriver
from .engine import Store
from .errors import (
    CollectionDestroyedError,
    ConfigError,
    DocumentValidationError,
    PersistenceError,
    PocketError,
    QueryError,
)
from .storage import JsonFileKeyValueStore

__all__ = [
    "Collection",
    "CollectionOptions",
    "CollectionDestroyedError",
    "ConfigError",
    "DocumentValidationError",
    "Driver",
    "JsonFileKeyValueStore",
    "KeyValueDriver",
    "MemoryKeyValueStore",
    "PersistenceError",
    "PocketError",
    "QueryError",
    "SQLiteTableDriver",
    "Store",
]
