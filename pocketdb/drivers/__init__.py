from .base import Driver
from .keyvalue import KeyValueBackend, KeyValueDriver, MemoryKeyValueStore
from .sqlite import SQLiteTableDriver

__all__ = [
    "Driver",
    "KeyValueBackend",
    "KeyValueDriver",
    "MemoryKeyValueStore",
    "SQLiteTableDriver",
]
