"""
Synchronous key-value driver.

Works against any backend shaped like a browser's local storage: a length,
positional key lookup, and string get/set.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Protocol, runtime_checkable

from ..errors import PersistenceError
from .base import Driver, completed, failed

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueBackend(Protocol):
    def __len__(self) -> int: ...

    def key(self, index: int) -> str | None: ...

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    """
    Dict-backed backend; contents live as long as the object does.
    """

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._items)

    def key(self, index: int) -> str | None:
        if 0 <= index < len(self._items):
            return list(self._items)[index]
        return None

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value


class KeyValueDriver(Driver):
    """
    Runs every operation inline; returned futures are already finished.
    """

    def __init__(self, backend: KeyValueBackend | None = None) -> None:
        self.backend = backend if backend is not None else MemoryKeyValueStore()

    def write(self, key: str, blob: str, *, timeout: float | None = None) -> Future[None]:
        try:
            self.backend.set_item(key, blob)
        except (OSError, TypeError, ValueError) as exc:
            logger.debug("write to %s failed: %s", key, exc)
            return failed(PersistenceError(f"could not write '{key}': {exc}"))
        return completed(None)

    def read_all(self, prefix: str, *, timeout: float | None = None) -> Future[list[str]]:
        blobs: list[str] = []
        try:
            for index in range(len(self.backend)):
                key = self.backend.key(index)
                if key is None or not key.startswith(prefix):
                    continue
                value = self.backend.get_item(key)
                if isinstance(value, str):
                    blobs.append(value)
                else:
                    logger.warning("skipping %s: stored value is not a string", key)
        except (OSError, TypeError, ValueError) as exc:
            return failed(PersistenceError(f"could not read '{prefix}*': {exc}"))
        return completed(blobs)

    def close(self) -> None:
        close = getattr(self.backend, "close", None)
        if callable(close):
            close()
