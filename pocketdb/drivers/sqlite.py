"""
Asynchronous SQLite table driver.

Each collection is stored as its own table, named after the collection key,
holding a single `json` row. Writes drop and recreate the table inside one
transaction. All I/O runs through aiosqlite on a private event loop thread;
callers get `concurrent.futures.Future` objects back immediately.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from concurrent.futures import Future
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite

from ..errors import PersistenceError
from .base import Driver, failed

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY = ":memory:"


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class SQLiteTableDriver(Driver):
    """
    One table per collection, one row per table.
    """

    def __init__(self, path: str | Path = MEMORY, close_timeout: float = 5.0) -> None:
        self.path = path if path == MEMORY else Path(path)
        self.close_timeout = close_timeout
        self._connection: aiosqlite.Connection | None = None
        self._lock: asyncio.Lock | None = None
        self._closed = False
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop, name="pocketdb-sqlite", daemon=True
        )
        self._thread.start()

    # --- driver interface ----------------------------------------------

    def write(self, key: str, blob: str, *, timeout: float | None = None) -> Future[None]:
        return self._submit(f"write of '{key}'", lambda: self._write(key, blob), timeout)

    def read_all(self, prefix: str, *, timeout: float | None = None) -> Future[list[str]]:
        return self._submit(f"read of '{prefix}*'", lambda: self._read_all(prefix), timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        pending = asyncio.run_coroutine_threadsafe(self._disconnect(), self._loop)
        try:
            pending.result(timeout=self.close_timeout)
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join()
            self._loop.close()
        logger.debug("closed sqlite driver for %s", self.path)

    @property
    def closed(self) -> bool:
        return self._closed

    # --- loop plumbing ---------------------------------------------------

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _submit(
        self,
        operation: str,
        factory: Callable[[], Awaitable[T]],
        timeout: float | None,
    ) -> Future[T]:
        if self._closed:
            return failed(PersistenceError(f"{operation} failed: driver is closed"))
        return asyncio.run_coroutine_threadsafe(
            self._guard(operation, factory, timeout), self._loop
        )

    async def _guard(
        self,
        operation: str,
        factory: Callable[[], Awaitable[T]],
        timeout: float | None,
    ) -> T:
        try:
            return await asyncio.wait_for(factory(), timeout)
        except asyncio.TimeoutError as exc:
            raise PersistenceError(f"{operation} timed out after {timeout}s") from exc
        except (aiosqlite.Error, OSError, ValueError) as exc:
            raise PersistenceError(f"{operation} failed: {exc}") from exc

    # --- SQL -------------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        if self._connection is None:
            if isinstance(self.path, Path):
                self.path.parent.mkdir(parents=True, exist_ok=True)
            # Autocommit mode; transactions are opened explicitly.
            self._connection = await aiosqlite.connect(self.path, isolation_level=None)
            logger.debug("opened sqlite database %s", self.path)
        return self._connection

    def _guard_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _write(self, key: str, blob: str) -> None:
        table = _quote(key)
        async with self._guard_lock():
            db = await self._connect()
            await self._rollback_open(db)
            try:
                await db.execute("BEGIN")
                await db.execute(f"DROP TABLE IF EXISTS {table}")
                await db.execute(f"CREATE TABLE {table} (json TEXT)")
                await db.execute(f"INSERT INTO {table} (json) VALUES (?)", (blob,))
                await db.execute("COMMIT")
            except BaseException:
                await self._rollback_open(db)
                raise
        logger.debug("wrote table %s (%d bytes)", key, len(blob))

    async def _rollback_open(self, db: aiosqlite.Connection) -> None:
        # A cancelled await does not stop the statement already queued on the
        # connection thread; the no-op waits for it before the state is read.
        await db.execute("SELECT 1")
        if db.in_transaction:
            logger.debug("rolling back unfinished transaction on %s", self.path)
            await db.execute("ROLLBACK")

    async def _read_all(self, prefix: str) -> list[str]:
        async with self._guard_lock():
            db = await self._connect()
            cursor = await db.execute(
                "SELECT name FROM sqlite_master "
                "WHERE type = 'table' AND substr(name, 1, ?) = ? ORDER BY name",
                (len(prefix), prefix),
            )
            names = [row[0] for row in await cursor.fetchall()]

            blobs: list[str] = []
            for name in names:
                cursor = await db.execute(f"SELECT json FROM {_quote(name)} LIMIT 1")
                row: Any = await cursor.fetchone()
                if row is not None and isinstance(row[0], str):
                    blobs.append(row[0])
                else:
                    logger.warning("skipping table %s: no json row", name)
        return blobs

    async def _disconnect(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
