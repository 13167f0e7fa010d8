"""
Append-only file-backed key-value store.

Every `set_item` appends one JSON line `{"key": ..., "value": ...}`; on open
the log is replayed and the last record for each key wins.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from collections.abc import Iterator

logger = logging.getLogger(__name__)


class JsonFileKeyValueStore:
    def __init__(self, path: str | Path, sync_every_write: bool = False) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.sync_every_write = sync_every_write
        self._items: dict[str, str] = {}
        self._load_existing()

    # --- key-value interface ---------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    def key(self, index: int) -> str | None:
        if 0 <= index < len(self._items):
            return list(self._items)[index]
        return None

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        """
        Append the record to disk, then make it visible in memory.
        """
        if not isinstance(value, str):
            raise TypeError("value must be a string")
        self.append({"key": key, "value": value})
        self._items[key] = value

    # --- log IO ----------------------------------------------------------

    def append(self, record: dict[str, str]) -> int:
        """
        Append a JSON record to disk and return the starting byte offset.
        """
        payload = (json.dumps(record, separators=(",", ":")) + "\n").encode("utf-8")
        self.path.parent.mkdir(parents=True, exist_ok=True)

        with self.path.open("a+b") as fh:
            fh.seek(0, 2)  # ensure end of file
            offset = fh.tell()
            if offset:
                fh.seek(offset - 1)
                if fh.read(1) != b"\n":
                    # Start a fresh line after a torn record.
                    payload = b"\n" + payload
                    offset += 1
                fh.seek(0, 2)
            fh.write(payload)
            fh.flush()
            if self.sync_every_write:
                os.fsync(fh.fileno())
        return offset

    def read_all(self) -> Iterator[tuple[int, dict[str, str]]]:
        """
        Iterate over all records on disk, yielding (offset, record).
        """
        if not self.path.exists():
            return iter(())

        def _iter() -> Iterator[tuple[int, dict[str, str]]]:
            with self.path.open("rb") as fh:
                while True:
                    offset = fh.tell()
                    line = fh.readline()
                    if not line:
                        break
                    if not line.strip():
                        continue
                    try:
                        record = json.loads(line)
                    except ValueError:
                        # Typically a torn final append after a crash.
                        logger.warning("skipping unreadable record at offset %d in %s", offset, self.path)
                        continue
                    yield offset, record

        return _iter()

    def compact(self) -> None:
        """
        Rewrite the log so it holds exactly one record per live key.
        """
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("wb") as fh:
            for key, value in self._items.items():
                line = json.dumps({"key": key, "value": value}, separators=(",", ":"))
                fh.write((line + "\n").encode("utf-8"))
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, self.path)
        logger.debug("compacted %s to %d keys", self.path, len(self._items))

    # --- internal helpers -------------------------------------------------

    def _load_existing(self) -> None:
        for offset, record in self.read_all():
            if not isinstance(record, dict):
                logger.warning("skipping malformed record at offset %d in %s", offset, self.path)
                continue
            key, value = record.get("key"), record.get("value")
            if not isinstance(key, str) or not isinstance(value, str):
                logger.warning("skipping malformed record at offset %d in %s", offset, self.path)
                continue
            self._items[key] = value
