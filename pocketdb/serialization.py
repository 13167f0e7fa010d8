"""
Self-describing JSON blob holding one collection's full state.

    {"version": 1, "name": "...", "options": {...}, "documents": [...]}
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .errors import PersistenceError

SCHEMA_VERSION = 1


@dataclass(slots=True)
class CollectionState:
    name: str
    options: dict[str, Any] = field(default_factory=dict)
    documents: list[dict[str, Any]] = field(default_factory=list)
    version: int = SCHEMA_VERSION


def dumps(name: str, options: dict[str, Any], documents: list[dict[str, Any]]) -> str:
    payload = {
        "version": SCHEMA_VERSION,
        "name": name,
        "options": options,
        "documents": documents,
    }
    try:
        return json.dumps(payload, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"collection '{name}' is not serializable: {exc}") from exc


def loads(blob: str) -> CollectionState:
    try:
        data = json.loads(blob)
    except (TypeError, ValueError, RecursionError) as exc:
        raise PersistenceError(f"corrupt collection blob: {exc}") from exc

    if not isinstance(data, dict):
        raise PersistenceError("collection blob must be a JSON object")

    version = data.get("version", 1)
    if not isinstance(version, int) or version > SCHEMA_VERSION:
        raise PersistenceError(f"unsupported blob version: {version!r}")

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise PersistenceError("collection blob has no name")

    options = data.get("options") or {}
    if not isinstance(options, dict):
        raise PersistenceError(f"collection '{name}' has invalid options")

    documents = data.get("documents", [])
    if not isinstance(documents, list) or not all(isinstance(d, dict) for d in documents):
        raise PersistenceError(f"collection '{name}' has invalid documents")

    return CollectionState(name=name, options=options, documents=documents, version=version)
