"""
Named, ordered set of documents with CRUD and commit.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from . import serialization
from .document import Document, normalize_document, validate_document
from .drivers.base import Callback, Driver, error_of, failed, notify
from .errors import CollectionDestroyedError, ConfigError, PersistenceError
from .query import matches, normalize
from .utils import clone, deep_merge

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "pocket"


@dataclass
class CollectionOptions:
    """Settings shared by a store and the collections it creates."""

    driver: Driver | None = None
    namespace: str = DEFAULT_NAMESPACE
    auto_commit: bool = False
    # Seconds a single commit or restore may take; None waits forever.
    timeout: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """The persisted part of the options; the driver is never stored."""
        return {"namespace": self.namespace, "auto_commit": self.auto_commit}


class Collection:
    """
    In-memory document list. Matching is a linear scan in insertion order.
    """

    def __init__(self, name: str, options: CollectionOptions | None = None) -> None:
        if not name or not isinstance(name, str):
            raise ConfigError("collection requires a name")
        options = options or CollectionOptions()
        if options.auto_commit and options.driver is None:
            raise ConfigError(f"collection '{name}' has auto_commit set but no storage driver")
        self.name = name
        self.options: CollectionOptions | None = options
        self._documents: list[Document] | None = []

    @classmethod
    def from_state(
        cls, state: serialization.CollectionState, options: CollectionOptions
    ) -> "Collection":
        collection = cls(state.name, options)
        collection._documents = [normalize_document(doc) for doc in state.documents]
        return collection

    # --- CRUD ------------------------------------------------------------

    def insert(self, doc: dict[str, Any]) -> Document:
        """
        Store a copy of `doc`, assigning an `_id` if it has none.
        """
        documents = self._live()
        document = normalize_document(doc)
        documents.append(document)
        self._auto_commit()
        return clone(document)

    def find(self, query: Any = None) -> list[Document]:
        """
        Return copies of every matching document, in insertion order.
        """
        return [clone(doc) for doc in self._select(query)]

    def find_one(self, query: Any = None) -> Document | None:
        """
        Convenience wrapper that returns the first matching document or None.
        """
        for doc in self._select(query):
            return clone(doc)
        return None

    def update(self, query: Any, patch: dict[str, Any]) -> "Collection":
        """
        Deep-merge `patch` into every matching document, in place.
        """
        validate_document(patch, "patch")
        for doc in self._select(query):
            deep_merge(doc, patch)
        self._auto_commit()
        return self

    def remove(self, query: Any = None) -> "Collection":
        documents = self._live()
        doomed = {id(doc) for doc in self._select(query)}
        if doomed:
            self._documents = [doc for doc in documents if id(doc) not in doomed]
        self._auto_commit()
        return self

    def size(self) -> int:
        return len(self._live())

    def __len__(self) -> int:
        return self.size()

    # --- persistence -----------------------------------------------------

    def to_blob(self) -> str:
        options = self._options()
        return serialization.dumps(self.name, options.to_dict(), self._live())

    def commit(self, callback: Callback | None = None, *, timeout: float | None = None) -> Future[None]:
        """
        Write the whole collection through the driver under `<namespace>.<name>`.

        Failures are reported through the returned future and `callback`,
        never raised here.
        """
        options = self._options()
        if options.driver is None:
            raise ConfigError(f"collection '{self.name}' has no storage driver")

        key = f"{options.namespace}.{self.name}"
        try:
            blob = self.to_blob()
        except PersistenceError as exc:
            future = failed(exc)
        else:
            logger.debug("committing %s (%d documents)", key, self.size())
            future = options.driver.write(key, blob, timeout=options.timeout if timeout is None else timeout)
        notify(future, callback)
        return future

    def destroy(self) -> None:
        self._documents = None
        self.options = None

    @property
    def destroyed(self) -> bool:
        return self._documents is None

    # --- internal helpers -------------------------------------------------

    def _live(self) -> list[Document]:
        if self._documents is None:
            raise CollectionDestroyedError(f"collection '{self.name}' has been destroyed")
        return self._documents

    def _options(self) -> CollectionOptions:
        if self.options is None:
            raise CollectionDestroyedError(f"collection '{self.name}' has been destroyed")
        return self.options

    def _select(self, query: Any) -> list[Document]:
        documents = self._live()
        conditions = normalize(query)
        if not conditions:
            return list(documents)
        return [doc for doc in documents if matches(doc, conditions)]

    def _auto_commit(self) -> None:
        options = self._options()
        if not options.auto_commit:
            return
        future = self.commit()
        future.add_done_callback(self._log_auto_commit)

    def _log_auto_commit(self, future: Future[None]) -> None:
        error = error_of(future)
        if error is not None:
            logger.warning("auto-commit of collection '%s' failed: %s", self.name, error)

    def __repr__(self) -> str:
        count = "destroyed" if self.destroyed else f"{len(self._live())} documents"
        return f"Collection({self.name!r}, {count})"
