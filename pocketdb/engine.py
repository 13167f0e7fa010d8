"""
Core database facade: a registry of named collections sharing one driver.
"""

from __future__ import annotations

import dataclasses
import logging
from concurrent.futures import Future
from typing import Any

from . import serialization
from .collection import DEFAULT_NAMESPACE, Collection, CollectionOptions
from .drivers.base import Callback, Driver, completed, notify, then
from .errors import ConfigError

logger = logging.getLogger(__name__)

VERSION = "2.0.0"


class Store:
    """
    Lightweight document store with whole-collection persistence.
    """

    version = VERSION

    def __init__(
        self,
        driver: Driver | None,
        namespace: str = DEFAULT_NAMESPACE,
        auto_commit: bool = False,
        timeout: float | None = None,
    ) -> None:
        if driver is None:
            raise ConfigError("storage driver was not found")
        if not isinstance(driver, Driver):
            raise ConfigError(f"unsupported storage driver: {type(driver).__name__}")
        if not namespace or not isinstance(namespace, str):
            raise ConfigError("namespace must be a non-empty string")

        self.options = CollectionOptions(
            driver=driver, namespace=namespace, auto_commit=auto_commit, timeout=timeout
        )
        self.collections: dict[str, Collection] = {}

    @property
    def driver(self) -> Driver:
        return self.options.driver

    @property
    def namespace(self) -> str:
        return self.options.namespace

    def collection(self, name: str, **overrides: Any) -> Collection:
        """
        Return the named collection, creating it on first use.

        `overrides` (e.g. `auto_commit=True`) replace store defaults for a
        newly created collection; they are ignored for an existing one.
        """
        if not name:
            raise ConfigError("collection requires a name")

        collection = self.collections.get(name)
        if collection is None:
            try:
                options = dataclasses.replace(self.options, **overrides)
            except TypeError as exc:
                raise ConfigError(f"invalid collection option: {exc}") from exc
            collection = Collection(name, options)
            self.collections[name] = collection
            logger.debug("created collection %s.%s", options.namespace, name)
        return collection

    def remove_collection(self, name: str) -> "Store":
        collection = self.collections.pop(name, None) if name else None
        if collection is not None:
            collection.destroy()
            logger.debug("removed collection %s", name)
        return self

    def commit(self, name: str, callback: Callback | None = None) -> Future[None]:
        if not name:
            raise ConfigError("commit requires a collection name")
        collection = self.collections.get(name)
        if collection is None:
            future = completed(None)
            notify(future, callback)
            return future
        return collection.commit(callback)

    def restore(
        self, callback: Callback | None = None, *, timeout: float | None = None
    ) -> Future[list[str]]:
        """
        Reload every collection persisted under this store's namespace.

        Restored collections replace in-memory ones of the same name. The
        returned future resolves to the restored names; `callback(error)` is
        called with None on success.
        """
        prefix = f"{self.namespace}."
        pending = self.driver.read_all(
            prefix, timeout=self.options.timeout if timeout is None else timeout
        )
        future = then(pending, self._register_blobs)
        notify(future, callback)
        return future

    def destroy(self) -> None:
        for collection in self.collections.values():
            collection.destroy()
        self.collections.clear()

    # --- internal helpers -------------------------------------------------

    def _register_blobs(self, blobs: list[str]) -> list[str]:
        # Decode everything first so a corrupt blob leaves the registry untouched.
        states = [serialization.loads(blob) for blob in blobs]

        names: list[str] = []
        for state in states:
            # "a.b.people" also starts with "a."; it belongs to namespace "a.b".
            namespace = state.options.get("namespace", self.namespace)
            if namespace != self.namespace:
                logger.debug("skipping %s from namespace %s", state.name, namespace)
                continue
            options = dataclasses.replace(
                self.options, auto_commit=bool(state.options.get("auto_commit", False))
            )
            self.collections[state.name] = Collection.from_state(state, options)
            names.append(state.name)

        logger.debug("restored %d collections from namespace %s", len(names), self.namespace)
        return names

    def __contains__(self, name: object) -> bool:
        return name in self.collections

    def __repr__(self) -> str:
        return f"Store(namespace={self.namespace!r}, collections={sorted(self.collections)!r})"
