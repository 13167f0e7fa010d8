"""
Persistence capability shared by every storage driver.

A driver stores one serialized collection blob per key. Both operations
return a `concurrent.futures.Future`, so synchronous and asynchronous
backends look the same to collections and stores: a synchronous driver hands
back a future that is already done, an asynchronous one completes it later.
Failures travel inside the future as `PersistenceError`, never as a raised
exception.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar

from ..errors import PersistenceError

T = TypeVar("T")

Callback = Callable[[PersistenceError | None], Any]


class Driver(ABC):
    """Pluggable persistence backend."""

    @abstractmethod
    def write(self, key: str, blob: str, *, timeout: float | None = None) -> Future[None]:
        """Replace whatever is stored under `key` with `blob`."""

    @abstractmethod
    def read_all(self, prefix: str, *, timeout: float | None = None) -> Future[list[str]]:
        """Return every stored blob whose key starts with `prefix`."""

    def close(self) -> None:
        """Release backend resources. The default does nothing."""

    def __enter__(self) -> "Driver":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# --- future helpers ----------------------------------------------------


def completed(value: T = None) -> Future[T]:
    future: Future[T] = Future()
    future.set_result(value)
    return future


def failed(error: BaseException) -> Future[Any]:
    future: Future[Any] = Future()
    future.set_exception(error)
    return future


def error_of(future: Future[Any]) -> PersistenceError | None:
    """
    Describe how a finished future ended, in callback terms.
    """
    if future.cancelled():
        return PersistenceError("persistence operation was cancelled")
    error = future.exception()
    if error is None:
        return None
    if isinstance(error, PersistenceError):
        return error
    wrapped = PersistenceError(str(error) or type(error).__name__)
    wrapped.__cause__ = error
    return wrapped


def notify(future: Future[Any], callback: Callback | None) -> None:
    """
    Call `callback(error)` once `future` finishes; inline if it already has.
    """
    if callback is None:
        return
    future.add_done_callback(lambda done: callback(error_of(done)))


def then(source: Future[Any], transform: Callable[[Any], T]) -> Future[T]:
    """
    Chain `transform` onto `source`. Cancelling the result cancels `source`.
    """
    result: Future[T] = Future()

    def _finish(done: Future[Any]) -> None:
        if not result.set_running_or_notify_cancel():
            return
        error = error_of(done)
        if error is not None:
            result.set_exception(error)
            return
        try:
            value = transform(done.result())
        except PersistenceError as exc:
            result.set_exception(exc)
        except Exception as exc:
            wrapped = PersistenceError(str(exc) or type(exc).__name__)
            wrapped.__cause__ = exc
            result.set_exception(wrapped)
        else:
            result.set_result(value)

    def _propagate_cancel(done: Future[T]) -> None:
        if done.cancelled():
            source.cancel()

    result.add_done_callback(_propagate_cancel)
    source.add_done_callback(_finish)
    return result
