"""Small helpers for chaining ``concurrent.futures.Future`` objects."""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Future
from typing import Any, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def completed(value: T) -> Future[T]:
    """Return a future that already holds ``value``."""
    future: Future[T] = Future()
    future.set_result(value)
    return future


def pending() -> Future[Any]:
    """Return an unresolved future that callers cannot cancel."""
    future: Future[Any] = Future()
    future.set_running_or_notify_cancel()
    return future


def then(source: Future[T], fn: Callable[[T], R]) -> Future[R]:
    """Return a future resolved with ``fn(source.result())`` once ``source`` completes.

    Exceptions from ``source`` or ``fn`` propagate into the returned future.
    ``fn`` runs on the thread that completes ``source``, or immediately when it is already done.
    """
    target: Future[R] = pending()

    def _done(src: Future[T]) -> None:
        try:
            target.set_result(fn(src.result()))
        except Exception as exc:
            target.set_exception(exc)

    source.add_done_callback(_done)
    return target
