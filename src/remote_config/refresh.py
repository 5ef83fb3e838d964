"""Refresh coordination for the cached configuration document.

``RefreshState`` holds what every polling mode shares: the cache slot, the
staleness timestamp, the one-time initialization signal and the single
in-flight fetch. ``RefreshPolicy`` is selected by a polling mode and decides,
on each read, whether to serve the cache, start a fetch, or wait for one.

All state transitions happen under one lock. A fetch runs on its own daemon
thread; its completion writes the cache, advances the timestamp and clears the
in-flight handle in a single critical section, so a reader that sees no fetch
in flight always sees the post-fetch cache.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future

from remote_config.cache import ConfigCache
from remote_config.fetch import Fetcher, FetchResult
from remote_config.futures import completed, pending, then
from remote_config.polling import ExpiringMode, IntervalMode, ManualMode, PollingMode
from remote_config.scheduler import PeriodicTask

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str], None]


class RefreshState:
    """Shared refresh bookkeeping and the single-flight fetch."""

    def __init__(
        self,
        fetcher: Fetcher,
        cache: ConfigCache,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetcher = fetcher
        self._cache = cache
        self._clock = clock
        self._lock = threading.Lock()
        self._last_refreshed_at = float("-inf")
        self._initialized = False
        self._initialized_signal: Future[None] = pending()
        self._in_flight: Future[str] | None = None
        self._etag: str | None = None
        self._listeners: list[ChangeListener] = []

    @property
    def last_refreshed_at(self) -> float:
        with self._lock:
            return self._last_refreshed_at

    @property
    def initialized(self) -> bool:
        with self._lock:
            return self._initialized

    @property
    def in_flight(self) -> Future[str] | None:
        with self._lock:
            return self._in_flight

    @property
    def etag(self) -> str | None:
        with self._lock:
            return self._etag

    @property
    def initialized_signal(self) -> Future[None]:
        """Completes once, when the first fetch attempt finishes."""
        return self._initialized_signal

    def add_change_listener(self, listener: ChangeListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def cached_document(self) -> str:
        """Current cache content; an unreadable cache counts as empty."""
        try:
            return self._cache.get()
        except Exception:
            logger.exception("Config cache backend raised on read")
            return ""

    def fetch_or_join(self) -> Future[str]:
        """Return the in-flight fetch, starting one if none is running."""
        with self._lock:
            return self._fetch_or_join_locked()

    def join_if_expired(self, max_age_seconds: float) -> tuple[Future[str] | None, bool]:
        """Atomically check staleness and, when expired, start or join a fetch.

        Returns ``(fetch, was_initialized)``; ``fetch`` is None while the cache is fresh.
        """
        with self._lock:
            if self._clock() <= self._last_refreshed_at + max_age_seconds:
                return None, self._initialized
            was_initialized = self._initialized
            if self._in_flight is None:
                logger.debug("Config cache expired, refreshing")
            return self._fetch_or_join_locked(), was_initialized

    def _fetch_or_join_locked(self) -> Future[str]:
        if self._in_flight is not None:
            return self._in_flight
        future: Future[str] = pending()
        self._in_flight = future
        worker = threading.Thread(
            target=self._run_fetch,
            args=(future, self._etag),
            name="remote-config-fetch",
            daemon=True,
        )
        worker.start()
        return future

    def _run_fetch(self, future: Future[str], etag: str | None) -> None:
        try:
            result = self._fetcher.fetch(etag)
        except Exception as exc:
            logger.exception("Config fetcher raised")
            result = FetchResult.failed(str(exc) or type(exc).__name__)
        self._complete(future, result)

    def _complete(self, future: Future[str], result: FetchResult) -> None:
        with self._lock:
            try:
                document, changed = self._apply_locked(result)
            except Exception:
                logger.exception("Config cache backend raised while applying a fetch result")
                document, changed = self.cached_document(), False
            first = not self._initialized
            self._initialized = True
            self._in_flight = None
            listeners = list(self._listeners) if changed else []

        if first:
            self._initialized_signal.set_result(None)
        for listener in listeners:
            try:
                listener(document)
            except Exception:
                logger.exception("Config change listener raised")
        future.set_result(document)

    def _apply_locked(self, result: FetchResult) -> tuple[str, bool]:
        cached = self._cache.get()
        if result.is_failed:
            logger.info("Config refresh failed, serving cached document: %s", result.reason)
            return cached, False

        changed = False
        document = cached
        if result.is_fetched:
            document = result.document
            if document != cached:
                self._cache.set(document)
                changed = True
            self._etag = result.etag
        self._last_refreshed_at = self._clock()
        return document, changed


def _expiring_document(state: RefreshState, mode: ExpiringMode) -> Future[str]:
    fetch, was_initialized = state.join_if_expired(mode.cache_refresh_interval_seconds)
    if fetch is None:
        return completed(state.cached_document())
    if not was_initialized:
        # A cold client waits for the first attempt even in async mode.
        return then(state.initialized_signal, lambda _: state.cached_document())
    if mode.async_refresh:
        return completed(state.cached_document())
    return fetch


class RefreshPolicy:
    """Serves the configuration document according to a polling mode.

    - ``ManualMode``: reads return the cache; only ``refresh`` fetches.
    - ``IntervalMode``: a background task fetches every period; reads never wait.
    - ``ExpiringMode``: reads fetch once the cache is older than the refresh
      interval, waiting for the result unless ``async_refresh`` is set and the
      client has already completed its first fetch.
    """

    def __init__(
        self,
        mode: PollingMode,
        fetcher: Fetcher,
        cache: ConfigCache,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not isinstance(mode, (ManualMode, IntervalMode, ExpiringMode)):
            raise TypeError(f"Unsupported polling mode: {type(mode).__name__}")
        self._mode = mode
        self._state = RefreshState(fetcher, cache, clock=clock)
        self._poller: PeriodicTask | None = None
        if isinstance(mode, IntervalMode):
            self._poller = PeriodicTask(
                mode.poll_interval_seconds,
                self._poll,
                run_immediately=mode.fetch_immediately,
            )
            self._poller.start()

    @property
    def mode(self) -> PollingMode:
        return self._mode

    @property
    def state(self) -> RefreshState:
        return self._state

    def get_document_async(self) -> Future[str]:
        """Future of the best available document; already completed when no wait is needed."""
        if isinstance(self._mode, ExpiringMode):
            return _expiring_document(self._state, self._mode)
        return completed(self._state.cached_document())

    def get_document(self, timeout: float | None = None) -> str:
        """Best available document. Falls back to the cache if ``timeout`` elapses first."""
        future = self.get_document_async()
        try:
            return future.result(timeout)
        except TimeoutError:
            logger.warning("Timed out after %ss waiting for config fetch, serving cached document", timeout)
            return self._state.cached_document()

    def latest_cached_document(self) -> str:
        return self._state.cached_document()

    def refresh_async(self) -> Future[str]:
        """Start a fetch, or join the running one, regardless of staleness."""
        return self._state.fetch_or_join()

    def refresh(self, timeout: float | None = None) -> None:
        """Fetch and wait for completion.

        Raises:
            TimeoutError: If ``timeout`` elapses first; the fetch keeps running.
        """
        self.refresh_async().result(timeout)

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Call ``listener(document)`` whenever a fetch writes new content to the cache."""
        self._state.add_change_listener(listener)

    def close(self) -> None:
        if self._poller is not None:
            self._poller.stop()

    def _poll(self) -> None:
        self._state.fetch_or_join().result()
