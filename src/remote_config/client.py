"""Configuration client serving settings from a remotely synchronized document.

Environment variables (used as defaults when constructor args are omitted):
    REMOTE_CONFIG_API_URL       — Base URL of the configuration server
    REMOTE_CONFIG_API_KEY       — Key identifying the configuration file
    REMOTE_CONFIG_POLLING_MODE  — "manual", "interval" or "expiring" (see polling_mode_from_env)
"""

import logging
import os
import time
from collections.abc import Callable
from concurrent.futures import Future
from typing import Any

import httpx

from remote_config.cache import ConfigCache, InMemoryConfigCache
from remote_config.document import SUPPORTED_TYPES, get_setting, parse_document
from remote_config.fetch import ConfigFetcher, Fetcher
from remote_config.futures import then
from remote_config.polling import PollingMode, polling_mode_from_env
from remote_config.refresh import ChangeListener, RefreshPolicy
from remote_config.utils import RemoteConfigError

logger = logging.getLogger(__name__)


class ConfigClient:
    """Client for reading settings from a cached, remotely refreshed configuration.

    All constructor arguments are optional if the corresponding environment
    variables are set (REMOTE_CONFIG_API_URL, REMOTE_CONFIG_API_KEY). Without a
    polling mode the client polls in the background every 60 seconds.

    Reads never raise on network trouble: they serve the last cached document
    and fall back to the caller's default when a setting is unavailable.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        mode: PollingMode | None = None,
        cache: ConfigCache | None = None,
        fetcher: Fetcher | None = None,
        max_wait_seconds: float = 0,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
        env: dict[str, str] | None = None,
    ) -> None:
        if env is None:
            env = dict(os.environ)

        if max_wait_seconds and max_wait_seconds < 2:
            raise ValueError("max_wait_seconds cannot be less than 2 seconds")

        self._mode = mode if mode is not None else polling_mode_from_env(env)
        self._owns_fetcher = fetcher is None
        if fetcher is None:
            resolved_api_key = api_key or env.get("REMOTE_CONFIG_API_KEY")
            resolved_base_url = base_url or env.get("REMOTE_CONFIG_API_URL")
            if not resolved_api_key:
                raise ValueError("api_key is required (or set REMOTE_CONFIG_API_KEY)")
            if not resolved_base_url:
                raise ValueError("base_url is required (or set REMOTE_CONFIG_API_URL)")
            fetcher = ConfigFetcher(
                api_key=resolved_api_key,
                base_url=resolved_base_url,
                mode_name=self._mode.kind,
                http_client=http_client,
            )

        self._fetcher = fetcher
        self._cache = cache if cache is not None else InMemoryConfigCache()
        self._max_wait_seconds = max_wait_seconds
        try:
            self._policy = RefreshPolicy(self._mode, self._fetcher, self._cache, clock=clock)
        except Exception:
            if self._owns_fetcher and isinstance(self._fetcher, ConfigFetcher):
                self._fetcher.close()
            raise

    @property
    def mode(self) -> PollingMode:
        return self._mode

    @property
    def policy(self) -> RefreshPolicy:
        return self._policy

    @property
    def _wait_timeout(self) -> float | None:
        return self._max_wait_seconds or None

    def get_value(self, key: str, default: Any = None, value_type: type | None = None) -> Any:
        """Get a setting, or ``default`` if it is missing, mistyped or unavailable.

        The requested type is ``value_type`` when given, otherwise the type of
        ``default``; ``str``, ``int``, ``float`` and ``bool`` are supported.
        """
        resolved_type = self._resolve_type(key, default, value_type)
        document = self._policy.get_document(self._wait_timeout)
        return self._evaluate(document, key, default, resolved_type)

    def get_value_async(self, key: str, default: Any = None, value_type: type | None = None) -> "Future[Any]":
        """Future of ``get_value``; resolves immediately when no fetch must be awaited."""
        resolved_type = self._resolve_type(key, default, value_type)
        return then(
            self._policy.get_document_async(),
            lambda document: self._evaluate(document, key, default, resolved_type),
        )

    def get_all_keys(self) -> list[str]:
        """Keys of every setting in the current document; empty on failure."""
        return self._keys(self._policy.get_document(self._wait_timeout))

    def get_all_keys_async(self) -> "Future[list[str]]":
        return then(self._policy.get_document_async(), self._keys)

    def force_refresh(self) -> None:
        """Fetch the latest document now and wait for it (bounded by ``max_wait_seconds``)."""
        try:
            self._policy.refresh(self._wait_timeout)
        except TimeoutError:
            logger.warning("Forced config refresh still running after %ss", self._max_wait_seconds)

    def force_refresh_async(self) -> "Future[None]":
        return then(self._policy.refresh_async(), lambda _: None)

    def add_change_listener(self, listener: ChangeListener) -> None:
        """Call ``listener(document)`` whenever a refresh stores new content."""
        self._policy.add_change_listener(listener)

    def close(self) -> None:
        """Stop background polling and close the HTTP client."""
        self._policy.close()
        if self._owns_fetcher and isinstance(self._fetcher, ConfigFetcher):
            self._fetcher.close()

    def __enter__(self) -> "ConfigClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @staticmethod
    def _resolve_type(key: str, default: Any, value_type: type | None) -> type | None:
        if not key:
            raise ValueError("key is required")
        if value_type is None and default is not None:
            value_type = type(default)
        if value_type is not None and value_type not in SUPPORTED_TYPES:
            raise ValueError(f"Only str, int, float or bool settings are supported, got {value_type.__name__}")
        return value_type

    @staticmethod
    def _evaluate(document: str, key: str, default: Any, value_type: type | None) -> Any:
        try:
            return get_setting(parse_document(document), key, value_type)
        except RemoteConfigError as err:
            logger.warning("Evaluating get_value(%r) failed, returning default %r. %s", key, default, err)
            return default

    @staticmethod
    def _keys(document: str) -> list[str]:
        try:
            return list(parse_document(document))
        except RemoteConfigError as err:
            logger.error("Could not read setting keys, returning none. %s", err)
            return []
