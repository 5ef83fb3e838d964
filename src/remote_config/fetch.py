"""Remote fetch of the configuration document.

A fetch is a single HTTP round trip with a tri-state outcome: new content,
unchanged content (HTTP 304 against the cached entity tag) or failure.
Connection-level retries belong to the HTTP transport.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

import httpx

from remote_config._version import __version__
from remote_config.utils import RemoteConfigError

logger = logging.getLogger(__name__)


class FetchStatus(StrEnum):
    """Outcome of one fetch attempt."""

    FETCHED = "fetched"
    NOT_MODIFIED = "not_modified"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchResult:
    """Result of one fetch attempt."""

    status: FetchStatus
    document: str = ""
    etag: str | None = None
    reason: str | None = None

    @classmethod
    def fetched(cls, document: str, etag: str | None = None) -> FetchResult:
        return cls(FetchStatus.FETCHED, document=document, etag=etag)

    @classmethod
    def not_modified(cls) -> FetchResult:
        return cls(FetchStatus.NOT_MODIFIED)

    @classmethod
    def failed(cls, reason: str) -> FetchResult:
        return cls(FetchStatus.FAILED, reason=reason)

    @property
    def is_fetched(self) -> bool:
        return self.status is FetchStatus.FETCHED

    @property
    def is_not_modified(self) -> bool:
        return self.status is FetchStatus.NOT_MODIFIED

    @property
    def is_failed(self) -> bool:
        return self.status is FetchStatus.FAILED


class Fetcher(Protocol):
    """Anything that can retrieve the latest configuration document."""

    def fetch(self, etag: str | None) -> FetchResult: ...


class ConfigFetcher:
    """Fetches the configuration document over HTTP.

    Transport problems and unexpected statuses are reported from ``fetch`` as
    a ``FAILED`` result so the caller can keep serving its cached document.
    Fetching through a closed fetcher raises ``RemoteConfigError``.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        mode_name: str,
        timeout_seconds: float = 30,
        retries: int = 2,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        if not base_url:
            raise ValueError("base_url is required")

        self._base_url = base_url.rstrip("/")
        self._path = f"/configuration-files/{api_key}/config.json"
        self._headers = {"X-Config-Client": f"remote-config-python/{__version__}-{mode_name}"}
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            base_url=self._base_url,
            timeout=timeout_seconds,
            transport=httpx.HTTPTransport(retries=retries),
        )

    def fetch(self, etag: str | None) -> FetchResult:
        """Perform one round trip, sending ``etag`` so an unchanged document comes back as 304."""
        if self._client.is_closed:
            raise RemoteConfigError("Config fetcher is closed")

        headers = dict(self._headers)
        if etag:
            headers["If-None-Match"] = etag

        try:
            response = self._client.get(f"{self._base_url}{self._path}", headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Config fetch failed: %s", exc)
            return FetchResult.failed(str(exc) or type(exc).__name__)

        if response.status_code == httpx.codes.NOT_MODIFIED:
            logger.debug("Config not modified")
            return FetchResult.not_modified()

        if response.status_code == httpx.codes.OK:
            logger.debug("Config fetched")
            return FetchResult.fetched(response.text, etag=response.headers.get("ETag"))

        reason = f"unexpected status {response.status_code} from {response.request.url}"
        logger.warning("Config fetch failed: %s", reason)
        return FetchResult.failed(reason)

    def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> ConfigFetcher:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
