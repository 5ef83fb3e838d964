"""Remote configuration cache - Python SDK."""

from remote_config._version import __version__
from remote_config.cache import ConfigCache, FileConfigCache, InMemoryConfigCache
from remote_config.client import ConfigClient
from remote_config.fetch import ConfigFetcher, Fetcher, FetchResult, FetchStatus
from remote_config.polling import (
    ExpiringMode,
    IntervalMode,
    ManualMode,
    PollingKind,
    PollingMode,
    polling_mode_from_dict,
    polling_mode_from_env,
)
from remote_config.refresh import RefreshPolicy, RefreshState
from remote_config.utils import RemoteConfigError, coerce_boolean

__all__ = [
    "ConfigCache",
    "ConfigClient",
    "ConfigFetcher",
    "ExpiringMode",
    "FetchResult",
    "FetchStatus",
    "Fetcher",
    "FileConfigCache",
    "InMemoryConfigCache",
    "IntervalMode",
    "ManualMode",
    "PollingKind",
    "PollingMode",
    "RefreshPolicy",
    "RefreshState",
    "RemoteConfigError",
    "__version__",
    "coerce_boolean",
    "polling_mode_from_dict",
    "polling_mode_from_env",
]
