"""Polling modes that select how the cached configuration is refreshed."""

from __future__ import annotations

import os
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from remote_config.utils import coerce_boolean, coerce_seconds


class PollingKind(StrEnum):
    """Refresh strategies."""

    MANUAL = "manual"
    INTERVAL = "interval"
    EXPIRING = "expiring"


class ManualMode(BaseModel):
    """Fetch only when the application asks for a refresh."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["manual"] = "manual"


class IntervalMode(BaseModel):
    """Fetch on a fixed period in the background; reads never wait."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["interval"] = "interval"
    poll_interval_seconds: float = Field(default=60, gt=0)
    fetch_immediately: bool = True


class ExpiringMode(BaseModel):
    """Fetch lazily on read once the cached document is older than the refresh interval."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["expiring"] = "expiring"
    cache_refresh_interval_seconds: float = Field(default=60, ge=0)
    async_refresh: bool = False


PollingMode = ManualMode | IntervalMode | ExpiringMode

_polling_mode_adapter: TypeAdapter[PollingMode] = TypeAdapter(Annotated[PollingMode, Field(discriminator="kind")])


def polling_mode_from_dict(data: dict[str, Any]) -> PollingMode:
    """Build a polling mode from a plain mapping such as a parsed settings file.

    Raises:
        pydantic.ValidationError: If ``kind`` is unknown or a parameter is out of range.
    """
    return _polling_mode_adapter.validate_python(data)


def polling_mode_from_env(env: dict[str, str] | None = None) -> PollingMode:
    """Select a polling mode from environment variables.

    Variables:
        REMOTE_CONFIG_POLLING_MODE           — "manual", "interval" (default) or "expiring"
        REMOTE_CONFIG_POLL_INTERVAL_SECONDS  — interval mode period (default 60)
        REMOTE_CONFIG_CACHE_TTL_SECONDS      — expiring mode refresh interval (default 60)
        REMOTE_CONFIG_ASYNC_REFRESH          — expiring mode async refresh flag (default false)

    Args:
        env: Environment variable dict. If None, uses os.environ.
    """
    if env is None:
        env = dict(os.environ)

    kind = env.get("REMOTE_CONFIG_POLLING_MODE", PollingKind.INTERVAL).strip().lower()

    if kind == PollingKind.MANUAL:
        return ManualMode()
    if kind == PollingKind.EXPIRING:
        return ExpiringMode(
            cache_refresh_interval_seconds=coerce_seconds(env.get("REMOTE_CONFIG_CACHE_TTL_SECONDS"), 60),
            async_refresh=coerce_boolean(env.get("REMOTE_CONFIG_ASYNC_REFRESH", "")),
        )
    if kind == PollingKind.INTERVAL:
        return IntervalMode(
            poll_interval_seconds=coerce_seconds(env.get("REMOTE_CONFIG_POLL_INTERVAL_SECONDS"), 60),
        )
    raise ValueError(f"Unknown polling mode {kind!r} (expected manual, interval or expiring)")
