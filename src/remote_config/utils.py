"""Utility functions for remote configuration."""

from typing import Any


class RemoteConfigError(Exception):
    """Configuration error with standard prefix."""

    def __init__(self, message: str) -> None:
        super().__init__(f"[Remote Config] {message}")


def coerce_boolean(value: Any) -> bool:
    """Coerce a value to boolean.

    "true", "1", 1, True → True; everything else → False.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.lower().strip() in ("true", "1")
    return False


def coerce_seconds(value: str | None, default: float) -> float:
    """Parse a seconds value from an environment variable, keeping the default when unset or invalid."""
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default
