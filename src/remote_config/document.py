"""Reading settings out of a configuration document."""

import json
from typing import Any

from remote_config.utils import RemoteConfigError

SUPPORTED_TYPES: tuple[type, ...] = (str, int, float, bool)


def parse_document(document: str) -> dict[str, Any]:
    """Parse a configuration document into its settings mapping.

    An empty document means no configuration is available and yields ``{}``.

    Raises:
        RemoteConfigError: If the document is not a JSON object.
    """
    if not document:
        return {}
    try:
        settings = json.loads(document)
    except json.JSONDecodeError as err:
        raise RemoteConfigError(f"Invalid configuration document: {err}") from err
    if not isinstance(settings, dict):
        raise RemoteConfigError(f"Configuration document must be a JSON object, got {type(settings).__name__}")
    return settings


def _matches(value: Any, value_type: type) -> bool:
    if value_type is bool:
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if value_type is float:
        return isinstance(value, (int, float))
    return isinstance(value, value_type)


def get_setting(settings: dict[str, Any], key: str, value_type: type | None = None) -> Any:
    """Look up ``key`` and check it against ``value_type``.

    ``bool`` is matched strictly, ``int`` values are accepted (and converted)
    for ``float``, and ``value_type=None`` accepts any JSON value.

    Raises:
        RemoteConfigError: If the key is missing or holds a value of another type.
    """
    if key not in settings:
        raise RemoteConfigError(f'Setting "{key}" not found. Available keys: {sorted(settings)}')
    value = settings[key]
    if value_type is None:
        return value
    if not _matches(value, value_type):
        raise RemoteConfigError(
            f'Setting "{key}" holds {type(value).__name__}, requested {value_type.__name__}'
        )
    if value_type is float:
        return float(value)
    return value
