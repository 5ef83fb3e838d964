"""Storage backends for the last-known-good configuration document."""

import os
import tempfile
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from remote_config.utils import RemoteConfigError


@runtime_checkable
class ConfigCache(Protocol):
    """Single-slot store for the configuration document.

    Implementations hold no versioning logic; the refresh policy decides when
    to read and write. ``get`` returns an empty string when nothing is stored.
    """

    def get(self) -> str: ...

    def set(self, document: str) -> None: ...


class InMemoryConfigCache:
    """Thread-safe in-process cache. The default backend."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._document = ""

    def get(self) -> str:
        with self._lock:
            return self._document

    def set(self, document: str) -> None:
        with self._lock:
            self._document = document


class FileConfigCache:
    """Persists the document to a file so a restarted process starts warm.

    Writes go through a temporary file in the same directory followed by
    ``os.replace``, so a reader sees either the old or the new document.
    """

    def __init__(self, path: str | Path, encoding: str = "utf-8") -> None:
        self._path = Path(path)
        self._encoding = encoding
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> str:
        with self._lock:
            try:
                return self._path.read_text(encoding=self._encoding)
            except FileNotFoundError:
                return ""
            except OSError as err:
                raise RemoteConfigError(f'Error reading cache file "{self._path}": {err}') from err

    def set(self, document: str) -> None:
        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding=self._encoding) as f:
                        f.write(document)
                    os.replace(tmp_name, self._path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as err:
                raise RemoteConfigError(f'Error writing cache file "{self._path}": {err}') from err
