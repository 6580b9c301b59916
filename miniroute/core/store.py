"""
SOLE RESPONSIBILITY: Persisted key/value storage for environment overrides,
with an in-memory fallback cache when the persistent backend is unavailable.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ErrorCode

logger = logging.getLogger(__name__)


# Persisted keys - stable across versions, do not rename
STORAGE_KEYS = {
    "FORCE_ENV": "__MP_FORCE_ENV__",
    "TESTING_BASE_URL": "__MP_TESTING_BASE_URL__",
    "PRODUCTION_BASE_URL": "__MP_PROD_BASE_URL__",
}


def _is_empty(value: Any) -> bool:
    return value is None or value == ""


class KeyValueStore:
    """Synchronous get/set/remove capability. Subclasses provide the backend."""

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """Process-local store. Nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any:
        return self.data.get(key)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    Key/value store persisted as a single JSON object on disk.
    Loaded once, written through on every change.
    """

    def __init__(self, storage_path: Optional[Path] = None):
        if storage_path is None:
            storage_path = Path.home() / ".miniroute" / "storage.json"
        self.storage_path = Path(storage_path)
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        if not self.storage_path.exists():
            self._data = {}
            return self._data

        with open(self.storage_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.storage_path} does not contain a JSON object")
        self._data = data
        return self._data

    def _save(self) -> None:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

        # Write to temp file first for atomicity
        temp_path = self.storage_path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        temp_path.replace(self.storage_path)

    def get(self, key: str) -> Any:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        self._load()[key] = value
        self._save()

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save()


class OverrideStore:
    """
    Reads and writes overrides through a persistent backend, mirroring every write
    into an in-memory cache. When the backend is missing or raises, the cache answers.

    Empty values ("" or None) mean "absent": writing one removes the key.
    """

    def __init__(self, backend: Optional[KeyValueStore] = None):
        self.backend = backend
        self._cache: Dict[str, Any] = {}

    def read(self, key: str) -> Any:
        if self.backend is not None:
            try:
                value = self.backend.get(key)
                if not _is_empty(value):
                    return value
            except Exception as e:
                logger.warning(f"{ErrorCode.STORAGE_UNAVAILABLE.tag()} Reading {key} failed, using memory cache: {e}")
        return self._cache.get(key)

    def write(self, key: str, value: Any) -> None:
        if self.backend is not None:
            try:
                if _is_empty(value):
                    self.backend.remove(key)
                else:
                    self.backend.set(key, value)
            except Exception as e:
                logger.warning(f"{ErrorCode.STORAGE_UNAVAILABLE.tag()} Writing {key} failed, kept in memory only: {e}")

        if _is_empty(value):
            self._cache.pop(key, None)
        else:
            self._cache[key] = value

    def remove(self, key: str) -> None:
        self.write(key, None)
