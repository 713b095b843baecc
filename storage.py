"""
Key/value storage for client-held state.

Values are strings, the same contract as browser local storage. The cart,
order ledger, reviews and wishlist all read and write through a Storage so the
backend can be swapped (MemoryStorage in tests, JsonFileStorage on disk).
"""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from errors import StorageError

logger = logging.getLogger(__name__)


class Storage(ABC):

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class MemoryStorage(Storage):
    """In-process storage. `quota` caps the total size of keys plus values."""

    def __init__(self, quota: Optional[int] = None):
        self.quota = quota
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota is not None:
            used = sum(len(k) + len(v) for k, v in self._items.items() if k != key)
            if used + len(key) + len(value) > self.quota:
                raise StorageError(f"Storage quota exceeded writing {key!r}")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage(Storage):
    """All keys kept in one JSON object file, rewritten on every change."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read {self.path}: {e}") from e

    def _write(self, items: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Could not write {self.path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(tmp)
            except OSError:
                logger.warning("Could not remove temporary file %s", tmp)
            raise StorageError(f"Could not write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = value
        self._write(items)

    def remove_item(self, key: str) -> None:
        items = self._read()
        if key in items:
            del items[key]
            self._write(items)


def load_json(storage: Storage, key: str, default: Any) -> Any:
    """Decode the JSON value under `key`, falling back to `default` when absent or corrupt."""
    raw = storage.get_item(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("Discarding unreadable value under %s", key)
        return default


def save_json(storage: Storage, key: str, value: Any) -> None:
    try:
        raw = json.dumps(value)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Could not serialize {key!r}: {e}") from e
    storage.set_item(key, raw)
