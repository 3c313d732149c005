"""Key-value persistence primitives.

Values are JSON-compatible objects. Writes replace the whole value for a
key (last write wins).
"""

import json
import os
import re
import tempfile
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional

from fignotes.exceptions import StorageReadFailure, StorageWriteFailed


class KeyValueStore(ABC):
    """Abstract JSON key-value store."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Get the value for a key.

        Args:
            key: Storage key

        Returns:
            Stored JSON value, or None when the key is absent

        Raises:
            StorageReadFailure: If the stored value cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Replace the value for a key.

        Args:
            key: Storage key
            value: JSON-compatible value

        Raises:
            StorageWriteFailed: If the write does not complete
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = deepcopy(initial) if initial else {}

    def get(self, key: str) -> Optional[Any]:
        return deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = deepcopy(value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class JsonFileKeyValueStore(KeyValueStore):
    """One JSON file per key inside a directory.

    Writes go to a temporary file that is renamed over the target, so a
    reader never sees a half-written value.
    """

    def __init__(self, store_dir: Path) -> None:
        """Initialize the file store.

        Args:
            store_dir: Directory holding the value files
        """
        self.store_dir = Path(store_dir)

    def _path_for(self, key: str) -> Path:
        safe = re.sub(r"[^\w.\-]", "_", key)
        return self.store_dir / f"{safe}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageReadFailure(f"Could not read '{key}': {e}") from e

    def set(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=self.store_dir, prefix=f".{path.stem}_", suffix=".json.tmp"
            )
        except OSError as e:
            raise StorageWriteFailed(key, e) from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, indent=2, default=str)
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise StorageWriteFailed(key, e) from e

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True
