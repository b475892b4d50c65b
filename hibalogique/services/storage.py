# hibalogique/services/storage.py
import os
import re
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from hibalogique.config import settings
from hibalogique.core.logging_config import logger

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


# =========================
# Abstract key-value store
# =========================
class KeyValueStore(ABC):
    """String keys to string values, synchronous get/set."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store value under key. Raises OSError when the write fails."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove a key; False if it was not there."""
        pass


# =========================
# In-memory
# =========================
class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


# =========================
# Local files
# =========================
class LocalKeyValueStore(KeyValueStore):
    """One UTF-8 file per key under base_path."""

    def __init__(self, base_path: str = "data"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _full_path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_path / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        p = self._full_path(key)
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        p = self._full_path(key)
        # write to a temp file in the same dir, then atomically replace
        fd, tmp = tempfile.mkstemp(dir=str(self.base_path), prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp, p)
        except OSError:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("kv_written", path=str(p), size=len(value))

    def delete(self, key: str) -> bool:
        p = self._full_path(key)
        if p.exists():
            p.unlink()
            return True
        return False


def get_store() -> KeyValueStore:
    """Factory: local file store under settings.storage_dir."""
    return LocalKeyValueStore(settings.storage_dir)
