"""
Key-value caches for the resolved store id
"""

import json
import logging
import os
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)

RESOLVED_STORE_ID_KEY = "resolved_store_id"


class KeyValueCache(Protocol):
    """String key-value storage the store resolver memoizes into"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryCache:
    """Process-local cache, lost on restart"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.memory: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.memory.get(key)

    def set(self, key: str, value: str) -> None:
        self.memory[key] = value

    def remove(self, key: str) -> None:
        self.memory.pop(key, None)


class JsonFileCache:
    """Cache persisted as a flat JSON object, so it survives process restarts"""

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable cache file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring cache file {self.path}: expected a JSON object")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _dump(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        if not os.path.isdir(directory):
            os.makedirs(directory)

        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError):
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)
