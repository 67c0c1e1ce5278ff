"""
Key-value persistence port.

All bookmark state is persisted through an asynchronous, namespaced
get/set store whose values are JSON-compatible. There are no transactions:
the last write wins.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised by a KeyValueStore when the backend cannot read or write"""
    pass


class KeyValueStore(ABC):
    """Abstract asynchronous key-value store"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """
        Read a value.

        Returns:
            The stored JSON value, or None when the key is absent

        Raises:
            StorageError: the backend failed
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: the value is not JSON-serializable or the backend failed
        """
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete a key; removing an absent key is not an error"""
        pass

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with prefix"""
        pass

    def close(self):
        """Release backend resources"""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """
    In-process store.

    Values are JSON round-tripped on the way in and out, so callers never
    share mutable state with the store and unserializable values fail the
    same way they would against a real JSON backend.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self._data[key] = self._encode(key, value)

    @staticmethod
    def _encode(key: str, value: Any) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for {key!r} is not JSON-serializable: {e}") from e

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = self._encode(key, value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


def open_store(config=None) -> KeyValueStore:
    """
    Create the configured key-value store.

    Args:
        config: Config instance (defaults to the global config)

    Returns:
        MemoryKeyValueStore for backend "memory", SQLKeyValueStore otherwise
    """
    if config is None:
        from .config import get_config
        config = get_config()

    backend = config.get('storage.backend', 'sqlite')
    if backend == 'memory':
        return MemoryKeyValueStore()
    if backend != 'sqlite':
        logger.warning(f"Unknown storage backend {backend!r}, using sqlite")

    # Import here so the memory backend does not need SQLAlchemy loaded
    from .database import SQLKeyValueStore

    return SQLKeyValueStore(
        str(config.get_storage_path()),
        db_filename=config.get('storage.db_filename'),
    )
