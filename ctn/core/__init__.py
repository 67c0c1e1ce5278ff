"""Core components of the Conversation Turn Navigator"""

from .storage import KeyValueStore, MemoryKeyValueStore, StorageError, open_store

__all__ = ['KeyValueStore', 'MemoryKeyValueStore', 'StorageError', 'open_store']
