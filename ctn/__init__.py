"""
Conversation Turn Navigator - turn index resolution and durable favorites for long chat transcripts
"""

__version__ = "1.0.0"
__author__ = "CTN Contributors"

from .core.index_resolver import IndexResolver, TurnAnchor, ScrollSnapshot
from .core.models import (
    PinnedItem,
    FavoriteItem,
    FavoriteConversation,
    FavoriteLink,
    ArchiveFolder,
    ArchiveState,
)
from .core.storage import KeyValueStore, MemoryKeyValueStore, StorageError
from .core.pinned_store import PinnedStore
from .core.favorite_store import FavoriteStore
from .core.archive_store import ArchiveStore
from .core.session import ConversationSession

from .api import Navigator

__all__ = [
    # Navigation
    'IndexResolver',
    'TurnAnchor',
    'ScrollSnapshot',
    # Models
    'PinnedItem',
    'FavoriteItem',
    'FavoriteConversation',
    'FavoriteLink',
    'ArchiveFolder',
    'ArchiveState',
    # Persistence
    'KeyValueStore',
    'MemoryKeyValueStore',
    'StorageError',
    'PinnedStore',
    'FavoriteStore',
    'ArchiveStore',
    'ConversationSession',
    # API
    'Navigator',
]
