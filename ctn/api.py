"""
Python entry point for CTN - wires the stores together for a presentation layer
"""

from typing import List, Optional, Tuple
from contextlib import asynccontextmanager
import logging

from ctn.core.archive_store import ArchiveStore, cleanup_archived_links
from ctn.core.config import Config, get_config
from ctn.core.favorite_store import FavoriteStore, existing_link_keys
from ctn.core.index_resolver import IndexResolver, TurnSource
from ctn.core.link_index import LinkIndex, build_link_index
from ctn.core.models import ArchiveState, FavoriteConversation
from ctn.core.pinned_store import PinnedStore
from ctn.core.session import ConversationSession
from ctn.core.storage import KeyValueStore, open_store

logger = logging.getLogger(__name__)


class Navigator:
    """
    Main entry point: one per process, sharing a single key-value store.

    Examples:
        nav = Navigator(config=Config(persist=False))
        session = await nav.open_conversation("c1", source, url=url, site_name="ChatGPT")
        session.on_scroll(ScrollSnapshot(300, 800, 5000))
        await session.toggle_pin()

        async with nav.archive() as state:
            folder = create_archive_folder(state, None, "Reading list")
    """

    def __init__(self, kv: Optional[KeyValueStore] = None, config: Optional[Config] = None):
        """
        Args:
            kv: Key-value store (defaults to the configured backend)
            config: Config instance (defaults to the global config)
        """
        self.config = config or get_config()
        self.kv = kv if kv is not None else open_store(self.config)

        self.pinned_store = PinnedStore(self.kv, prefix=self.config.get('storage.pinned_prefix'))
        self.favorite_store = FavoriteStore(
            self.kv,
            key=self.config.get('storage.favorites_key'),
            title_max_length=self.config.get('favorites.title_max_length'),
            untitled_label=self.config.get('favorites.untitled_label'),
        )
        self.archive_store = ArchiveStore(
            self.kv,
            key=self.config.get('storage.archive_key'),
            untitled=self.config.get('archive.untitled_folder_name'),
        )
        self._session: Optional[ConversationSession] = None

    @property
    def session(self) -> Optional[ConversationSession]:
        """The currently open conversation session, if any"""
        return self._session

    async def open_conversation(self, conversation_id: str, source: TurnSource,
                                url: str = "", site_name: str = "") -> ConversationSession:
        """Close any open session and open a fresh one for conversation_id"""
        self.close_conversation()
        resolver = IndexResolver(source, bottom_threshold=self.config.get('navigation.bottom_threshold_px'))
        session = ConversationSession(
            conversation_id, source, self.pinned_store, self.favorite_store, self.archive_store,
            url=url, site_name=site_name, resolver=resolver,
        )
        self._session = await session.open()
        logger.info(f"Opened conversation {conversation_id} with {resolver.total_count()} turns")
        return self._session

    def close_conversation(self):
        if self._session is not None:
            self._session.close()
            self._session = None

    async def favorites_overview(self) -> Tuple[List[FavoriteConversation], LinkIndex, ArchiveState]:
        """
        Everything a favorites browser needs, with orphaned archive links pruned.

        Returns:
            (favorites, link index, archive state)
        """
        favorites = await self.favorite_store.load_all()
        index = build_link_index(favorites)
        state = await self.archive_store.load()
        if cleanup_archived_links(state, index.existing_keys):
            await self.archive_store.save(state)
        return favorites, index, state

    async def unfavorite_conversation(self, conversation_id: str) -> bool:
        """
        Delete a favorite record from the favorites list.

        The open session's favorited flag follows the record, and archive
        links to the conversation are pruned.

        Returns:
            True if a record was removed
        """
        removed = await self.favorite_store.unfavorite_conversation(conversation_id)
        await self._refresh_session_flag(conversation_id)
        if removed:
            await self._cleanup_archive()
        return removed

    async def remove_favorite_item(self, conversation_id: str, node_index: int) -> bool:
        """Drop one turn from a favorite record and prune its archive link"""
        removed = await self.favorite_store.remove_item(conversation_id, node_index)
        await self._refresh_session_flag(conversation_id)
        if removed:
            await self._cleanup_archive()
        return removed

    async def _refresh_session_flag(self, conversation_id: str):
        if self._session is not None and self._session.conversation_id == conversation_id:
            self._session.is_favorited = await self.favorite_store.is_favorited(conversation_id)

    async def _cleanup_archive(self) -> bool:
        favorites = await self.favorite_store.load_all()
        return await self.archive_store.cleanup(existing_link_keys(favorites))

    @asynccontextmanager
    async def archive(self):
        """Load the archive, yield it for editing, save it on clean exit"""
        state = await self.archive_store.load()
        yield state
        await self.archive_store.save(state)

    def close(self):
        """Close any session and release the store"""
        self.close_conversation()
        self.kv.close()
