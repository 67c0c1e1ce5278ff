"""
Per-conversation session state.

A ConversationSession is created when a conversation view opens and thrown
away when it closes or the conversation changes. It owns the index resolver,
the cached pinned set and the favorited flag for that one conversation, and
keeps the favorite record and the archive consistent with the user's marks.
"""

import logging
from typing import List, Optional, Set

from .archive_store import ArchiveStore
from .favorite_store import FavoriteStore, existing_link_keys
from .index_resolver import IndexResolver, ScrollSnapshot, TurnSource
from .models import PinnedItem
from .pinned_store import PinnedStore

logger = logging.getLogger(__name__)


class ConversationSession:
    """Navigation and bookmark state of one open conversation"""

    def __init__(self, conversation_id: str, source: Optional[TurnSource],
                 pinned_store: PinnedStore, favorite_store: FavoriteStore,
                 archive_store: ArchiveStore, url: str = "", site_name: str = "",
                 resolver: Optional[IndexResolver] = None):
        """
        Args:
            conversation_id: Id of the open conversation
            source: Turn source for the resolver (ignored if resolver is given)
            pinned_store: Pinned marks store
            favorite_store: Favorite records store
            archive_store: Archive tree store
            url: Page URL recorded in favorite records
            site_name: Host site label recorded in favorite records
            resolver: Pre-built resolver to use instead of one over source
        """
        self.conversation_id = conversation_id
        self.url = url
        self.site_name = site_name
        if resolver is None:
            resolver = IndexResolver(source or (lambda: []))
        self.resolver = resolver
        self.pinned_store = pinned_store
        self.favorite_store = favorite_store
        self.archive_store = archive_store

        self.pinned: Set[str] = set()
        self.is_favorited = False
        self.last_scroll: Optional[ScrollSnapshot] = None
        self.closed = False

    async def open(self) -> 'ConversationSession':
        """Load persisted marks and favorited status"""
        self.pinned = await self.pinned_store.load_pinned(self.conversation_id)
        self.is_favorited = await self.favorite_store.is_favorited(self.conversation_id)
        logger.debug(f"Opened session {self.conversation_id}: {len(self.pinned)} pinned, "
                     f"favorited={self.is_favorited}")
        return self

    def close(self):
        self.pinned = set()
        self.last_scroll = None
        self.closed = True

    # ==================== Navigation ====================

    def on_scroll(self, snapshot: ScrollSnapshot) -> int:
        """Resolve the active turn for a scroll event"""
        self.last_scroll = snapshot
        return self.resolver.update_from_snapshot(snapshot)

    def check_for_changes(self) -> bool:
        """
        Refresh the turn list if its size changed.

        After a refresh the active turn is re-resolved from the last scroll
        position, if one was seen.

        Returns:
            True if a refresh happened
        """
        if not self.resolver.needs_refresh():
            return False
        self.resolver.refresh()
        if self.last_scroll is not None:
            self.resolver.update_from_snapshot(self.last_scroll)
        logger.info(f"Turn list changed, now {self.resolver.total_count()} turns")
        return True

    def prompt_text(self, index: int) -> str:
        anchor = self.resolver.anchor_at(index)
        return anchor.prompt_text if anchor else ""

    def chat_title(self) -> str:
        """Conversation title: the first prompt, empty when there are no turns"""
        return self.prompt_text(0)

    # ==================== Pins & favorites ====================

    def is_pinned(self, index: int) -> bool:
        return str(index) in self.pinned

    def pinned_items(self) -> List[PinnedItem]:
        """Pinned turns that exist in the current turn list, by position"""
        items = []
        for turn_id in self.pinned:
            try:
                index = int(turn_id)
            except ValueError:
                continue
            if 0 <= index < self.resolver.total_count():
                items.append(PinnedItem(index, self.prompt_text(index)))
        return sorted(items, key=lambda item: item.index)

    def _items_or_representative(self) -> List[PinnedItem]:
        items = self.pinned_items()
        if not items and self.resolver.total_count() > 0:
            items = [PinnedItem(0, self.prompt_text(0))]
        return items

    async def toggle_pin(self, index: Optional[int] = None) -> bool:
        """
        Toggle the mark on a turn (the active one by default).

        Returns:
            New pinned state; False when the index is out of range
        """
        if index is None:
            index = self.resolver.current_index()
        if not 0 <= index < self.resolver.total_count():
            return False

        turn_id = str(index)
        is_pinned = await self.pinned_store.toggle_pinned(self.conversation_id, turn_id)
        if is_pinned:
            self.pinned.add(turn_id)
        else:
            self.pinned.discard(turn_id)

        await self.sync_pinned_to_favorites()
        return is_pinned

    async def sync_pinned_to_favorites(self):
        """
        Mirror the pinned set into the favorite record.

        The first mark favorites the conversation. While favorited, the
        record's items follow the marks, falling back to the first turn when
        no mark is left. A record deleted elsewhere is re-created from the
        current marks.
        """
        items = self.pinned_items()

        if self.is_favorited:
            if await self.favorite_store.update_favorite_items(
                self.conversation_id, self._items_or_representative()
            ):
                await self.cleanup_archive()
                return
            logger.info(f"Favorite record for {self.conversation_id} no longer exists")
            self.is_favorited = False

        if items:
            self.is_favorited = await self.favorite_store.favorite_conversation(
                self.conversation_id, self.url, self.site_name, self.chat_title(), items
            )

    async def toggle_favorite(self) -> bool:
        """
        Favorite or unfavorite the conversation.

        Returns:
            The new favorited state
        """
        if self.is_favorited:
            await self.favorite_store.unfavorite_conversation(self.conversation_id)
            self.is_favorited = False
            await self.cleanup_archive()
            return False

        self.is_favorited = await self.favorite_store.favorite_conversation(
            self.conversation_id, self.url, self.site_name, self.chat_title(),
            self._items_or_representative(),
        )
        return self.is_favorited

    async def remove_favorite_item(self, node_index: int) -> bool:
        """Drop one turn from the favorite record and prune the archive"""
        removed = await self.favorite_store.remove_item(self.conversation_id, node_index)
        if removed:
            await self.cleanup_archive()
        return removed

    async def cleanup_archive(self) -> bool:
        """Prune archive links whose favorite item no longer exists"""
        favorites = await self.favorite_store.load_all()
        return await self.archive_store.cleanup(existing_link_keys(favorites))
