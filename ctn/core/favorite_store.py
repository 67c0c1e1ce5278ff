"""
Favorite conversation store.

The whole collection lives under one key and every operation is a
load -> mutate -> save cycle over it. There is no locking: two operations
interleaved across an await can lose an update. Each cycle is kept short and
never batches several logical edits into one write.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Set, Tuple, Union

from .constants import FAVORITES_KEY, TITLE_MAX_LENGTH, UNTITLED_CONVERSATION
from .models import FavoriteConversation, FavoriteItem, PinnedItem
from .storage import KeyValueStore, StorageError
from .utils import now_ms, parse_node_index, parse_timestamp_ms, truncate_title

logger = logging.getLogger(__name__)

PinnedInput = Union[PinnedItem, Tuple[int, str]]


def normalize_favorite_item(raw: Any) -> Optional[FavoriteItem]:
    """Parse a stored item, or None if it has no usable nodeIndex"""
    if not isinstance(raw, dict):
        return None
    node_index = parse_node_index(raw.get('nodeIndex'))
    if node_index is None:
        return None
    prompt_text = raw.get('promptText')
    return FavoriteItem(
        node_index=node_index,
        prompt_text=prompt_text if isinstance(prompt_text, str) else "",
        timestamp=parse_timestamp_ms(raw.get('timestamp'), 0),
    )


def normalize_favorite(raw: Any) -> Optional[FavoriteConversation]:
    """Parse a stored record, or None if it has no conversationId"""
    if not isinstance(raw, dict):
        return None
    conversation_id = raw.get('conversationId')
    if not isinstance(conversation_id, str) or not conversation_id:
        return None

    def text(name: str) -> str:
        value = raw.get(name)
        return value if isinstance(value, str) else ""

    items_raw = raw.get('items') if isinstance(raw.get('items'), list) else []
    items = [item for item in map(normalize_favorite_item, items_raw) if item is not None]
    return FavoriteConversation(
        conversation_id=conversation_id,
        url=text('url'),
        title=text('title'),
        site_name=text('siteName'),
        items=items,
        updated_at=parse_timestamp_ms(raw.get('updatedAt'), 0),
    )


def existing_link_keys(favorites: Iterable[FavoriteConversation]) -> Set[str]:
    """Link keys of every favorited item; the input to archive cleanup"""
    return {link.key for conv in favorites for link in conv.links()}


def _stamp_items(pinned_items: Sequence[PinnedInput], timestamp: int) -> List[FavoriteItem]:
    items = []
    for pinned in pinned_items:
        if not isinstance(pinned, PinnedItem):
            pinned = PinnedItem(*pinned)
        items.append(FavoriteItem(node_index=pinned.index, prompt_text=pinned.prompt_text,
                                  timestamp=timestamp))
    return items


class FavoriteStore:
    """Per-conversation favorite records under a single key"""

    def __init__(self, kv: KeyValueStore, key: str = FAVORITES_KEY,
                 title_max_length: int = TITLE_MAX_LENGTH,
                 untitled_label: str = UNTITLED_CONVERSATION):
        self.kv = kv
        self.key = key
        self.title_max_length = title_max_length
        self.untitled_label = untitled_label

    async def load_all(self) -> List[FavoriteConversation]:
        """All favorite records; empty on read failure or malformed data"""
        try:
            stored = await self.kv.get(self.key)
        except StorageError as e:
            logger.error(f"Failed to load favorites: {e}")
            return []

        if not isinstance(stored, list):
            if stored is not None:
                logger.warning(f"Ignoring malformed favorites under {self.key}")
            return []

        favorites = []
        seen = set()
        for raw in stored:
            conv = normalize_favorite(raw)
            if conv is None or conv.conversation_id in seen:
                continue
            seen.add(conv.conversation_id)
            favorites.append(conv)
        return favorites

    async def save_all(self, favorites: List[FavoriteConversation]):
        """Replace the whole collection"""
        try:
            await self.kv.set(self.key, [conv.to_dict() for conv in favorites])
        except StorageError as e:
            logger.error(f"Failed to save favorites: {e}")

    async def get_conversation(self, conversation_id: str) -> Optional[FavoriteConversation]:
        for conv in await self.load_all():
            if conv.conversation_id == conversation_id:
                return conv
        return None

    async def favorite_conversation(self, conversation_id: str, url: str, site_name: str,
                                    chat_title: str, items: Sequence[PinnedInput]) -> bool:
        """
        Create or replace the favorite record of a conversation.

        Args:
            conversation_id: Conversation to favorite
            url: Page URL to navigate back to
            site_name: Host site label
            chat_title: Conversation title, usually the first prompt
            items: Marked turns as PinnedItem or (index, prompt_text) pairs

        Returns:
            True once written (an existing record is overwritten)
        """
        if not conversation_id:
            return False

        favorites = await self.load_all()
        now = now_ms()
        title = truncate_title(chat_title or "", self.title_max_length)
        record = FavoriteConversation(
            conversation_id=conversation_id,
            url=url,
            title=title or self.untitled_label,
            site_name=site_name,
            items=_stamp_items(items, now),
            updated_at=now,
        )

        for i, conv in enumerate(favorites):
            if conv.conversation_id == conversation_id:
                favorites[i] = record
                break
        else:
            favorites.append(record)

        await self.save_all(favorites)
        logger.info(f"Favorited conversation {conversation_id} with {len(record.items)} items")
        return True

    async def update_favorite_items(self, conversation_id: str,
                                    items: Sequence[PinnedInput]) -> bool:
        """Replace the items of an existing record; False if not favorited"""
        favorites = await self.load_all()
        conv = _find(favorites, conversation_id)
        if conv is None:
            return False

        now = now_ms()
        conv.items = _stamp_items(items, now)
        conv.updated_at = now
        await self.save_all(favorites)
        return True

    async def unfavorite_conversation(self, conversation_id: str) -> bool:
        """Delete a record; True if one was removed"""
        favorites = await self.load_all()
        remaining = [conv for conv in favorites if conv.conversation_id != conversation_id]
        if len(remaining) == len(favorites):
            return False

        await self.save_all(remaining)
        logger.info(f"Unfavorited conversation {conversation_id}")
        return True

    async def is_favorited(self, conversation_id: str) -> bool:
        return await self.get_conversation(conversation_id) is not None

    async def update_title(self, conversation_id: str, new_title: str) -> bool:
        favorites = await self.load_all()
        conv = _find(favorites, conversation_id)
        if conv is None:
            return False

        conv.title = new_title
        conv.updated_at = now_ms()
        await self.save_all(favorites)
        return True

    async def remove_item(self, conversation_id: str, node_index: int) -> bool:
        """
        Drop one marked turn from a record.

        The record itself stays even when its last item goes, so the
        conversation remains reachable from the favorites list.
        """
        favorites = await self.load_all()
        conv = _find(favorites, conversation_id)
        if conv is None:
            return False

        conv.items = [item for item in conv.items if item.node_index != node_index]
        conv.updated_at = now_ms()
        await self.save_all(favorites)
        return True


def _find(favorites: List[FavoriteConversation], conversation_id: str) -> Optional[FavoriteConversation]:
    return next((conv for conv in favorites if conv.conversation_id == conversation_id), None)
