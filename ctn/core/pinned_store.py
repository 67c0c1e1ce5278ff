"""
Pinned marks: a per-conversation set of marked turn ids.

Pins are a convenience feature, so every read failure degrades to "nothing
pinned" and write failures are logged rather than raised.
"""

import logging
from typing import Iterable, Set

from .constants import PINNED_KEY_PREFIX
from .storage import KeyValueStore, StorageError

logger = logging.getLogger(__name__)


class PinnedStore:
    """Pinned turn ids keyed by "<prefix>:<conversation_id>" """

    def __init__(self, kv: KeyValueStore, prefix: str = PINNED_KEY_PREFIX):
        self.kv = kv
        self.prefix = prefix

    def key_for(self, conversation_id: str) -> str:
        return f"{self.prefix}:{conversation_id}"

    async def load_pinned(self, conversation_id: str) -> Set[str]:
        """Pinned turn ids for a conversation; empty on any failure"""
        if not conversation_id:
            return set()

        key = self.key_for(conversation_id)
        try:
            stored = await self.kv.get(key)
        except StorageError as e:
            logger.error(f"Failed to load pinned state for {conversation_id}: {e}")
            return set()

        if stored is None:
            return set()
        if not isinstance(stored, list):
            logger.warning(f"Ignoring malformed pinned state under {key}")
            return set()
        return {str(turn_id) for turn_id in stored if isinstance(turn_id, (str, int)) and not isinstance(turn_id, bool)}

    async def save_pinned(self, conversation_id: str, pinned: Iterable[str]):
        """Persist the set as a sorted list"""
        if not conversation_id:
            return
        try:
            await self.kv.set(self.key_for(conversation_id), sorted(pinned))
        except StorageError as e:
            logger.error(f"Failed to save pinned state for {conversation_id}: {e}")

    async def toggle_pinned(self, conversation_id: str, turn_id: str) -> bool:
        """
        Flip one turn's mark.

        Returns:
            The new membership state (True = pinned)
        """
        turn_id = "" if turn_id is None else str(turn_id)
        if not conversation_id or not turn_id:
            return False

        pinned = await self.load_pinned(conversation_id)
        if turn_id in pinned:
            pinned.discard(turn_id)
            is_pinned = False
        else:
            pinned.add(turn_id)
            is_pinned = True

        await self.save_pinned(conversation_id, pinned)
        return is_pinned

    async def is_pinned(self, conversation_id: str, turn_id: str) -> bool:
        return str(turn_id) in await self.load_pinned(conversation_id)

    async def clear_pinned(self, conversation_id: str):
        """Drop every mark of a conversation"""
        if not conversation_id:
            return
        try:
            await self.kv.remove(self.key_for(conversation_id))
        except StorageError as e:
            logger.error(f"Failed to clear pinned state for {conversation_id}: {e}")
