"""
Favorite archive: a user-organised folder tree of favorite links.

Folders live in a flat arena (``ArchiveState.folders``) and reference their
children by id, so lookups are dictionary hits and "remove this link from
every folder" is a single pass over the arena.

Invariants kept by the functions below:
- folder ids are unique across the whole tree
- a link key appears in at most one folder
- cleanup prunes links only, never folders
- deleting a folder discards its whole subtree

All tree operations are synchronous and mutate the state in place; only
ArchiveStore.load/save touch the key-value port.
"""

import logging
from typing import Any, List, Optional, Set

from .constants import ARCHIVE_KEY, ARCHIVE_VERSION, UNTITLED_FOLDER
from .models import ArchiveFolder, ArchiveState, FavoriteLink
from .storage import KeyValueStore, StorageError
from .utils import generate_folder_id, now_ms, parse_node_index, parse_timestamp_ms

logger = logging.getLogger(__name__)


def to_favorite_link_key(link: FavoriteLink) -> str:
    return link.key


def create_empty_state() -> ArchiveState:
    return ArchiveState(version=ARCHIVE_VERSION)


def _new_folder_id(state: ArchiveState) -> str:
    folder_id = generate_folder_id()
    while folder_id in state.folders:
        folder_id = generate_folder_id()
    return folder_id


# ==================== Deserialization ====================


def normalize_link(raw: Any) -> Optional[FavoriteLink]:
    """Parse a stored link, or None when it is unusable"""
    if not isinstance(raw, dict):
        return None
    conversation_id = raw.get('conversationId')
    if not isinstance(conversation_id, str) or not conversation_id:
        return None
    node_index = parse_node_index(raw.get('nodeIndex'))
    if node_index is None:
        return None
    return FavoriteLink(conversation_id, node_index)


def normalize_folder(raw: Any, state: ArchiveState, parent_id: Optional[str] = None,
                     seen_keys: Optional[Set[str]] = None,
                     untitled: str = UNTITLED_FOLDER) -> Optional[ArchiveFolder]:
    """
    Parse a stored folder and its subtree into the state's arena.

    Missing or duplicate ids are replaced with fresh ones, a missing name
    becomes ``untitled``, non-list ``folders``/``links`` count as empty and
    malformed links are dropped. A link already placed in an earlier folder
    is dropped here. Never raises.

    Returns:
        The registered folder, or None if raw is not an object
    """
    if not isinstance(raw, dict):
        return None
    if seen_keys is None:
        seen_keys = set()

    folder_id = raw.get('id')
    if not isinstance(folder_id, str) or not folder_id or folder_id in state.folders:
        folder_id = _new_folder_id(state)
    name = raw.get('name')
    created_at = parse_timestamp_ms(raw.get('createdAt'), now_ms())
    updated_at = parse_timestamp_ms(raw.get('updatedAt'), created_at)

    folder = ArchiveFolder(
        id=folder_id,
        name=name if isinstance(name, str) and name else untitled,
        parent_id=parent_id,
        created_at=created_at,
        updated_at=updated_at,
    )
    # Register before descending so children cannot reuse this id
    state.folders[folder_id] = folder

    links_raw = raw.get('links') if isinstance(raw.get('links'), list) else []
    for link in map(normalize_link, links_raw):
        if link is None or link.key in seen_keys:
            continue
        seen_keys.add(link.key)
        folder.links.append(link)

    folders_raw = raw.get('folders') if isinstance(raw.get('folders'), list) else []
    for child_raw in folders_raw:
        child = normalize_folder(child_raw, state, folder_id, seen_keys, untitled)
        if child is not None:
            folder.folder_ids.append(child.id)

    return folder


def normalize_state(raw: Any, untitled: str = UNTITLED_FOLDER) -> ArchiveState:
    """
    Build a valid ArchiveState from stored data of any shape.

    Accepts the legacy ``roots`` key in place of ``rootFolders``. Garbage
    input yields an empty state.
    """
    state = create_empty_state()
    if not isinstance(raw, dict):
        return state

    roots_raw = raw.get('rootFolders')
    if not isinstance(roots_raw, list):
        roots_raw = raw.get('roots') if isinstance(raw.get('roots'), list) else []

    seen_keys: Set[str] = set()
    for folder_raw in roots_raw:
        folder = normalize_folder(folder_raw, state, None, seen_keys, untitled)
        if folder is not None:
            state.root_ids.append(folder.id)
    return state


# ==================== Lookup & traversal ====================


def find_archive_folder(state: ArchiveState, folder_id: Optional[str]) -> Optional[ArchiveFolder]:
    if not folder_id:
        return None
    return state.folders.get(folder_id)


def children(state: ArchiveState, folder_id: Optional[str]) -> List[ArchiveFolder]:
    """Child folders of folder_id, or the root folders when folder_id is None"""
    if folder_id is None:
        return state.root_folders
    folder = find_archive_folder(state, folder_id)
    return state.children(folder) if folder else []


def iter_folders(state: ArchiveState):
    """Depth-first (folder, depth) pairs in display order"""
    return state.walk()


def folder_path(state: ArchiveState, folder_id: str) -> List[ArchiveFolder]:
    """Folders from the root down to folder_id (empty if unknown)"""
    path = []
    folder = find_archive_folder(state, folder_id)
    while folder is not None:
        path.append(folder)
        folder = find_archive_folder(state, folder.parent_id)
    return list(reversed(path))


def _subtree_ids(state: ArchiveState, folder_id: str) -> List[str]:
    ids = []
    stack = [folder_id]
    while stack:
        current = stack.pop()
        folder = state.folders.get(current)
        if folder is None:
            continue
        ids.append(current)
        stack.extend(folder.folder_ids)
    return ids


def get_all_archived_link_keys(state: ArchiveState) -> Set[str]:
    return {link.key for folder in state.folders.values() for link in folder.links}


# ==================== Folder operations ====================


def create_archive_folder(state: ArchiveState, parent_id: Optional[str], name: str,
                          untitled: str = UNTITLED_FOLDER) -> ArchiveFolder:
    """
    Create a folder under parent_id.

    An unknown or empty parent_id places the folder at the root instead.
    """
    now = now_ms()
    folder = ArchiveFolder(
        id=_new_folder_id(state),
        name=name or untitled,
        created_at=now,
        updated_at=now,
    )

    parent = find_archive_folder(state, parent_id)
    state.folders[folder.id] = folder
    if parent is None:
        state.root_ids.append(folder.id)
        return folder

    folder.parent_id = parent.id
    parent.folder_ids.append(folder.id)
    parent.touch()
    return folder


def rename_archive_folder(state: ArchiveState, folder_id: str, new_name: str) -> bool:
    """Rename a folder; an empty name keeps the old one but still bumps updated_at"""
    folder = find_archive_folder(state, folder_id)
    if folder is None:
        return False
    folder.name = new_name or folder.name
    folder.touch()
    return True


def _detach(state: ArchiveState, folder: ArchiveFolder):
    parent = find_archive_folder(state, folder.parent_id)
    siblings = parent.folder_ids if parent else state.root_ids
    if folder.id in siblings:
        siblings.remove(folder.id)


def delete_archive_folder(state: ArchiveState, folder_id: str) -> bool:
    """Delete a folder together with its subfolders and links"""
    folder = find_archive_folder(state, folder_id)
    if folder is None:
        return False

    _detach(state, folder)
    for fid in _subtree_ids(state, folder_id):
        del state.folders[fid]
    return True


def move_archive_folder(state: ArchiveState, folder_id: str, new_parent_id: Optional[str]) -> bool:
    """
    Re-parent a folder (None moves it to the root).

    Refuses unknown folders and moves into the folder's own subtree.
    """
    folder = find_archive_folder(state, folder_id)
    if folder is None:
        return False
    new_parent = None
    if new_parent_id is not None:
        new_parent = find_archive_folder(state, new_parent_id)
        if new_parent is None or new_parent_id in _subtree_ids(state, folder_id):
            return False

    _detach(state, folder)
    if new_parent is None:
        folder.parent_id = None
        state.root_ids.append(folder.id)
    else:
        folder.parent_id = new_parent.id
        new_parent.folder_ids.append(folder.id)
        new_parent.touch()
    folder.touch()
    return True


# ==================== Link operations ====================


def _remove_link_everywhere(state: ArchiveState, key: str) -> bool:
    changed = False
    for folder in state.folders.values():
        before = len(folder.links)
        folder.links = [link for link in folder.links if link.key != key]
        if len(folder.links) != before:
            folder.touch()
            changed = True
    return changed


def add_archive_link_to_folder(state: ArchiveState, folder_id: str, link: FavoriteLink) -> bool:
    """
    Place a link in a folder, removing it from every other folder first.

    Returns:
        False if the folder does not exist or already holds the link
    """
    folder = find_archive_folder(state, folder_id)
    if folder is None:
        return False

    key = link.key
    _remove_link_everywhere(state, key)

    if folder.has_link(key):
        return False
    folder.links.append(FavoriteLink(link.conversation_id, link.node_index))
    folder.touch()
    return True


def remove_archive_link_from_folder(state: ArchiveState, folder_id: str, link: FavoriteLink) -> bool:
    """Remove a link from one folder; False if the folder or the link is absent"""
    folder = find_archive_folder(state, folder_id)
    if folder is None:
        return False

    key = link.key
    before = len(folder.links)
    folder.links = [l for l in folder.links if l.key != key]
    if len(folder.links) == before:
        return False
    folder.touch()
    return True


def cleanup_archived_links(state: ArchiveState, existing_link_keys: Set[str]) -> bool:
    """
    Prune links whose key is not in existing_link_keys.

    Folders are left in place even when emptied. Running it again with the
    same keys changes nothing.

    Returns:
        True if any link was removed (the caller should save)
    """
    changed = False
    removed = 0
    for folder in state.folders.values():
        before = len(folder.links)
        folder.links = [link for link in folder.links if link.key in existing_link_keys]
        if len(folder.links) != before:
            removed += before - len(folder.links)
            folder.touch()
            changed = True
    if changed:
        logger.info(f"Pruned {removed} orphaned archive links")
    return changed


# ==================== Persistence ====================


class ArchiveStore:
    """Loads and saves the archive tree under a single key"""

    def __init__(self, kv: KeyValueStore, key: str = ARCHIVE_KEY, untitled: str = UNTITLED_FOLDER):
        self.kv = kv
        self.key = key
        self.untitled = untitled

    async def load(self) -> ArchiveState:
        """Stored archive, normalised; empty on read failure"""
        try:
            raw = await self.kv.get(self.key)
        except StorageError as e:
            logger.error(f"Failed to load favorites archive: {e}")
            return create_empty_state()
        return normalize_state(raw, self.untitled)

    async def save(self, state: ArchiveState):
        try:
            await self.kv.set(self.key, state.to_dict())
        except StorageError as e:
            logger.error(f"Failed to save favorites archive: {e}")

    async def cleanup(self, existing_link_keys: Set[str]) -> bool:
        """Load, prune orphaned links and save only when something changed"""
        state = await self.load()
        if cleanup_archived_links(state, existing_link_keys):
            await self.save(state)
            return True
        return False
