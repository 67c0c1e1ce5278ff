"""
Core data models for turn bookmarks and the favorites archive.

Field names on the Python side are snake_case; to_dict/from_dict use the
camelCase names of the persisted JSON shapes.
"""

from typing import Dict, List, Optional, Any, Iterator, Tuple
from dataclasses import dataclass, field

from .constants import ARCHIVE_VERSION, LINK_KEY_SEPARATOR
from .utils import now_ms, parse_node_index


@dataclass
class PinnedItem:
    """A marked turn handed to the favorite store: position plus label"""
    index: int
    prompt_text: str = ""


@dataclass
class FavoriteItem:
    """A single marked turn inside a favorite record"""
    node_index: int
    prompt_text: str = ""
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'nodeIndex': self.node_index,
            'promptText': self.prompt_text,
            'timestamp': self.timestamp,
        }


@dataclass
class FavoriteConversation:
    """Per-conversation bookmark record"""
    conversation_id: str
    url: str = ""
    title: str = ""
    site_name: str = ""
    items: List[FavoriteItem] = field(default_factory=list)
    updated_at: int = field(default_factory=now_ms)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'conversationId': self.conversation_id,
            'url': self.url,
            'title': self.title,
            'siteName': self.site_name,
            'items': [item.to_dict() for item in self.items],
            'updatedAt': self.updated_at,
        }

    def links(self) -> List['FavoriteLink']:
        """Archive links for every item of this record"""
        return [FavoriteLink(self.conversation_id, item.node_index) for item in self.items]


@dataclass(frozen=True)
class FavoriteLink:
    """
    Reference to one favorited turn.

    Identity is the (conversation_id, node_index) pair only; labels and
    timestamps live in the favorite record, never in the link.
    """
    conversation_id: str
    node_index: int

    def __post_init__(self):
        node_index = parse_node_index(self.node_index)
        if node_index is None:
            raise ValueError(f"Invalid node index: {self.node_index!r}")
        object.__setattr__(self, 'node_index', node_index)

    @property
    def key(self) -> str:
        return f"{self.conversation_id}{LINK_KEY_SEPARATOR}{self.node_index}"

    def to_dict(self) -> Dict[str, Any]:
        return {'conversationId': self.conversation_id, 'nodeIndex': self.node_index}


@dataclass
class ArchiveFolder:
    """
    A folder in the archive arena.

    Children are referenced by id through ``folder_ids``; the owning
    ArchiveState holds the folder objects themselves.
    """
    id: str
    name: str
    parent_id: Optional[str] = None
    folder_ids: List[str] = field(default_factory=list)
    links: List[FavoriteLink] = field(default_factory=list)
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)

    def has_link(self, key: str) -> bool:
        return any(link.key == key for link in self.links)

    def touch(self):
        self.updated_at = now_ms()


@dataclass
class ArchiveState:
    """
    Folder tree stored as a flat arena.

    ``folders`` maps every folder id in the tree to its folder;
    ``root_ids`` lists the top-level folders in display order.
    """
    version: int = ARCHIVE_VERSION
    folders: Dict[str, ArchiveFolder] = field(default_factory=dict)
    root_ids: List[str] = field(default_factory=list)

    @property
    def root_folders(self) -> List[ArchiveFolder]:
        return [self.folders[fid] for fid in self.root_ids if fid in self.folders]

    def children(self, folder: ArchiveFolder) -> List[ArchiveFolder]:
        return [self.folders[fid] for fid in folder.folder_ids if fid in self.folders]

    def walk(self) -> Iterator[Tuple[ArchiveFolder, int]]:
        """Depth-first (folder, depth) pairs in display order"""
        stack = [(folder, 0) for folder in reversed(self.root_folders)]
        while stack:
            folder, depth = stack.pop()
            yield folder, depth
            for child in reversed(self.children(folder)):
                stack.append((child, depth + 1))

    def folder_to_dict(self, folder: ArchiveFolder) -> Dict[str, Any]:
        """Nested persisted shape of one folder and its subtree"""
        return {
            'id': folder.id,
            'name': folder.name,
            'folders': [self.folder_to_dict(child) for child in self.children(folder)],
            'links': [link.to_dict() for link in folder.links],
            'createdAt': folder.created_at,
            'updatedAt': folder.updated_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the nested persisted shape"""
        return {
            'version': self.version,
            'rootFolders': [self.folder_to_dict(folder) for folder in self.root_folders],
        }
