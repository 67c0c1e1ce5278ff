"""
Lookup table joining archive links to the favorite records behind them.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .archive_store import get_all_archived_link_keys
from .models import ArchiveState, FavoriteConversation, FavoriteLink


@dataclass
class LinkInfo:
    """A favorited turn resolved for display"""
    key: str
    link: FavoriteLink
    conversation: FavoriteConversation
    prompt_text: str
    timestamp: int


@dataclass
class LinkIndex:
    by_key: Dict[str, LinkInfo] = field(default_factory=dict)
    all_links: List[LinkInfo] = field(default_factory=list)  # newest first

    @property
    def existing_keys(self) -> Set[str]:
        return set(self.by_key)


def build_link_index(favorites: Iterable[FavoriteConversation]) -> LinkIndex:
    index = LinkIndex()
    for conv in favorites:
        for item in conv.items:
            link = FavoriteLink(conv.conversation_id, item.node_index)
            info = LinkInfo(
                key=link.key,
                link=link,
                conversation=conv,
                prompt_text=item.prompt_text,
                timestamp=item.timestamp,
            )
            index.by_key[info.key] = info
            index.all_links.append(info)

    index.all_links.sort(key=lambda info: info.timestamp, reverse=True)
    return index


def importable_links(index: LinkIndex, state: ArchiveState) -> List[LinkInfo]:
    """Favorited turns not yet filed in any archive folder, newest first"""
    archived = get_all_archived_link_keys(state)
    return [info for info in index.all_links if info.key not in archived]


def resolve_link(index: LinkIndex, link: FavoriteLink) -> Optional[LinkInfo]:
    """Favorite details for an archived link, or None when it dangles"""
    return index.by_key.get(link.key)
