"""
Rich renderables for the favorites list and the archive folder browser.
"""

from datetime import datetime
from typing import List, Optional

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .archive_store import children
from .link_index import LinkIndex, resolve_link
from .models import ArchiveFolder, ArchiveState, FavoriteConversation

MISSING_LINK_LABEL = "[dim italic](missing favorite)[/dim italic]"


def _format_ms(timestamp: int) -> str:
    if not timestamp:
        return ""
    return datetime.fromtimestamp(timestamp / 1000).strftime('%Y-%m-%d %H:%M')


def _truncate(text: str, width: int = 50) -> str:
    text = " ".join(text.split())
    return text if len(text) <= width else text[:width - 3] + "..."


def render_archive_tree(state: ArchiveState, index: Optional[LinkIndex] = None,
                        title: str = "Archive") -> Tree:
    """
    Build a rich Tree of the archive.

    With a LinkIndex, links show their prompt text; links with no favorite
    behind them are labelled as missing. Without one, links show their key.
    """
    root = Tree(f"[bold cyan]{title}[/bold cyan]")

    def add_folder(parent: Tree, folder: ArchiveFolder):
        branch = parent.add(f"[bold]{escape(folder.name)}[/bold] [dim]({len(folder.links)})[/dim]")
        for child in children(state, folder.id):
            add_folder(branch, child)
        for link in folder.links:
            if index is None:
                branch.add(escape(link.key))
                continue
            info = resolve_link(index, link)
            if info is None:
                branch.add(f"{MISSING_LINK_LABEL} {escape(link.key)}")
            else:
                label = escape(_truncate(info.prompt_text)) or f"Turn {link.node_index + 1}"
                branch.add(f"{label} [dim]{escape(info.conversation.title)}[/dim]")

    for folder in state.root_folders:
        add_folder(root, folder)

    if not state.root_folders:
        root.add("[yellow]No folders[/yellow]")
    return root


def render_favorites(favorites: List[FavoriteConversation], title: Optional[str] = None) -> Table:
    """Build a rich Table of favorite conversations, most recently updated first"""
    table = Table(title=title or f"Favorites ({len(favorites)})")
    table.add_column("Title", style="bold")
    table.add_column("Site", style="cyan")
    table.add_column("Items", justify="right")
    table.add_column("Updated", style="dim")

    for conv in sorted(favorites, key=lambda c: c.updated_at, reverse=True):
        table.add_row(escape(conv.title), escape(conv.site_name), str(len(conv.items)), _format_ms(conv.updated_at))
    return table
