"""
Global constants for CTN.

Centralizes magic numbers and persisted key names used across the index
resolver and the favorites stores. Import from here instead of hardcoding values.
"""

# --- Navigation ---

BOTTOM_THRESHOLD_PX = 200    # Distance from document bottom that selects the last turn

# --- Persisted key names ---

PINNED_KEY_PREFIX = "pinned"             # pinned:<conversationId> -> [turnId, ...]
FAVORITES_KEY = "favorites"              # favorites -> [FavoriteConversation, ...]
ARCHIVE_KEY = "favorites-archive"        # favorites-archive -> ArchiveState
ARCHIVE_VERSION = 1

# --- Favorites ---

TITLE_MAX_LENGTH = 40        # Favorite titles longer than this are truncated
TITLE_ELLIPSIS = "..."
UNTITLED_CONVERSATION = "Untitled conversation"
UNTITLED_FOLDER = "Untitled"
LINK_KEY_SEPARATOR = "#"

# --- Storage ---

DEFAULT_DB_FILENAME = "navigator.db"
