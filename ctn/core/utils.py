"""
Utility functions for CTN
"""

import math
import time
import uuid
from typing import Any, Optional

from .constants import TITLE_ELLIPSIS


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds since the epoch"""
    return int(time.time() * 1000)


def generate_folder_id() -> str:
    """
    Generate a new archive folder id

    Examples:
        >>> generate_folder_id()  # doctest: +SKIP
        'folder_1760870400000_3f9a1c2b7d4e'
    """
    return f"folder_{now_ms()}_{uuid.uuid4().hex[:12]}"


def truncate_title(text: str, max_length: int) -> str:
    """
    Truncate text to max_length characters, appending an ellipsis when cut

    Examples:
        >>> truncate_title("short", 40)
        'short'
        >>> truncate_title("abcdef", 3)
        'abc...'
    """
    if len(text) > max_length:
        return text[:max_length] + TITLE_ELLIPSIS
    return text


def parse_node_index(value: Any) -> Optional[int]:
    """
    Coerce a persisted turn index into an int.

    Accepts ints, finite floats and numeric strings. Returns None for
    anything else (booleans, NaN, infinities, blank strings, objects).

    Examples:
        >>> parse_node_index(3)
        3
        >>> parse_node_index("7")
        7
        >>> parse_node_index(float("nan")) is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value)
    return None


def parse_timestamp_ms(value: Any, default: int) -> int:
    """Return value if it is a usable millisecond timestamp, else default"""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return default
