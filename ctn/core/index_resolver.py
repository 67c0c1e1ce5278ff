"""
Index resolver: maps viewport scroll position to the active conversation turn.

The resolver never touches a document itself. A turn source (supplied by a
site adapter) returns the turn anchors in discovery order; the resolver sorts
them by vertical offset, keeps the active index clamped, and picks the active
turn from scroll geometry.

Index meaning is positional only: a refresh that inserts turns above the
current position shifts which turn an index denotes. That approximation is
accepted; identity across refreshes is not tracked.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

from .constants import BOTTOM_THRESHOLD_PX

logger = logging.getLogger(__name__)


@dataclass
class TurnAnchor:
    """A turn as seen by the resolver: an opaque node plus its document offset"""
    node: Any
    top_offset: float
    prompt_text: str = ""  # label only, never an identity


@dataclass
class ScrollSnapshot:
    """Viewport geometry at the time of a scroll event"""
    scroll_y: float
    viewport_height: float
    document_height: float


TurnSource = Callable[[], Sequence[TurnAnchor]]


class IndexResolver:
    """
    Sorted turn list plus a clamped current index.

    Every operation is synchronous and never raises: out-of-range requests
    degrade to index 0 or None.
    """

    def __init__(self, source: TurnSource, bottom_threshold: float = BOTTOM_THRESHOLD_PX):
        """
        Args:
            source: Zero-argument callable returning the turn anchors
            bottom_threshold: Distance in px from the document bottom inside
                which the last turn is always active
        """
        self.source = source
        self.bottom_threshold = bottom_threshold
        self._turns: List[TurnAnchor] = []
        self._current_index = 0
        self.refresh()

    def _scan(self) -> List[TurnAnchor]:
        try:
            return list(self.source())
        except Exception as e:
            # Adapter heuristics run against live documents; a failing scan means "no turns"
            logger.warning(f"Turn source failed, treating as empty: {e}")
            return []

    def refresh(self):
        """Re-read turn positions from the source and re-sort by offset"""
        # sorted() is stable, so equal offsets keep discovery order
        self._turns = sorted(self._scan(), key=lambda turn: turn.top_offset)
        self.set_current_index(self._current_index)
        logger.debug(f"Index refreshed: {len(self._turns)} turns")

    def total_count(self) -> int:
        return len(self._turns)

    def current_index(self) -> int:
        return self._current_index

    def set_current_index(self, index: int):
        """Set the current index, clamped into [0, n-1] (0 when empty)"""
        if not self._turns:
            self._current_index = 0
        elif index < 0:
            self._current_index = 0
        elif index >= len(self._turns):
            self._current_index = len(self._turns) - 1
        else:
            self._current_index = index

    def node_at(self, index: int) -> Optional[Any]:
        """Turn node at index, or None when out of range"""
        if index < 0 or index >= len(self._turns):
            return None
        return self._turns[index].node

    def current_node(self) -> Optional[Any]:
        return self.node_at(self._current_index)

    def anchor_at(self, index: int) -> Optional[TurnAnchor]:
        if index < 0 or index >= len(self._turns):
            return None
        return self._turns[index]

    def offsets(self) -> List[float]:
        """Sorted turn offsets"""
        return [turn.top_offset for turn in self._turns]

    def move_to_prev(self) -> bool:
        """
        Step one turn up.

        Returns:
            False when already at the first turn (index unchanged)
        """
        if self._current_index > 0:
            self.set_current_index(self._current_index - 1)
            return True
        return False

    def move_to_next(self) -> bool:
        """
        Step one turn down.

        Returns:
            False when already at the last turn (index unchanged)
        """
        if self._current_index < len(self._turns) - 1:
            self.set_current_index(self._current_index + 1)
            return True
        return False

    def update_index_by_scroll(self, scroll_y: float, viewport_height: float,
                               document_height: float) -> int:
        """
        Resolve the active turn from scroll geometry.

        Near the bottom of the document the last turn wins unconditionally;
        its content usually extends far below its own anchor. Elsewhere the
        turn whose offset is closest to the viewport centre wins. The scan
        walks offsets in ascending order and stops at the first turn that is
        both no closer and below the centre, so ties go to the earlier turn.

        Returns:
            The new current index
        """
        if not self._turns:
            return self._current_index

        scroll_bottom = scroll_y + viewport_height
        if document_height - scroll_bottom < self.bottom_threshold:
            self._current_index = len(self._turns) - 1
            return self._current_index

        viewport_center = scroll_y + viewport_height / 2
        closest_index = 0
        min_distance = abs(self._turns[0].top_offset - viewport_center)

        for i in range(1, len(self._turns)):
            offset = self._turns[i].top_offset
            distance = abs(offset - viewport_center)
            if distance < min_distance:
                min_distance = distance
                closest_index = i
            elif offset > viewport_center:
                break

        self._current_index = closest_index
        logger.debug(f"Scroll {scroll_y} -> turn {closest_index + 1}/{len(self._turns)}")
        return closest_index

    def update_from_snapshot(self, snapshot: ScrollSnapshot) -> int:
        return self.update_index_by_scroll(
            snapshot.scroll_y, snapshot.viewport_height, snapshot.document_height
        )

    def needs_refresh(self) -> bool:
        """True when a fresh scan finds a different number of turns. Does not mutate state."""
        return len(self._scan()) != len(self._turns)
