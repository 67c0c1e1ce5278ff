"""
Unit tests for IndexResolver.

Tests turn ordering, clamped stepping, scroll-to-index resolution and
change detection.
"""

import pytest

from ctn.core.index_resolver import IndexResolver, ScrollSnapshot, TurnAnchor


class TestIndexResolverConstruction:
    """Tests for building the sorted turn list"""

    @pytest.mark.unit
    def test_turns_sorted_by_offset(self, make_source):
        """Discovery order does not decide turn numbering"""
        source = make_source([1200, 0, 500])
        resolver = IndexResolver(source)

        assert resolver.total_count() == 3
        assert resolver.offsets() == [0, 500, 1200]
        assert resolver.node_at(0) == "turn-1"
        assert resolver.node_at(1) == "turn-2"
        assert resolver.node_at(2) == "turn-0"

    @pytest.mark.unit
    def test_equal_offsets_keep_discovery_order(self):
        """Ties in offset keep the order the source produced"""
        resolver = IndexResolver(lambda: [TurnAnchor("a", 100), TurnAnchor("b", 100)])
        assert resolver.node_at(0) == "a"
        assert resolver.node_at(1) == "b"

    @pytest.mark.unit
    def test_empty_source(self):
        """An empty document yields zero turns and index 0"""
        resolver = IndexResolver(lambda: [])
        assert resolver.total_count() == 0
        assert resolver.current_index() == 0
        assert resolver.current_node() is None

    @pytest.mark.unit
    def test_failing_source_treated_as_empty(self):
        """A source that raises never propagates out of the resolver"""
        def broken():
            raise RuntimeError("adapter exploded")

        resolver = IndexResolver(broken)
        assert resolver.total_count() == 0
        assert resolver.needs_refresh() is False


class TestCurrentIndex:
    """Tests for clamping and stepping"""

    @pytest.fixture
    def resolver(self, turn_source):
        return IndexResolver(turn_source)

    @pytest.mark.unit
    def test_set_current_index_in_range(self, resolver):
        resolver.set_current_index(1)
        assert resolver.current_index() == 1
        assert resolver.current_node() == "turn-1"

    @pytest.mark.unit
    @pytest.mark.parametrize("requested,expected", [(-5, 0), (-1, 0), (3, 2), (8, 2)])
    def test_set_current_index_clamps(self, resolver, requested, expected):
        """Out-of-range requests land on the nearest boundary"""
        resolver.set_current_index(requested)
        assert resolver.current_index() == expected

    @pytest.mark.unit
    def test_set_current_index_empty_forces_zero(self):
        resolver = IndexResolver(lambda: [])
        resolver.set_current_index(4)
        assert resolver.current_index() == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_node_at_out_of_range_returns_none(self, resolver, index):
        assert resolver.node_at(index) is None

    @pytest.mark.unit
    def test_move_to_next_until_end(self, resolver):
        """move_to_next reports False exactly at the last turn"""
        assert resolver.move_to_next() is True
        assert resolver.move_to_next() is True
        assert resolver.current_index() == 2
        assert resolver.move_to_next() is False
        assert resolver.current_index() == 2

    @pytest.mark.unit
    def test_move_to_prev_at_start(self, resolver):
        """move_to_prev reports False at index 0 and stays there"""
        assert resolver.move_to_prev() is False
        assert resolver.current_index() == 0

    @pytest.mark.unit
    def test_move_to_prev_moves(self, resolver):
        resolver.set_current_index(2)
        assert resolver.move_to_prev() is True
        assert resolver.current_index() == 1

    @pytest.mark.unit
    def test_moves_on_empty_list(self):
        resolver = IndexResolver(lambda: [])
        assert resolver.move_to_next() is False
        assert resolver.move_to_prev() is False
        assert resolver.current_index() == 0


class TestUpdateIndexByScroll:
    """Tests for scroll position resolution"""

    @pytest.fixture
    def resolver(self, turn_source):
        return IndexResolver(turn_source)

    @pytest.mark.unit
    def test_nearest_to_viewport_center(self, resolver):
        """Center 700 is nearest to the turn at offset 500"""
        assert resolver.update_index_by_scroll(300, 800, 5000) == 1
        assert resolver.current_index() == 1

    @pytest.mark.unit
    def test_near_bottom_forces_last_turn(self, resolver):
        """Within 200px of the bottom the last turn wins regardless of the center"""
        resolver.set_current_index(0)
        assert resolver.update_index_by_scroll(1000, 800, 1300) == 2

    @pytest.mark.unit
    def test_bottom_zone_overrides_center(self, make_source):
        """Even when the center sits on the first turn the bottom zone wins"""
        resolver = IndexResolver(make_source([0, 5000, 9000]))
        assert resolver.update_index_by_scroll(0, 800, 950) == 2

    @pytest.mark.unit
    def test_bottom_threshold_is_strict(self, make_source):
        """Exactly 200px from the bottom is outside the bottom zone"""
        resolver = IndexResolver(make_source([0, 1000, 3000]))
        assert resolver.update_index_by_scroll(0, 800, 1000) == 0
        assert resolver.update_index_by_scroll(0, 800, 999) == 2

    @pytest.mark.unit
    def test_custom_bottom_threshold(self, make_source):
        resolver = IndexResolver(make_source([0, 1000, 3000]), bottom_threshold=50)
        assert resolver.update_index_by_scroll(0, 800, 999) == 0

    @pytest.mark.unit
    def test_tie_goes_to_earlier_turn(self, make_source):
        """Two turns equally close to the center resolve to the earlier one"""
        resolver = IndexResolver(make_source([0, 400, 600]))
        assert resolver.update_index_by_scroll(100, 800, 10000) == 1

    @pytest.mark.unit
    def test_center_above_first_turn(self, make_source):
        resolver = IndexResolver(make_source([1000, 2000, 3000]))
        assert resolver.update_index_by_scroll(0, 800, 10000) == 0

    @pytest.mark.unit
    def test_center_between_turns_picks_argmin(self, make_source):
        offsets = [0, 300, 900, 1000, 2500, 4000]
        resolver = IndexResolver(make_source(offsets))
        for scroll_y in range(0, 3000, 137):
            center = scroll_y + 400
            expected = min(range(len(offsets)), key=lambda i: (abs(offsets[i] - center), i))
            assert resolver.update_index_by_scroll(scroll_y, 800, 100000) == expected

    @pytest.mark.unit
    def test_empty_list_keeps_zero(self):
        resolver = IndexResolver(lambda: [])
        assert resolver.update_index_by_scroll(1000, 800, 1300) == 0
        assert resolver.current_index() == 0

    @pytest.mark.unit
    def test_update_from_snapshot(self, resolver):
        assert resolver.update_from_snapshot(ScrollSnapshot(300, 800, 5000)) == 1


class TestRefresh:
    """Tests for change detection and refresh"""

    @pytest.mark.unit
    def test_needs_refresh_detects_count_change(self, make_source):
        source = make_source([0, 500])
        resolver = IndexResolver(source)
        assert resolver.needs_refresh() is False

        source.offsets.append(900)
        assert resolver.needs_refresh() is True
        # Detection alone must not change the resolver
        assert resolver.total_count() == 2

    @pytest.mark.unit
    def test_needs_refresh_ignores_moved_offsets(self, make_source):
        """Only the count is compared"""
        source = make_source([0, 500])
        resolver = IndexResolver(source)
        source.offsets = [100, 700]
        assert resolver.needs_refresh() is False

    @pytest.mark.unit
    def test_refresh_picks_up_new_turns(self, make_source):
        source = make_source([0, 500])
        resolver = IndexResolver(source)
        source.offsets.append(900)
        resolver.refresh()
        assert resolver.total_count() == 3
        assert resolver.node_at(2) == "turn-2"

    @pytest.mark.unit
    def test_refresh_clamps_current_index(self, make_source):
        """Shrinking the turn list keeps the index in range"""
        source = make_source([0, 500, 1200])
        resolver = IndexResolver(source)
        resolver.set_current_index(2)
        source.offsets = [0]
        resolver.refresh()
        assert resolver.current_index() == 0

    @pytest.mark.unit
    def test_refresh_renumbers_turns_inserted_above(self, make_source):
        """Indexes are positional; a turn inserted above shifts the rest"""
        source = make_source([500, 1000])
        resolver = IndexResolver(source)
        resolver.set_current_index(1)
        assert resolver.current_node() == "turn-1"

        source.offsets = [500, 1000, 100]
        resolver.refresh()
        assert resolver.current_index() == 1
        assert resolver.current_node() == "turn-0"
