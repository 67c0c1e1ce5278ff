"""
Unit tests for the Navigator entry point
"""

import pytest

from ctn.api import Navigator
from ctn.core.archive_store import add_archive_link_to_folder, create_archive_folder
from ctn.core.index_resolver import ScrollSnapshot
from ctn.core.models import FavoriteLink
from ctn.core.storage import MemoryKeyValueStore


@pytest.fixture
def navigator(kv, memory_config):
    nav = Navigator(kv=kv, config=memory_config)
    yield nav
    nav.close()


class TestNavigator:
    """Tests for the Navigator entry point"""

    @pytest.mark.unit
    def test_default_store_from_config(self, memory_config):
        nav = Navigator(config=memory_config)
        assert isinstance(nav.kv, MemoryKeyValueStore)

    @pytest.mark.unit
    def test_open_conversation(self, run, navigator, turn_source):
        session = run(navigator.open_conversation("c1", turn_source, url="u", site_name="Claude"))
        assert navigator.session is session
        assert session.resolver.total_count() == 3
        assert session.on_scroll(ScrollSnapshot(300, 800, 5000)) == 1

    @pytest.mark.unit
    def test_switching_conversation_closes_previous(self, run, navigator, turn_source, make_source):
        first = run(navigator.open_conversation("c1", turn_source))
        second = run(navigator.open_conversation("c2", make_source([0])))
        assert first.closed is True
        assert navigator.session is second

    @pytest.mark.unit
    def test_bottom_threshold_from_config(self, run, kv, memory_config, make_source):
        memory_config.set('navigation.bottom_threshold_px', 50)
        nav = Navigator(kv=kv, config=memory_config)
        session = run(nav.open_conversation("c1", make_source([0, 1000, 3000])))
        assert session.resolver.update_index_by_scroll(0, 800, 900) == 0

    @pytest.mark.unit
    def test_custom_key_names(self, run, kv, memory_config, turn_source):
        memory_config.set('storage.favorites_key', 'llm-nav-favorites')
        nav = Navigator(kv=kv, config=memory_config)
        session = run(nav.open_conversation("c1", turn_source))
        run(session.toggle_favorite())
        assert run(kv.get('llm-nav-favorites'))[0]['conversationId'] == 'c1'

    @pytest.mark.unit
    def test_archive_context_saves(self, run, navigator):
        async def edit():
            async with navigator.archive() as state:
                create_archive_folder(state, None, "inbox")

        run(edit())
        state = run(navigator.archive_store.load())
        assert [f.name for f in state.root_folders] == ["inbox"]

    @pytest.mark.unit
    def test_favorites_overview_prunes_orphans(self, run, navigator, turn_source):
        session = run(navigator.open_conversation("c1", turn_source))
        run(session.toggle_pin(1))

        async def file_links():
            async with navigator.archive() as state:
                folder = create_archive_folder(state, None, "F")
                add_archive_link_to_folder(state, folder.id, FavoriteLink("c1", 1))
                add_archive_link_to_folder(state, folder.id, FavoriteLink("ghost", 0))

        run(file_links())
        favorites, index, state = run(navigator.favorites_overview())

        assert [c.conversation_id for c in favorites] == ["c1"]
        assert index.existing_keys == {"c1#1"}
        assert [l.key for l in state.root_folders[0].links] == ["c1#1"]
        stored = run(navigator.archive_store.load())
        assert [l.key for l in stored.root_folders[0].links] == ["c1#1"]


class TestFavoritesListEdits:
    """Tests for favorites list edits while a conversation is open"""

    @pytest.mark.unit
    def test_unfavorite_open_conversation_clears_flag(self, run, navigator, turn_source):
        session = run(navigator.open_conversation("c1", turn_source))
        run(session.toggle_pin(1))

        assert run(navigator.unfavorite_conversation("c1")) is True
        assert session.is_favorited is False

        run(session.toggle_pin(2))
        assert session.is_favorited is True
        conv = run(navigator.favorite_store.get_conversation("c1"))
        assert [i.node_index for i in conv.items] == [1, 2]

    @pytest.mark.unit
    def test_unfavorite_prunes_archive(self, run, navigator, turn_source):
        session = run(navigator.open_conversation("c1", turn_source))
        run(session.toggle_pin(1))

        async def file_link():
            async with navigator.archive() as state:
                folder = create_archive_folder(state, None, "F")
                add_archive_link_to_folder(state, folder.id, FavoriteLink("c1", 1))

        run(file_link())
        run(navigator.unfavorite_conversation("c1"))

        state = run(navigator.archive_store.load())
        assert [f.name for f in state.root_folders] == ["F"]
        assert state.root_folders[0].links == []

    @pytest.mark.unit
    def test_unfavorite_other_conversation_keeps_flag(self, run, navigator, turn_source):
        session = run(navigator.open_conversation("c1", turn_source))
        run(session.toggle_favorite())
        run(navigator.favorite_store.favorite_conversation("c2", "", "", "other", [(0, "x")]))

        assert run(navigator.unfavorite_conversation("c2")) is True
        assert session.is_favorited is True

    @pytest.mark.unit
    def test_unfavorite_missing(self, run, navigator):
        assert run(navigator.unfavorite_conversation("nope")) is False

    @pytest.mark.unit
    def test_remove_item_keeps_record(self, run, navigator, turn_source):
        session = run(navigator.open_conversation("c1", turn_source))
        run(session.toggle_pin(1))
        run(session.toggle_pin(2))

        async def file_links():
            async with navigator.archive() as state:
                folder = create_archive_folder(state, None, "F")
                add_archive_link_to_folder(state, folder.id, FavoriteLink("c1", 1))
                add_archive_link_to_folder(state, folder.id, FavoriteLink("c1", 2))

        run(file_links())
        assert run(navigator.remove_favorite_item("c1", 2)) is True

        assert session.is_favorited is True
        conv = run(navigator.favorite_store.get_conversation("c1"))
        assert [i.node_index for i in conv.items] == [1]
        state = run(navigator.archive_store.load())
        assert [l.key for l in state.root_folders[0].links] == ["c1#1"]
