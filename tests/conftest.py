"""
Pytest configuration and shared fixtures
"""

import asyncio
import tempfile
from pathlib import Path
from typing import Any, List, Optional

import pytest

from ctn.core.archive_store import ArchiveStore
from ctn.core.config import Config
from ctn.core.favorite_store import FavoriteStore
from ctn.core.index_resolver import TurnAnchor
from ctn.core.pinned_store import PinnedStore
from ctn.core.storage import MemoryKeyValueStore, StorageError


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line("markers", "integration: tests touching a real database file")


class FailingKeyValueStore(MemoryKeyValueStore):
    """Memory store whose reads and/or writes raise StorageError"""

    def __init__(self, fail_reads: bool = True, fail_writes: bool = True, initial=None):
        super().__init__(initial)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, key: str) -> Optional[Any]:
        if self.fail_reads:
            raise StorageError("backend unavailable")
        return await super().get(key)

    async def set(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise StorageError("backend unavailable")
        await super().set(key, value)

    async def remove(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError("backend unavailable")
        await super().remove(key)


class FakeTurnSource:
    """Turn source whose offsets tests can change between scans"""

    def __init__(self, offsets: List[float], prompts: Optional[List[str]] = None):
        self.offsets = list(offsets)
        self.prompts = prompts
        self.calls = 0

    def __call__(self) -> List[TurnAnchor]:
        self.calls += 1
        prompts = self.prompts or [f"prompt {i}" for i in range(len(self.offsets))]
        return [
            TurnAnchor(node=f"turn-{i}", top_offset=offset, prompt_text=prompts[i])
            for i, offset in enumerate(self.offsets)
        ]


@pytest.fixture
def temp_dir():
    """Create a temporary directory"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop"""
    loop = asyncio.new_event_loop()
    yield loop.run_until_complete
    loop.close()


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def failing_kv():
    return FailingKeyValueStore()


@pytest.fixture
def pinned_store(kv):
    return PinnedStore(kv)


@pytest.fixture
def favorite_store(kv):
    return FavoriteStore(kv)


@pytest.fixture
def archive_store(kv):
    return ArchiveStore(kv)


@pytest.fixture
def memory_config(temp_dir):
    """Config that uses the memory backend and never writes to disk"""
    config = Config(config_path=temp_dir / "config.json", persist=False)
    config.set('storage.backend', 'memory')
    return config


@pytest.fixture
def turn_source():
    return FakeTurnSource([0, 500, 1200], prompts=["First question", "Second question", "Third question"])


@pytest.fixture
def make_source():
    """Factory for FakeTurnSource instances"""
    return FakeTurnSource
