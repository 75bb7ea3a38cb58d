"""
Shared fixtures: registries wired to a loopback bus and an in-memory store.
"""

import pytest

from weatherstation.bus.local import LocalBus
from weatherstation.registry.derived_topics import DerivedTopicRegistry
from weatherstation.registry.exclude_list import ExcludeList
from weatherstation.registry.raw_topics import RawTopicRegistry
from weatherstation.store.memory import MemoryStore
from weatherstation.utils.storage import DefinitionStorage


class FakeClock:
    """Manually advanced time source (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(tmp_path):
    return DefinitionStorage(str(tmp_path / "data"))


@pytest.fixture
def excludes(storage):
    return ExcludeList(storage)


@pytest.fixture
def raw_topics(excludes, clock):
    return RawTopicRegistry(excludes, max_history_length=5, max_history_age=60, clock=clock)


@pytest.fixture
def bus(raw_topics):
    """Loopback bus delivering every message to the raw topic registry."""
    local_bus = LocalBus()
    local_bus.on_message(raw_topics.ingest)
    local_bus.connect()
    local_bus.subscribe("#")
    return local_bus


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def derived(raw_topics, bus, store, storage):
    return DerivedTopicRegistry(raw_topics, bus, store, storage, query_timeout=5)
