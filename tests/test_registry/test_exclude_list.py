"""
Unit tests for the exclude list.
"""

import tempfile
from unittest.mock import patch

import pytest

from weatherstation.registry.exclude_list import ExcludeList
from weatherstation.utils.storage import DefinitionStorage, PersistenceError


def test_add_and_remove_persist():
    """Every mutation is written through to disk."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = DefinitionStorage(tmpdir)
        excludes = ExcludeList(storage)

        assert excludes.add("sensors/noisy")
        assert excludes.add("sensors/debug")
        assert storage.load_json("excludes") == ["sensors/noisy", "sensors/debug"]

        assert excludes.remove("sensors/noisy")
        assert storage.load_json("excludes") == ["sensors/debug"]


def test_duplicates_and_unknown_removals():
    with tempfile.TemporaryDirectory() as tmpdir:
        excludes = ExcludeList(DefinitionStorage(tmpdir))

        assert excludes.add("a")
        assert excludes.add("a") is False
        assert excludes.remove("b") is False
        assert excludes.entries == ["a"]


def test_load_from_disk():
    """A new list picks up what a previous one persisted."""
    with tempfile.TemporaryDirectory() as tmpdir:
        ExcludeList(DefinitionStorage(tmpdir)).add("sensors/noisy")

        reloaded = ExcludeList(DefinitionStorage(tmpdir))
        reloaded.load()

        assert "sensors/noisy" in reloaded
        assert reloaded.contains("sensors/other") is False


def test_load_skips_non_string_entries():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = DefinitionStorage(tmpdir)
        storage.save_json("excludes", ["a", 3, None, "b"])

        excludes = ExcludeList(storage)
        excludes.load()

        assert excludes.entries == ["a", "b"]


def test_failed_write_keeps_memory_authoritative():
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = DefinitionStorage(tmpdir)
        excludes = ExcludeList(storage)

        with patch.object(storage, "save_json", side_effect=PersistenceError("disk full")):
            assert excludes.add("sensors/noisy")

        assert "sensors/noisy" in excludes
        assert storage.load_json("excludes") is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
