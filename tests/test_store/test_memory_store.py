"""
Unit tests for the in-memory store and the store recorder.
"""

import os
import tempfile
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from weatherstation.store.memory import MemoryStore
from weatherstation.store.recorder import StoreRecorder

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def ns(moment: datetime) -> int:
    return int(moment.timestamp() * 1e9)


def test_query_range_window_and_order():
    store = MemoryStore()
    store.write_point("sensors/t", {"value": 21.0}, ns(NOW - timedelta(minutes=5)))
    store.write_point("sensors/t", {"value": 19.0}, ns(NOW - timedelta(hours=2)))
    store.write_point("sensors/t", {"value": 15.0}, ns(NOW - timedelta(hours=30)))
    store.write_point("sensors/h", {"value": 55.0}, ns(NOW - timedelta(minutes=1)))

    rows = list(store.query_range("sensors/t", timedelta(hours=24), now=NOW))

    assert [row["value"] for row in rows] == [19.0, 21.0]
    assert all(row["topic"] == "sensors/t" for row in rows)
    assert rows[0]["time"] < rows[1]["time"]


def test_query_unknown_topic():
    store = MemoryStore()
    assert list(store.query_range("nothing", timedelta(hours=1))) == []


def test_latest():
    store = MemoryStore()
    now_ns = time.time_ns()
    store.write_point("a", {"value": 1.0}, now_ns - int(60e9))
    store.write_point("a", {"value": 2.0}, now_ns - int(30e9))

    assert store.latest("a", timedelta(hours=1))["value"] == 2.0
    assert store.latest("b", timedelta(hours=1)) is None
    assert len(store) == 2


def test_flush_and_reload():
    """Points survive a flush/load cycle with numbers parsed back."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = os.path.join(tmpdir, "store", "points.csv")
        store = MemoryStore(path)
        store.write_point("sensors/rain", {"value": 0.0}, ns(NOW - timedelta(minutes=2)))
        store.write_point("sensors/door", {"value": "open"}, ns(NOW - timedelta(minutes=1)))
        store.flush()

        reloaded = MemoryStore(path)
        rain = list(reloaded.query_range("sensors/rain", timedelta(hours=1), now=NOW))
        door = list(reloaded.query_range("sensors/door", timedelta(hours=1), now=NOW))

        assert len(reloaded) == 2
        assert rain[0]["value"] == 0.0
        assert door[0]["value"] == "open"


class TestStoreRecorder:

    def test_records_matching_topics(self):
        store = MemoryStore()
        recorder = StoreRecorder(store, "^sensors/")

        assert recorder.record("sensors/rain", "0")
        assert recorder.record("SENSORS/door", b"open")
        assert recorder.record("virtual/dewpoint", "9.3") is False

        assert store.latest("sensors/rain", timedelta(minutes=1))["value"] == 0.0
        assert store.latest("SENSORS/door", timedelta(minutes=1))["value"] == "open"
        assert len(store) == 2

    def test_store_failure_is_logged(self):
        store = Mock()
        store.write_point.side_effect = ConnectionError("store down")

        assert StoreRecorder(store).record("sensors/t", "20") is False
        store.write_point.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
