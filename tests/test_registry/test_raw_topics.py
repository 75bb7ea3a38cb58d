"""
Unit tests for the Raw Topic Registry and the history sweeper.
"""

import time

import pytest

from weatherstation.registry.raw_topics import (
    TOPIC_ADDED,
    TOPIC_UPDATED,
    HistorySweeper,
    RawTopicRegistry,
)


def test_ingest_creates_topic_and_notifies(raw_topics):
    """First message creates the topic, later ones update it."""
    events = []
    raw_topics.add_listener(lambda event, topic: events.append((event, topic.name)))

    assert raw_topics.ingest("sensors/outdoor/temperature", "21.5")
    assert raw_topics.ingest("sensors/outdoor/temperature", "22")

    assert raw_topics.get("sensors/outdoor/temperature") == 22.0
    assert events == [
        (TOPIC_ADDED, "sensors/outdoor/temperature"),
        (TOPIC_UPDATED, "sensors/outdoor/temperature")
    ]


def test_history_is_newest_first(raw_topics, clock):
    """History stays sorted newest-first for any ingest sequence."""
    for value in ["1", "2", "3", "4"]:
        raw_topics.ingest("a", value)
        clock.advance(1)

    history = raw_topics.get_topic("a").history
    timestamps = [entry.timestamp for entry in history]

    assert [entry.value for entry in history] == [4.0, 3.0, 2.0, 1.0]
    assert timestamps == sorted(timestamps, reverse=True)


def test_zero_payload_is_a_value(raw_topics):
    """A literal zero is stored as 0, not treated as absent."""
    raw_topics.ingest("sensors/rain", "0")

    assert raw_topics.get("sensors/rain") == 0
    assert raw_topics.get("sensors/rain") is not None


def test_malformed_payloads_degrade_to_strings(raw_topics):
    """Non-numeric payloads never raise, they are kept as strings."""
    raw_topics.ingest("contact", "true")
    raw_topics.ingest("status", b"online")
    raw_topics.ingest("weird", "nan")
    raw_topics.ingest("json", '{"a": 1')

    assert raw_topics.get("contact") == "true"
    assert raw_topics.get("status") == "online"
    assert raw_topics.get("weird") == "nan"
    assert raw_topics.get("json") == '{"a": 1'


def test_unknown_topic_has_no_value(raw_topics):
    assert raw_topics.get("nothing/here") is None


def test_subscribers_called_in_registration_order(raw_topics):
    calls = []
    raw_topics.subscribe("a", lambda name, value: calls.append(("first", value)))
    raw_topics.subscribe("a", lambda name, value: calls.append(("second", value)))
    raw_topics.subscribe("b", lambda name, value: calls.append(("other", value)))

    raw_topics.ingest("a", "7")

    assert calls == [("first", 7.0), ("second", 7.0)]


def test_unsubscribe(raw_topics):
    calls = []
    sub_id = raw_topics.subscribe("a", lambda name, value: calls.append(value))
    raw_topics.unsubscribe(sub_id)

    raw_topics.ingest("a", "1")

    assert calls == []
    assert raw_topics.subscriber_count("a") == 0


def test_failing_subscriber_does_not_block_others(raw_topics):
    calls = []

    def broken(name, value):
        raise RuntimeError("boom")

    raw_topics.subscribe("a", broken)
    raw_topics.subscribe("a", lambda name, value: calls.append(value))

    assert raw_topics.ingest("a", "1")
    assert calls == [1.0]


def test_exclude_before_first_message_never_creates(raw_topics, excludes):
    """An excluded name never enters the registry."""
    excludes.add("sensors/noisy")

    assert raw_topics.ingest("sensors/noisy", "1") is False
    assert "sensors/noisy" not in raw_topics
    assert raw_topics.get("sensors/noisy") is None


def test_exclude_after_creation_keeps_topic_but_blocks_updates(raw_topics, excludes):
    """Excluding later keeps the existing topic and its value, further updates are dropped."""
    calls = []
    raw_topics.subscribe("sensors/noisy", lambda name, value: calls.append(value))
    raw_topics.ingest("sensors/noisy", "1")

    excludes.add("sensors/noisy")
    assert raw_topics.ingest("sensors/noisy", "2") is False

    assert "sensors/noisy" in raw_topics
    assert raw_topics.get("sensors/noisy") == 1.0
    assert calls == [1.0]


def test_sweep_truncates_to_max_count(raw_topics, clock):
    for value in range(10):
        raw_topics.ingest("a", str(value))
        clock.advance(1)

    raw_topics.sweep()

    history = raw_topics.get_topic("a").history
    assert len(history) == 5
    assert history[0].value == 9.0


def test_sweep_drops_old_entries_but_keeps_newest(raw_topics, clock):
    raw_topics.ingest("a", "1")
    clock.advance(30)
    raw_topics.ingest("a", "2")
    clock.advance(45)

    raw_topics.sweep()
    assert [entry.value for entry in raw_topics.get_topic("a").history] == [2.0]

    clock.advance(600)
    raw_topics.sweep()
    assert [entry.value for entry in raw_topics.get_topic("a").history] == [2.0]
    assert raw_topics.get("a") == 2.0


def test_sweep_is_idempotent(raw_topics, clock):
    for value in range(8):
        raw_topics.ingest("a", str(value))
        clock.advance(15)

    raw_topics.sweep()
    first = list(raw_topics.get_topic("a").history)
    raw_topics.sweep()

    assert raw_topics.get_topic("a").history == first


def test_disabled_bounds_keep_everything(excludes, clock):
    registry = RawTopicRegistry(excludes, max_history_length=-1, max_history_age=-1, clock=clock)
    for value in range(20):
        registry.ingest("a", str(value))
        clock.advance(3600)

    registry.sweep()

    assert len(registry.get_topic("a").history) == 20


def test_seed_is_quiet_and_never_overwrites(raw_topics):
    calls = []
    raw_topics.subscribe("a", lambda name, value: calls.append(value))

    assert raw_topics.seed("a", "5", timestamp=100.0)
    assert raw_topics.seed("a", "6") is False

    assert raw_topics.get("a") == 5.0
    assert raw_topics.get_topic("a").timestamp == 100.0
    assert calls == []


def test_snapshot_restore(raw_topics, excludes, clock):
    raw_topics.ingest("a", "1.5")
    raw_topics.ingest("b", "open")
    snapshot = raw_topics.declarations()

    restored = RawTopicRegistry(excludes, clock=clock)
    assert restored.restore(snapshot + [{"topic": "empty", "value": None}, "junk"]) == 2

    assert restored.get("a") == 1.5
    assert restored.get("b") == "open"
    assert "empty" not in restored


def test_history_sweeper_runs_periodically(raw_topics, clock):
    for value in range(10):
        raw_topics.ingest("a", str(value))
        clock.advance(1)

    sweeper = HistorySweeper(raw_topics, interval=0.01)
    sweeper.start()
    try:
        deadline = time.time() + 2
        while len(raw_topics.get_topic("a").history) > 5 and time.time() < deadline:
            time.sleep(0.01)
        assert sweeper.running
    finally:
        sweeper.stop()

    assert len(raw_topics.get_topic("a").history) == 5
    assert not sweeper.running


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
