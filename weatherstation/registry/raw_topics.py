"""
Raw Topic Registry - every non-excluded topic seen on the bus.

Owns one RawTopic per topic name, notifies subscribers on every ingest and
evicts history on a fixed interval.
"""

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from weatherstation.models.topic import RawTopic, Value, parse_value
from weatherstation.registry.exclude_list import ExcludeList

logger = logging.getLogger(__name__)

TOPIC_ADDED = "topic-added"
TOPIC_UPDATED = "topic-updated"

TopicCallback = Callable[[str, Value], None]
RegistryListener = Callable[[str, RawTopic], None]


class RawTopicRegistry:
    """
    Entry point for all inbound bus messages.

    ingest() runs synchronously: the topic is created or updated, then the
    registry listeners and the per-topic subscribers are called in
    registration order before ingest() returns.
    """

    def __init__(
        self,
        excludes: ExcludeList,
        max_history_length: int = -1,
        max_history_age: float = -1,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            excludes: Topic names to drop
            max_history_length: Max history entries per topic (-1 disables)
            max_history_age: Max history age in seconds (-1 disables)
            clock: Time source in seconds
        """
        self.excludes = excludes
        self.max_history_length = max_history_length
        self.max_history_age = max_history_age
        self.clock = clock

        self.topics: Dict[str, RawTopic] = {}
        self._lock = threading.RLock()
        self._subscribers: Dict[str, List[Tuple[str, TopicCallback]]] = {}
        self._subscription_index: Dict[str, str] = {}  # sub_id -> topic name
        self._listeners: List[RegistryListener] = []

    def ingest(self, name: str, raw_value: Any) -> bool:
        """
        Add or update a topic from a bus message.

        Args:
            name: Topic name
            raw_value: Payload as received

        Returns:
            False if the topic is excluded
        """
        if self.excludes.contains(name):
            return False

        value = parse_value(raw_value)

        with self._lock:
            topic = self.topics.get(name)
            event = TOPIC_UPDATED
            if topic is None:
                topic = RawTopic(name=name)
                self.topics[name] = topic
                event = TOPIC_ADDED
            topic.add(value, self.clock())

        if event == TOPIC_ADDED:
            logger.debug(f"Added topic {name} = {value!r}")

        self._notify(event, topic)
        return True

    def seed(self, name: str, value: Any, timestamp: Optional[float] = None) -> bool:
        """
        Create a topic without notifying anyone.

        Used for values restored from the snapshot or the store. Existing
        topics are left untouched.

        Returns:
            True if the topic was created
        """
        if self.excludes.contains(name):
            return False

        with self._lock:
            if name in self.topics:
                return False
            topic = RawTopic(name=name)
            topic.add(parse_value(value), self.clock() if timestamp is None else timestamp)
            self.topics[name] = topic

        logger.debug(f"Seeded topic {name} = {topic.value!r}")
        return True

    def get(self, name: str) -> Optional[Value]:
        """Latest value of a topic, or None if unknown."""
        with self._lock:
            topic = self.topics.get(name)
            return topic.value if topic else None

    def get_topic(self, name: str) -> Optional[RawTopic]:
        with self._lock:
            return self.topics.get(name)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self.topics

    def subscribe(self, name: str, callback: TopicCallback) -> str:
        """
        Call `callback(name, value)` on every ingest of a topic.

        The topic doesn't need to exist yet.

        Returns:
            Subscription id for unsubscribe()
        """
        sub_id = str(uuid.uuid4())
        with self._lock:
            self._subscribers.setdefault(name, []).append((sub_id, callback))
            self._subscription_index[sub_id] = name
        return sub_id

    def unsubscribe(self, sub_id: str) -> None:
        with self._lock:
            name = self._subscription_index.pop(sub_id, None)
            if name is None:
                return
            remaining = [s for s in self._subscribers.get(name, []) if s[0] != sub_id]
            if remaining:
                self._subscribers[name] = remaining
            else:
                self._subscribers.pop(name, None)

    def subscriber_count(self, name: str) -> int:
        with self._lock:
            return len(self._subscribers.get(name, []))

    def add_listener(self, listener: RegistryListener) -> None:
        """Call `listener(event, topic)` for topic-added / topic-updated."""
        self._listeners.append(listener)

    def sweep(self, now: Optional[float] = None) -> int:
        """
        Evict history of every topic by age and count.

        The newest reading of a topic is kept even if it is stale.

        Returns:
            Number of removed entries
        """
        now = self.clock() if now is None else now
        removed = 0
        with self._lock:
            for topic in self.topics.values():
                removed += topic.prune(self.max_history_age, self.max_history_length, now)
        return removed

    def declarations(self) -> List[dict]:
        """Snapshot of the latest value of every topic."""
        with self._lock:
            return [topic.to_dict() for topic in self.topics.values() if topic.history]

    def restore(self, declarations: List[dict]) -> int:
        """
        Seed topics from a snapshot document.

        Returns:
            Number of restored topics
        """
        restored = 0
        for entry in declarations:
            if not isinstance(entry, dict) or "topic" not in entry:
                continue
            if entry.get("value") is None:
                continue
            if self.seed(entry["topic"], entry["value"], entry.get("timestamp")):
                restored += 1

        logger.info(f"Restored {restored} topics from snapshot")
        return restored

    def _notify(self, event: str, topic: RawTopic) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, topic)
            except Exception as e:
                logger.error(f"Listener failed on {event} for {topic.name}: {e}")

        with self._lock:
            callbacks = [cb for _, cb in self._subscribers.get(topic.name, [])]

        value = topic.value
        for callback in callbacks:
            try:
                callback(topic.name, value)
            except Exception as e:
                logger.error(f"Subscriber failed for {topic.name}: {e}", exc_info=True)


class HistorySweeper:
    """Runs RawTopicRegistry.sweep() on a fixed interval in a daemon thread."""

    def __init__(self, registry: RawTopicRegistry, interval: float = 0.5):
        self.registry = registry
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="history-sweeper", daemon=True
        )
        self._thread.start()
        logger.info(f"History sweeper started (every {self.interval}s)")

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("History sweeper stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                removed = self.registry.sweep()
                if removed:
                    logger.debug(f"Swept {removed} history entries")
            except Exception as e:
                logger.error(f"History sweep failed: {e}", exc_info=True)
