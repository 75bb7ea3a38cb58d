"""
Source binding - maps a derived topic's declared source to live values.

The source of a derived topic can be:
  - a topic string like:              'sensors/room/humidity'
  - a list of topic strings like:     ['sensors/a/temp', 'sensors/b/temp']
  - a field -> topic mapping like:    {'humidity': '...', 'temperature': '...'}
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from weatherstation.models.topic import (
    SOURCE_FIELDS,
    SOURCE_LIST,
    SOURCE_SINGLE,
    Value,
    infer_source_kind,
)
from weatherstation.registry.raw_topics import RawTopicRegistry

logger = logging.getLogger(__name__)


class SourceBinding:
    """
    Watches the source topics of one derived topic.

    Keeps only the latest value of each watched topic and calls `on_change`
    with the topic name whenever one of them is set.
    """

    def __init__(
        self,
        spec: Any,
        raw_topics: RawTopicRegistry,
        on_change: Callable[[str], None]
    ):
        """
        Args:
            spec: Declared source (str, list of str or dict field -> str)
            raw_topics: Registry delivering live values
            on_change: Called with the topic name after a value was set
        """
        self.raw_topics = raw_topics
        self.on_change = on_change
        self.spec: Any = None
        self.kind: Optional[str] = None
        self.values: Dict[str, Value] = {}
        self._watched: List[str] = []
        self._subscriptions: Dict[str, str] = {}  # topic -> subscription id

        self.update(spec)

    @staticmethod
    def resolve(spec: Any) -> List[str]:
        """
        Flatten a source spec into the topic names it watches.

        Returns:
            Topic names in declaration order, without duplicates. For a
            field mapping these are the mapping's values, not its keys.
        """
        kind = infer_source_kind(spec)
        if kind == SOURCE_SINGLE:
            topics = [spec]
        elif kind == SOURCE_LIST:
            topics = list(spec)
        elif kind == SOURCE_FIELDS:
            topics = list(spec.values())
        else:
            topics = []

        resolved = []
        for topic in topics:
            if isinstance(topic, str) and topic not in resolved:
                resolved.append(topic)
        return resolved

    @property
    def watched_topics(self) -> List[str]:
        return list(self._watched)

    def watches(self, topic: str) -> bool:
        return topic in self._subscriptions

    def update(self, spec: Any) -> None:
        """
        Replace the source spec.

        Newly watched topics are seeded from the raw registry when they have
        no cached value yet. Values of topics that are no longer watched stay
        in `values`.
        """
        if spec is not None and infer_source_kind(spec) is None:
            logger.warning(f"Unsupported source spec {spec!r}, watching nothing")

        self.spec = spec
        self.kind = infer_source_kind(spec)
        watched = self.resolve(spec)

        for topic in list(self._subscriptions):
            if topic not in watched:
                self.raw_topics.unsubscribe(self._subscriptions.pop(topic))

        for topic in watched:
            if topic not in self._subscriptions:
                self._subscriptions[topic] = self.raw_topics.subscribe(topic, self._on_raw_update)
            if topic not in self.values:
                current = self.raw_topics.get(topic)
                if current is not None:
                    self.values[topic] = current

        self._watched = watched

    def set_value(self, topic: str, value: Value) -> None:
        """Store a new value of a watched topic and signal the owner."""
        if not self.watches(topic):
            return

        self.values[topic] = value
        self.on_change(topic)

    def seed(self, topic: str, value: Value) -> bool:
        """Store a value without signalling the owner."""
        if not self.watches(topic):
            return False
        self.values[topic] = value
        return True

    def field_value(self, field_name: str) -> Optional[Value]:
        """Value of a named field of a "fields" binding."""
        if self.kind != SOURCE_FIELDS:
            return None
        topic = self.spec.get(field_name)
        if topic is None:
            return None
        return self.values.get(topic)

    def missing_topics(self) -> List[str]:
        """Watched topics without a cached value."""
        return [topic for topic in self._watched if topic not in self.values]

    def detach(self) -> None:
        """Drop all raw registry subscriptions."""
        for sub_id in self._subscriptions.values():
            self.raw_topics.unsubscribe(sub_id)
        self._subscriptions = {}

    def _on_raw_update(self, topic: str, value: Value) -> None:
        self.set_value(topic, value)
