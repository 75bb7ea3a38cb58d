"""
Station Service.

Wires the bus, the store and the topic registries together and runs the
message loop.
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from weatherstation.bus.base import MessageBus
from weatherstation.models.topic import RawTopic
from weatherstation.registry.derived_topics import DerivedTopicRegistry
from weatherstation.registry.exclude_list import ExcludeList
from weatherstation.registry.raw_topics import (
    TOPIC_ADDED,
    HistorySweeper,
    RawTopicRegistry,
)
from weatherstation.store.base import TimeSeriesStore
from weatherstation.store.recorder import StoreRecorder
from weatherstation.utils.storage import DefinitionStorage, PersistenceError
import config.settings as settings

logger = logging.getLogger(__name__)


class StationService:
    """
    Runs the station.

    Coordinates:
    1. Exclude list → 2. Raw topic snapshot → 3. Bus connection and
    subscription → 4. Derived topics (load, store bootstrap, first
    computation) → 5. History sweeper

    Every inbound message is recorded to the store, then ingested.
    """

    def __init__(
        self,
        bus: MessageBus,
        store: Optional[TimeSeriesStore],
        storage: DefinitionStorage,
        subscribe_pattern: str = settings.MQTT_SUBSCRIBE_PATTERN,
        store_root_topic: str = settings.STORE_ROOT_TOPIC,
        max_history_length: int = settings.MQTT_MAX_HISTORY_LENGTH,
        max_history_age: float = settings.MQTT_MAX_HISTORY_AGE,
        sweep_interval: float = settings.HISTORY_SWEEP_INTERVAL_SECONDS
    ):
        """
        Initialize the station.

        Args:
            bus: Message bus connection
            store: Time-series store (None disables recording and bootstrap)
            storage: Definition storage for declarations and excludes
            subscribe_pattern: Bus subscription pattern
            store_root_topic: Regex of topics recorded in the store
            max_history_length: Max history entries per raw topic
            max_history_age: Max history age in seconds
            sweep_interval: Seconds between history sweeps
        """
        self.bus = bus
        self.store = store
        self.storage = storage
        self.subscribe_pattern = subscribe_pattern

        logger.info("Initializing station components...")

        self.excludes = ExcludeList(storage, settings.EXCLUDES_DOCUMENT)
        self.raw_topics = RawTopicRegistry(
            self.excludes,
            max_history_length=max_history_length,
            max_history_age=max_history_age
        )
        self.raw_topics.add_listener(self._on_raw_topic_event)
        self.sweeper = HistorySweeper(self.raw_topics, interval=sweep_interval)

        self.derived_topics = DerivedTopicRegistry(
            self.raw_topics,
            bus,
            store,
            storage,
            document_key=settings.VIRTUAL_TOPICS_DOCUMENT,
            lookback=timedelta(hours=settings.BOOTSTRAP_LOOKBACK_HOURS),
            query_timeout=settings.BOOTSTRAP_QUERY_TIMEOUT_SECONDS,
            max_workers=settings.BOOTSTRAP_MAX_WORKERS,
            default_precision=settings.DEFAULT_PRECISION
        )

        self.recorder = StoreRecorder(store, store_root_topic) if store is not None else None

        logger.info("Station initialized successfully")

    def start(self) -> None:
        """Load state, connect the bus and start sweeping."""
        self.excludes.load()
        self.raw_topics.restore(self.storage.load_list(settings.TOPICS_DOCUMENT))

        # the first computation publishes, so the bus must be up before it
        self.bus.on_message(self.handle_message)
        self.bus.connect()
        self.bus.subscribe(self.subscribe_pattern)

        self.derived_topics.start()
        self.sweeper.start()
        logger.info("Station started")

    def handle_message(self, topic: str, payload: Any) -> None:
        """Record and ingest one inbound bus message."""
        if self.recorder is not None:
            self.recorder.record(topic, payload)
        self.raw_topics.ingest(topic, payload)

    def exclude(self, topic: str) -> bool:
        """Exclude a topic; an existing raw topic keeps its history but stops updating."""
        return self.excludes.add(topic)

    def include(self, topic: str) -> bool:
        return self.excludes.remove(topic)

    def stop(self) -> None:
        """Stop sweeping, persist state and disconnect."""
        self.sweeper.stop()

        try:
            self.storage.save_json(settings.TOPICS_DOCUMENT, self.raw_topics.declarations())
        except PersistenceError as e:
            logger.error(f"Failed to persist raw topic snapshot: {e}")

        self.derived_topics.save()

        flush = getattr(self.store, "flush", None)
        if callable(flush):
            try:
                flush()
            except OSError as e:
                logger.error(f"Failed to flush store: {e}")

        self.bus.disconnect()
        logger.info("Station stopped")

    def _on_raw_topic_event(self, event: str, topic: RawTopic) -> None:
        if event == TOPIC_ADDED:
            logger.info(f"New topic: {topic.name}")
