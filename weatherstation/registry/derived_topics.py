"""
Derived Topic Registry - virtual topics computed from other topics.

Loads declarations from disk, seeds source values from the store at startup
and republishes computed values onto the bus. A derived topic fed by another
derived topic only recomputes once the first one's value came back from the
bus as a regular message.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from weatherstation.bus.base import MessageBus
from weatherstation.calculators import UnknownCalculatorError, create_calculator
from weatherstation.calculators.base import Calculator, format_value, round_to_precision
from weatherstation.models.topic import DerivedTopicDeclaration, Value, parse_value
from weatherstation.registry.raw_topics import RawTopicRegistry
from weatherstation.registry.source_binding import SourceBinding
from weatherstation.store.base import TimeSeriesStore
from weatherstation.utils.storage import DefinitionStorage, PersistenceError

logger = logging.getLogger(__name__)


class TopicState(Enum):
    DECLARED = "declared"
    BOOTSTRAPPING = "bootstrapping"
    LIVE = "live"


class DerivedTopic:
    """
    One virtual topic: a source binding plus a calculator.

    The binding signals every source update; the calculator result is
    rounded, stored as `value` and published under `topic`.
    """

    def __init__(
        self,
        declaration: DerivedTopicDeclaration,
        raw_topics: RawTopicRegistry,
        publish: Callable[[str, str], None],
        default_precision: int = 4
    ):
        """
        Args:
            declaration: Topic declaration
            raw_topics: Registry delivering source values
            publish: Called with (topic, payload) for every computed value
            default_precision: Significant digits unless declared otherwise
        """
        self.raw_topics = raw_topics
        self.publish_fn = publish
        self.default_precision = default_precision

        self.declaration = declaration
        self.value: Optional[Value] = None
        self.state = TopicState.DECLARED
        self.calculator: Optional[Calculator] = None
        self.binding = SourceBinding(declaration.source, raw_topics, self._on_source_update)
        self._set_calculator(declaration.calculator)

    @property
    def topic(self) -> str:
        return self.declaration.topic

    @property
    def calculator_name(self) -> Optional[str]:
        return self.declaration.calculator

    @property
    def precision(self) -> int:
        precision = self.declaration.precision
        return precision if precision is not None else self.default_precision

    def update(self, declaration: DerivedTopicDeclaration) -> None:
        """
        Apply a redeclaration in place.

        Same calculator: the binding keeps its learned values and the
        calculator gets the new options. Different calculator: a fresh
        calculator and a fresh binding replace the old ones.
        """
        calculator_changed = declaration.calculator != self.declaration.calculator
        self.declaration = declaration

        if calculator_changed:
            self.binding.detach()
            self.binding = SourceBinding(declaration.source, self.raw_topics, self._on_source_update)
            self.calculator = None
            self._set_calculator(declaration.calculator)
            logger.info(f"{self.topic}: calculator changed to {declaration.calculator}")
        else:
            self.binding.update(declaration.source)
            if self.calculator is not None:
                self.calculator.update(declaration.extra_fields)
            else:
                self._set_calculator(declaration.calculator)

    def recompute(self) -> Optional[Value]:
        """
        Run the calculator and publish its result.

        Returns:
            The new value, or None if nothing was computed
        """
        if self.calculator is None:
            return None

        try:
            result = self.calculator.calculate(self.binding)
        except Exception as e:
            logger.error(f"{self.topic}: calculator {self.calculator.name} failed: {e}")
            return None

        if result is None:
            return None

        self.value = round_to_precision(result, self.precision)
        self.publish()
        return self.value

    def publish(self) -> None:
        if self.value is None:
            return
        payload = format_value(self.value)
        logger.debug(f"Publish {self.topic} = {payload}")
        self.publish_fn(self.topic, payload)

    def detach(self) -> None:
        self.binding.detach()

    def to_dict(self) -> dict:
        return self.declaration.to_dict()

    def _set_calculator(self, name: Optional[str]) -> None:
        if not name:
            logger.warning(f"{self.topic}: no calculator declared")
            return
        try:
            self.calculator = create_calculator(name, self.declaration.extra_fields)
        except UnknownCalculatorError:
            logger.warning(f"{self.topic}: unknown calculator {name!r}, topic stays idle")
            self.calculator = None

    def _on_source_update(self, source_topic: str) -> None:
        self.recompute()


class DerivedTopicRegistry:
    """
    Owns all derived topics, keyed by output topic name in declaration order.
    """

    def __init__(
        self,
        raw_topics: RawTopicRegistry,
        bus: MessageBus,
        store: Optional[TimeSeriesStore],
        storage: DefinitionStorage,
        document_key: str = "virtualtopics",
        lookback: timedelta = timedelta(hours=24),
        query_timeout: float = 10,
        max_workers: int = 8,
        default_precision: int = 4
    ):
        """
        Args:
            raw_topics: Raw topic registry
            bus: Bus the derived values are published to
            store: Historical store used to seed missing source values
            storage: Definition storage holding the declarations
            document_key: Key of the declaration document
            lookback: How far back the store is searched
            query_timeout: Seconds to wait for all store queries
            max_workers: Parallel store queries
            default_precision: Significant digits of published values
        """
        self.raw_topics = raw_topics
        self.bus = bus
        self.store = store
        self.storage = storage
        self.document_key = document_key
        self.lookback = lookback
        self.query_timeout = query_timeout
        self.max_workers = max_workers
        self.default_precision = default_precision

        self.topics: Dict[str, DerivedTopic] = {}
        self.started = False

    def start(self) -> None:
        """Load declarations, seed them from the store and compute once."""
        self.load()
        self.bootstrap()
        self.recompute_all()
        self.started = True
        logger.info(f"Derived topics started: {len(self.topics)} topics")

    def load(self) -> int:
        """
        Add or update every persisted declaration.

        Returns:
            Number of loaded declarations
        """
        loaded = 0
        for data in self.storage.load_list(self.document_key):
            if not isinstance(data, dict):
                logger.warning(f"Skipping malformed declaration: {data!r}")
                continue
            try:
                self.add(data, persist=False)
                loaded += 1
            except ValueError as e:
                logger.warning(f"Skipping invalid declaration: {e}")

        logger.info(f"Loaded {loaded} derived topic declarations")
        return loaded

    def add(self, data: Any, persist: bool = True) -> DerivedTopic:
        """
        Create a derived topic, or update it in place if the name exists.

        Args:
            data: Declaration dict or DerivedTopicDeclaration
            persist: Write the declaration document afterwards

        Raises:
            ValueError: If the declaration has no valid topic name
        """
        declaration = self._to_declaration(data)
        topic = self.topics.get(declaration.topic)

        if topic is None:
            topic = DerivedTopic(
                declaration,
                self.raw_topics,
                self.bus.publish,
                default_precision=self.default_precision
            )
            self.topics[declaration.topic] = topic
            logger.info(f"Added derived topic {declaration.topic} ({declaration.calculator})")
        else:
            topic.update(declaration)
            logger.info(f"Updated derived topic {declaration.topic}")

        if self.started:
            self._bootstrap_topics([topic])
            topic.recompute()
            topic.state = TopicState.LIVE

        if persist:
            self.save()
        return topic

    def update(self, data: Any, persist: bool = True) -> DerivedTopic:
        """
        Update an existing derived topic.

        Raises:
            KeyError: If the topic is not declared
        """
        declaration = self._to_declaration(data)
        if declaration.topic not in self.topics:
            raise KeyError(f"Derived topic not found: {declaration.topic}")
        return self.add(declaration, persist=persist)

    def remove(self, topic_name: str, persist: bool = True) -> bool:
        """
        Remove a derived topic and detach it from its sources.

        Returns:
            False if the topic was not declared
        """
        topic = self.topics.pop(topic_name, None)
        if topic is None:
            return False

        topic.detach()
        logger.info(f"Removed derived topic {topic_name}")
        if persist:
            self.save()
        return True

    def get(self, topic_name: str) -> Optional[DerivedTopic]:
        return self.topics.get(topic_name)

    def bootstrap(self) -> Dict[str, Value]:
        """
        Seed missing source values of all derived topics from the store.

        Returns:
            Topic name -> value of every source found in the store
        """
        return self._bootstrap_topics(list(self.topics.values()))

    def recompute_all(self) -> int:
        """
        Run every calculator once, in declaration order.

        Returns:
            Number of topics that produced a value
        """
        computed = 0
        for topic in list(self.topics.values()):
            if topic.recompute() is not None:
                computed += 1
            topic.state = TopicState.LIVE
        logger.info(f"Recomputed {computed}/{len(self.topics)} derived topics")
        return computed

    def declarations(self) -> List[dict]:
        return [topic.to_dict() for topic in self.topics.values()]

    def save(self) -> bool:
        """Persist all declarations. Failures are logged, memory stays authoritative."""
        try:
            self.storage.save_json(self.document_key, self.declarations())
            return True
        except PersistenceError as e:
            logger.error(f"Failed to persist derived topics: {e}")
            return False

    def _bootstrap_topics(self, topics: List[DerivedTopic]) -> Dict[str, Value]:
        missing: List[str] = []
        for topic in topics:
            pending = topic.binding.missing_topics()
            if pending:
                topic.state = TopicState.BOOTSTRAPPING
            for source_topic in pending:
                if source_topic not in missing:
                    missing.append(source_topic)

        found = self._query_latest(missing) if missing else {}

        for source_topic, (value, timestamp) in found.items():
            self.raw_topics.seed(source_topic, value, timestamp)

        for topic in self.topics.values():
            for source_topic, (value, _) in found.items():
                if source_topic not in topic.binding.values:
                    topic.binding.seed(source_topic, value)

        if missing:
            logger.info(f"Bootstrap: {len(found)}/{len(missing)} source topics found in store")
        return {name: value for name, (value, _) in found.items()}

    def _query_latest(self, source_topics: List[str]) -> Dict[str, Tuple[Value, float]]:
        if self.store is None:
            return {}

        found: Dict[str, Tuple[Value, float]] = {}
        executor = ThreadPoolExecutor(
            max_workers=max(1, min(self.max_workers, len(source_topics))),
            thread_name_prefix="bootstrap"
        )
        try:
            futures = {
                executor.submit(self._latest_point, source_topic): source_topic
                for source_topic in source_topics
            }
            done, not_done = wait(futures, timeout=self.query_timeout)

            for future in not_done:
                logger.warning(f"Store query timed out for {futures[future]}")

            for future in done:
                source_topic = futures[future]
                try:
                    point = future.result()
                except Exception as e:
                    logger.error(f"Store query failed for {source_topic}: {e}")
                    continue
                if point is not None:
                    found[source_topic] = point
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return found

    def _latest_point(self, source_topic: str) -> Optional[Tuple[Value, float]]:
        latest = self.store.latest(source_topic, self.lookback)
        if latest is None or latest.get("value") is None:
            return None

        value = parse_value(latest["value"])
        time_value = latest.get("time")
        timestamp = time_value.timestamp() if hasattr(time_value, "timestamp") else None
        return value, timestamp

    @staticmethod
    def _to_declaration(data: Any) -> DerivedTopicDeclaration:
        if isinstance(data, DerivedTopicDeclaration):
            return data
        if isinstance(data, dict):
            return DerivedTopicDeclaration.from_dict(data)
        raise ValueError(f"Unsupported declaration: {data!r}")
