"""
Topic data models.

Represents raw bus topics (with their retained history) and the declarations
of derived (virtual) topics as they are persisted.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

# Source spec shapes
SOURCE_SINGLE = "single"
SOURCE_LIST = "list"
SOURCE_FIELDS = "fields"

Value = Union[float, str]


def parse_value(payload: Any) -> Value:
    """
    Turn a raw bus payload into a topic value.

    Numeric payloads become floats ("0" stays 0.0, it is a value like any
    other). Everything else is kept as the raw string.
    """
    if isinstance(payload, (bytes, bytearray)):
        payload = payload.decode("utf-8", errors="replace")

    if isinstance(payload, bool):
        return "true" if payload else "false"

    if isinstance(payload, (int, float)):
        number = float(payload)
        return number if math.isfinite(number) else str(payload)

    text = str(payload)
    try:
        number = float(text.strip())
    except ValueError:
        return text

    if not math.isfinite(number):
        return text
    return number


def infer_source_kind(spec: Any) -> Optional[str]:
    """Infer the binding type from the declared source value's own type."""
    if isinstance(spec, str):
        return SOURCE_SINGLE
    if isinstance(spec, (list, tuple)):
        return SOURCE_LIST
    if isinstance(spec, dict):
        return SOURCE_FIELDS
    return None


@dataclass
class HistoryEntry:
    """One retained reading of a raw topic."""
    value: Value
    timestamp: float  # seconds since epoch


@dataclass
class RawTopic:
    """
    A topic ingested directly from the bus.

    History is kept newest-first; the latest value is always history[0].
    """
    name: str
    history: List[HistoryEntry] = field(default_factory=list)

    @property
    def value(self) -> Optional[Value]:
        return self.history[0].value if self.history else None

    @property
    def timestamp(self) -> Optional[float]:
        return self.history[0].timestamp if self.history else None

    def add(self, value: Value, timestamp: float) -> None:
        """Record a new reading, keeping the list ordered newest-first."""
        index = 0
        while index < len(self.history) and self.history[index].timestamp > timestamp:
            index += 1
        self.history.insert(index, HistoryEntry(value=value, timestamp=timestamp))

    def prune(self, max_age: float, max_count: int, now: float) -> int:
        """
        Drop history entries by age and count.

        Args:
            max_age: Maximum age in seconds (-1 disables)
            max_count: Maximum number of entries (-1 disables)
            now: Current time in seconds

        Returns:
            Number of removed entries
        """
        before = len(self.history)
        if before == 0:
            return 0

        latest = self.history[0]
        kept = self.history

        if max_age != -1:
            oldest_allowed = now - max_age
            kept = [entry for entry in kept if entry.timestamp > oldest_allowed]

        if max_count != -1:
            kept = kept[:max_count]

        # the newest reading survives age eviction
        if not kept and max_count != 0:
            kept = [latest]

        self.history = kept
        return before - len(kept)

    def to_dict(self) -> dict:
        """Snapshot entry: latest value only."""
        return {
            "topic": self.name,
            "value": self.value,
            "timestamp": self.timestamp
        }


@dataclass
class DerivedTopicDeclaration:
    """
    A persisted derived topic declaration.

    Anything besides topic/source/calculator is kept in extra_fields and
    written back unchanged (precision, transform, max, dashboard labels...).
    """
    topic: str
    source: Any = None
    calculator: Optional[str] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.topic, str) or not self.topic:
            raise ValueError(f"Invalid derived topic name: {self.topic!r}")

    @property
    def precision(self) -> Optional[int]:
        precision = self.extra_fields.get("precision")
        try:
            return int(precision) if precision is not None else None
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_dict(cls, data: dict) -> "DerivedTopicDeclaration":
        """Create a declaration from its JSON dict."""
        extra = {
            key: value for key, value in data.items()
            if key not in ("topic", "source", "calculator")
        }
        return cls(
            topic=data.get("topic"),
            source=data.get("source"),
            calculator=data.get("calculator"),
            extra_fields=extra
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        data = {
            "topic": self.topic,
            "source": self.source,
            "calculator": self.calculator
        }
        data.update(self.extra_fields)
        return data
