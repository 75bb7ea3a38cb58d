"""
Time-series store interface.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, Iterator, Optional


class TimeSeriesStore(ABC):
    """Historical store of topic readings."""

    @abstractmethod
    def write_point(self, measurement: str, fields: Dict[str, Any], timestamp_ns: int) -> None:
        """
        Write one reading.

        Args:
            measurement: Topic name
            fields: {"value": number or string}
            timestamp_ns: Nanoseconds since epoch
        """

    @abstractmethod
    def query_range(self, topic: str, window: timedelta) -> Iterator[Dict[str, Any]]:
        """
        Readings of a topic within the last `window`, oldest first.

        Yields:
            {"topic": str, "time": datetime, "value": number or string}
        """

    def latest(self, topic: str, window: timedelta) -> Optional[Dict[str, Any]]:
        """Most recent reading of a topic within the last `window`, or None."""
        latest_row = None
        for row in self.query_range(topic, window):
            latest_row = row
        return latest_row
