"""
Store recorder - writes inbound bus messages to the time-series store.
"""

import logging
import re
import time
from typing import Any

from weatherstation.models.topic import parse_value
from weatherstation.store.base import TimeSeriesStore

logger = logging.getLogger(__name__)


class StoreRecorder:
    """
    Records every message whose topic matches the root pattern.

    Numeric payloads are written as float values (zero included), anything
    else as string values.
    """

    def __init__(self, store: TimeSeriesStore, root_pattern: str = ".*"):
        """
        Args:
            store: Target store
            root_pattern: Regex (case-insensitive) selecting recorded topics
        """
        self.store = store
        self.root_pattern = re.compile(root_pattern, re.IGNORECASE)

    def record(self, topic: str, payload: Any) -> bool:
        """
        Write one message as a point.

        Returns:
            True if a point was written
        """
        if not self.root_pattern.search(topic):
            return False

        value = parse_value(payload)
        try:
            self.store.write_point(topic, {"value": value}, time.time_ns())
        except Exception as e:
            logger.error(f"Failed to record {topic}: {e}")
            return False

        logger.debug(f"Recorded {topic} = {value!r}")
        return True
