"""
In-process loopback bus.

Published messages are queued and delivered back to the handler only when
pump() is called, the same way a broker delivers them later.
"""

import logging
import threading
from collections import deque
from typing import Deque, List, Tuple

from paho.mqtt.client import topic_matches_sub

from weatherstation.bus.base import MessageBus

logger = logging.getLogger(__name__)


class LocalBus(MessageBus):
    """Loopback MessageBus with a FIFO delivery queue."""

    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._queue: Deque[Tuple[str, str]] = deque()
        self._patterns: List[str] = []
        self.connected = False
        self.published: List[Tuple[str, str]] = []

    def connect(self) -> None:
        self.connected = True
        logger.info("Local bus connected")

    def subscribe(self, pattern: str) -> None:
        with self._lock:
            if pattern not in self._patterns:
                self._patterns.append(pattern)

    def publish(self, topic: str, value: str) -> None:
        with self._lock:
            self.published.append((topic, value))
            self._queue.append((topic, value))

    def inject(self, topic: str, payload: str) -> None:
        """Queue a message as if another client had published it."""
        with self._lock:
            self._queue.append((topic, payload))

    def pending(self) -> int:
        with self._lock:
            return len(self._queue)

    def pump(self, limit: int = 10000) -> int:
        """
        Deliver queued messages one at a time, including messages published
        while delivering.

        Returns:
            Number of delivered messages
        """
        delivered = 0
        while delivered < limit:
            with self._lock:
                if not self._queue:
                    break
                topic, payload = self._queue.popleft()
                matched = any(topic_matches_sub(p, topic) for p in self._patterns)

            if matched:
                self.dispatch(topic, payload)
                delivered += 1

        if delivered >= limit and self.pending():
            logger.warning(f"Local bus stopped after {limit} deliveries")
        return delivered

    def disconnect(self) -> None:
        self.connected = False
        logger.info("Local bus disconnected")
