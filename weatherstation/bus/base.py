"""
Message bus interface.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

MessageHandler = Callable[[str, str], None]


class MessageBus(ABC):
    """
    Publish/subscribe transport carrying topic readings as strings.

    Inbound messages are handed to the single handler registered with
    on_message(), one at a time.
    """

    def __init__(self):
        self._handler: Optional[MessageHandler] = None

    def on_message(self, handler: MessageHandler) -> None:
        """Register the handler receiving (topic, payload) of inbound messages."""
        self._handler = handler

    def dispatch(self, topic: str, payload: str) -> None:
        if self._handler is not None:
            self._handler(topic, payload)

    @abstractmethod
    def connect(self) -> None:
        """Open the connection."""

    @abstractmethod
    def subscribe(self, pattern: str) -> None:
        """Subscribe to a topic pattern (MQTT wildcards)."""

    @abstractmethod
    def publish(self, topic: str, value: str) -> None:
        """Publish a value on a topic."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close the connection."""
