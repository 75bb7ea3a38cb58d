"""
MQTT bus adapter (paho-mqtt).
"""

import logging
import threading
from typing import List

import paho.mqtt.client as mqtt

from weatherstation.bus.base import MessageBus

logger = logging.getLogger(__name__)


class MqttBus(MessageBus):
    """
    MessageBus backed by one long-lived paho-mqtt connection.

    Subscriptions are renewed on every (re)connect. Inbound messages are
    dispatched from paho's network thread, one at a time.
    """

    def __init__(
        self,
        host: str,
        port: int = 1883,
        client_id: str = "app",
        keepalive: int = 30,
        reconnect_min_delay: int = 1,
        reconnect_max_delay: int = 30,
        connect_timeout: float = 10
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.connect_timeout = connect_timeout
        self._patterns: List[str] = []
        self._connected = threading.Event()

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self.client.reconnect_delay_set(reconnect_min_delay, reconnect_max_delay)
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

    @property
    def url(self) -> str:
        return f"mqtt://{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def connect(self) -> None:
        """Connect and block until the broker acknowledged the session."""
        logger.info(f"Connecting to {self.url}")
        self._connected.clear()
        self.client.connect(self.host, self.port, keepalive=self.keepalive)
        self.client.loop_start()

        if not self._connected.wait(self.connect_timeout):
            logger.warning(
                f"No connection acknowledgement from {self.url} after "
                f"{self.connect_timeout}s, publishes may be dropped until it arrives"
            )

    def subscribe(self, pattern: str) -> None:
        if pattern not in self._patterns:
            self._patterns.append(pattern)
        if self.client.is_connected():
            self.client.subscribe(pattern, qos=0)

    def publish(self, topic: str, value: str) -> None:
        info = self.client.publish(topic, value, qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")

    def disconnect(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
        self._connected.clear()
        logger.info(f"Disconnected from {self.url}")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error(f"Connection to {self.url} refused: {reason_code}")
            return

        logger.info(f"Connected to {self.url}, subscribing to {self._patterns}")
        for pattern in self._patterns:
            client.subscribe(pattern, qos=0)
        self._connected.set()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        self._connected.clear()
        if reason_code != 0:
            logger.warning(f"Unexpected disconnect from {self.url}: {reason_code}")

    def _on_message(self, client, userdata, msg):
        payload = msg.payload.decode("utf-8", errors="replace")
        try:
            self.dispatch(msg.topic, payload)
        except Exception as e:
            logger.error(f"Message handling failed for {msg.topic}: {e}", exc_info=True)
