"""
Configuration settings for the weather station.

Centralized configuration for the bus, the store and the topic registries.
"""

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_ROOT = Path(os.getenv("DATA_ROOT", str(PROJECT_ROOT / "data")))

# MQTT Configuration
MQTT_HOST = os.getenv("MQTT_HOST", "localhost")
MQTT_PORT = int(os.getenv("MQTT_PORT", "1883"))
MQTT_CLIENT_ID = os.getenv("MQTT_CLIENT_ID", "app")
MQTT_SUBSCRIBE_PATTERN = os.getenv("MQTT_SUBSCRIBE_PATTERN", "#")
MQTT_KEEPALIVE = 30
MQTT_RECONNECT_MIN_DELAY = 1  # seconds
MQTT_RECONNECT_MAX_DELAY = 30  # seconds
MQTT_CONNECT_TIMEOUT = 10  # seconds to wait for the broker acknowledgement

# Raw topic history (-1 disables the bound)
MQTT_MAX_HISTORY_LENGTH = int(os.getenv("MQTT_MAX_HISTORY_LENGTH", "100"))
MQTT_MAX_HISTORY_AGE = int(os.getenv("MQTT_MAX_HISTORY_AGE", "3600"))  # seconds
HISTORY_SWEEP_INTERVAL_SECONDS = 0.5

# Derived topics
DEFAULT_PRECISION = 4  # significant digits
BOOTSTRAP_LOOKBACK_HOURS = 24
BOOTSTRAP_QUERY_TIMEOUT_SECONDS = 10
BOOTSTRAP_MAX_WORKERS = 8

# Store
STORE_ROOT_TOPIC = os.getenv("STORE_ROOT_TOPIC", "^sensors/")
STORE_PATH = os.getenv("STORE_PATH", str(DATA_ROOT / "store.csv"))

# Definition documents
TOPICS_DOCUMENT = "topics"
VIRTUAL_TOPICS_DOCUMENT = "virtualtopics"
EXCLUDES_DOCUMENT = "excludes"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = "weatherstation.log"
