"""
Weather Station - virtual topic engine

CLI entry point for running the station against an MQTT broker.
"""

import argparse
import logging
import sys
import threading

from weatherstation.bus.mqtt_client import MqttBus
from weatherstation.service import StationService
from weatherstation.store.memory import MemoryStore
from weatherstation.utils.storage import DefinitionStorage
import config.settings as settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the entire application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(settings.LOG_FILE)
        ]
    )


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Weather Station - MQTT virtual topic engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run against a local broker
  python main.py

  # Use another broker and data directory
  python main.py --mqtt-host broker.local --mqtt-port 1883 \\
                 --data-root /var/lib/weatherstation

Derived topics are declared in <data-root>/virtualtopics.json.
        """
    )

    parser.add_argument(
        "--mqtt-host",
        default=settings.MQTT_HOST,
        help=f"MQTT broker host (default: {settings.MQTT_HOST})"
    )

    parser.add_argument(
        "--mqtt-port",
        type=int,
        default=settings.MQTT_PORT,
        help=f"MQTT broker port (default: {settings.MQTT_PORT})"
    )

    parser.add_argument(
        "--data-root",
        default=str(settings.DATA_ROOT),
        help=f"Directory of the definition documents (default: {settings.DATA_ROOT})"
    )

    parser.add_argument(
        "--store-path",
        default=settings.STORE_PATH,
        help="CSV file of the time-series store"
    )

    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )

    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    print("=" * 60)
    print("Weather Station - virtual topic engine")
    print("=" * 60)
    print(f"Broker: mqtt://{args.mqtt_host}:{args.mqtt_port}")
    print(f"Data root: {args.data_root}")
    print(f"Store: {args.store_path}")
    print("=" * 60)
    print()

    service = None
    try:
        logger.info("Initializing station...")
        bus = MqttBus(
            args.mqtt_host,
            args.mqtt_port,
            client_id=settings.MQTT_CLIENT_ID,
            keepalive=settings.MQTT_KEEPALIVE,
            reconnect_min_delay=settings.MQTT_RECONNECT_MIN_DELAY,
            reconnect_max_delay=settings.MQTT_RECONNECT_MAX_DELAY,
            connect_timeout=settings.MQTT_CONNECT_TIMEOUT
        )
        service = StationService(
            bus=bus,
            store=MemoryStore(args.store_path),
            storage=DefinitionStorage(args.data_root)
        )
        service.start()

        print(f"Running with {len(service.derived_topics.topics)} derived topics. Ctrl+C to stop.")
        threading.Event().wait()

    except KeyboardInterrupt:
        logger.info("Station interrupted by user")
        if service is not None:
            service.stop()
        sys.exit(0)

    except Exception as e:
        logger.error(f"Station failed: {e}", exc_info=True)
        print(f"\n❌ Station failed: {e}")
        print(f"Check {settings.LOG_FILE} for details")
        if service is not None:
            service.stop()
        sys.exit(1)


if __name__ == "__main__":
    main()
