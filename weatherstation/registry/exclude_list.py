"""
Exclude list - topic names the station drops silently.
"""

import logging
from typing import List

from weatherstation.utils.storage import DefinitionStorage, PersistenceError

logger = logging.getLogger(__name__)


class ExcludeList:
    """
    Set of raw topic names that never enter the raw topic registry.

    Every mutation is written through to the definition storage. A failed
    write is logged; the in-memory list stays authoritative.
    """

    def __init__(self, storage: DefinitionStorage, document_key: str = "excludes"):
        """
        Args:
            storage: Definition storage for persistence
            document_key: Key of the exclude document
        """
        self.storage = storage
        self.document_key = document_key
        self._entries: List[str] = []

    def load(self) -> None:
        """Load excluded topic names from disk."""
        entries = self.storage.load_list(self.document_key)
        self._entries = [entry for entry in entries if isinstance(entry, str)]
        logger.info(f"Loaded {len(self._entries)} excluded topics")

    def add(self, topic: str) -> bool:
        """
        Exclude a topic.

        Returns:
            False if the topic was already excluded
        """
        if self.contains(topic):
            return False

        self._entries.append(topic)
        logger.info(f"Excluded topic {topic}")
        self._write()
        return True

    def remove(self, topic: str) -> bool:
        """
        Stop excluding a topic.

        Returns:
            False if the topic was not excluded
        """
        if not self.contains(topic):
            return False

        self._entries = [t for t in self._entries if t != topic]
        logger.info(f"Removed topic {topic} from excludes")
        self._write()
        return True

    def contains(self, topic: str) -> bool:
        return topic in self._entries

    __contains__ = contains

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def _write(self) -> None:
        try:
            self.storage.save_json(self.document_key, self._entries)
        except PersistenceError as e:
            logger.error(f"Failed to persist exclude list: {e}")
