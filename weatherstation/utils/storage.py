"""
Storage utility.

JSON document persistence for topic declarations and the exclude list.
"""

import json
import os
import shutil
import logging
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a definition document cannot be written."""


class DefinitionStorage:
    """
    Manages the JSON documents the station persists between runs.

    Handles:
    - Raw topic snapshot (data/topics.json)
    - Derived topic declarations (data/virtualtopics.json)
    - Exclude list (data/excludes.json)
    """

    def __init__(self, data_root: str):
        """
        Initialize definition storage.

        Args:
            data_root: Directory holding the JSON documents
        """
        self.data_root = data_root
        os.makedirs(data_root, exist_ok=True)

        logger.info(f"Initialized DefinitionStorage with data_root={data_root}")

    def path_for(self, key: str) -> str:
        """Return the file path of a document key."""
        return os.path.join(self.data_root, f"{key}.json")

    def load_json(self, key: str) -> Optional[Any]:
        """
        Load a document.

        Args:
            key: Document key (e.g. "virtualtopics")

        Returns:
            Parsed document, or None if it doesn't exist or can't be read
        """
        filepath = self.path_for(key)

        if not os.path.exists(filepath):
            logger.debug(f"No document found for {key}")
            return None

        try:
            with open(filepath, 'r', encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load {filepath}: {e}")
            return self._try_restore_from_backup(key)

    def save_json(self, key: str, document: Any) -> None:
        """
        Persist a document with atomic write pattern.
        Creates backup before write.

        Raises:
            PersistenceError: If the document could not be written
        """
        filepath = self.path_for(key)
        temp_path = f"{filepath}.tmp"

        try:
            if os.path.exists(filepath):
                shutil.copy(filepath, f"{filepath}.backup")

            with open(temp_path, 'w', encoding="utf-8") as f:
                json.dump(document, f, indent=2)

            os.replace(temp_path, filepath)
            logger.debug(f"Saved {filepath}")

        except (OSError, TypeError, ValueError) as e:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise PersistenceError(f"Failed to save {filepath}: {e}") from e

    def load_list(self, key: str) -> List[Any]:
        """Load a document that is expected to be a JSON list."""
        document = self.load_json(key)
        if document is None:
            return []
        if not isinstance(document, list):
            logger.warning(f"Document {key} is not a list, ignoring it")
            return []
        return document

    def _try_restore_from_backup(self, key: str) -> Optional[Any]:
        """Attempt to read the backup file if the main document is corrupted."""
        backup_path = f"{self.path_for(key)}.backup"
        if not os.path.exists(backup_path):
            logger.warning(f"No backup file found for {key}")
            return None

        logger.warning(f"Attempting to restore from backup: {backup_path}")
        try:
            with open(backup_path, 'r', encoding="utf-8") as f:
                document = json.load(f)
            shutil.copy(backup_path, self.path_for(key))
            logger.info(f"Successfully restored {key} from backup")
            return document
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Backup restoration failed for {key}: {e}")
            return None
