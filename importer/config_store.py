import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import ConfigStoreError
from .models.import_config import ImportConfig

logger = logging.getLogger(__name__)


class ImportConfigStore:
    """
    Saved import configurations kept in a JSON settings document.

    The document holds ``{"importConfigs": [...]}``; each entry has a unique
    ``id``, a ``name``, optional ``description``/``createdBy`` and the
    ``config`` itself. Saves replace the whole file atomically.
    """

    ROOT_KEY = "importConfigs"

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigStoreError(f"Could not read settings file '{self.path}': {e}") from e

        if not isinstance(document, dict):
            raise ConfigStoreError(f"Settings file '{self.path}' is not a JSON object")
        entries = document.get(self.ROOT_KEY) or []
        if not isinstance(entries, list):
            raise ConfigStoreError(f"'{self.ROOT_KEY}' in '{self.path}' is not a list")
        return entries

    def _write(self, entries: List[Dict[str, Any]]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".import_configs.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({self.ROOT_KEY: entries}, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise ConfigStoreError(f"Could not write settings file '{self.path}': {e}") from e

    def list(self) -> List[Dict[str, Any]]:
        """Every saved entry, in file order."""
        return self._load()

    def get(self, config_id: str) -> Optional[ImportConfig]:
        for entry in self._load():
            if entry.get("id") == config_id:
                return ImportConfig.from_dict(entry.get("config") or {})
        logger.debug(f"No saved import configuration with id '{config_id}'")
        return None

    def save(
        self,
        config_id: str,
        name: str,
        config: ImportConfig,
        description: str = "",
        created_by: str = "",
    ) -> Dict[str, Any]:
        """Insert or replace the entry with this id (last write wins)."""
        if not config_id:
            raise ConfigStoreError("A saved import configuration needs an id")

        entries = [e for e in self._load() if e.get("id") != config_id]
        entry = {
            "id": config_id,
            "name": name,
            "description": description,
            "createdBy": created_by,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
            "config": config.to_dict(),
        }
        entries.append(entry)
        self._write(entries)
        logger.info(f"✅ Saved import configuration '{name}' ({config_id})")
        return entry

    def delete(self, config_id: str) -> bool:
        entries = self._load()
        remaining = [e for e in entries if e.get("id") != config_id]
        if len(remaining) == len(entries):
            return False
        self._write(remaining)
        logger.info(f"Deleted import configuration '{config_id}'")
        return True
