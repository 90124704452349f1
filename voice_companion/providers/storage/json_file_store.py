"""
JSON-file backed key-value store.

All keys live in one JSON object on disk. Writes go to a temporary file in
the same directory and are moved into place, so a crash mid-write never
leaves a truncated file behind.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from ...interfaces.key_value_store import KeyValueStoreInterface
from ...utils.error_handling import PersistenceFailure
from ...utils.logging_config import get_logger


logger = get_logger("storage")

DEFAULT_STORE_FILE = "state_management/companion_store.json"


class JsonFileKeyValueStore(KeyValueStoreInterface):
    """
    Key-value store persisted as a single JSON document.

    Configuration options:
    - path: File path (default: state_management/companion_store.json)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.path = Path(config.get('path') or DEFAULT_STORE_FILE)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring store {self.path}: top level is not an object")
            return {}
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_path, self.path)
            finally:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
        except OSError as e:
            raise PersistenceFailure(f"Could not write {self.path}", cause=e) from e

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            self._write_all(data)
