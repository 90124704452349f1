"""
Process-local key-value store. Nothing survives a restart.
"""

from typing import Dict, Optional

from ...interfaces.key_value_store import KeyValueStoreInterface


class InMemoryKeyValueStore(KeyValueStoreInterface):
    """Dictionary-backed store for tests and the `test` preset."""

    def __init__(self, config: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = {}
        self.write_count = 0

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self.write_count += 1

    def remove(self, key: str) -> None:
        self._data.pop(key, None)
        self.write_count += 1

    def __contains__(self, key: str) -> bool:
        return key in self._data
