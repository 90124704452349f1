"""
Abstract interface for persistent key-value storage.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStoreInterface(ABC):
    """String key-value storage used for the serialized conversation memory."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value.

        Raises:
            PersistenceFailure: If the value could not be written
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """
        Remove a value. Removing an absent key is not an error.

        Raises:
            PersistenceFailure: If the store could not be written
        """
        pass
