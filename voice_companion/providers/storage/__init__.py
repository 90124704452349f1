"""
Key-value storage providers.
"""

from .json_file_store import JsonFileKeyValueStore
from .in_memory_store import InMemoryKeyValueStore

__all__ = ['JsonFileKeyValueStore', 'InMemoryKeyValueStore']
