"""
Persistent conversation memory.

Serializes the bounded turn list into a key-value store. This is a passive
collaborator: it never trims, and it never raises to its caller. Retention
is decided by `ConversationMemory` in the session controller.
"""

import json
from typing import Any, Dict, List, Optional, Sequence

from ..interfaces.key_value_store import KeyValueStoreInterface
from ..models.data_models import ConversationTurn
from .error_handling import PersistenceFailure
from .logging_config import get_logger


logger = get_logger("memory")

DEFAULT_MEMORY_KEY = "conversation_memory"
FORMAT_VERSION = 1


class PersistentMemoryStore:
    """
    Loads and saves conversation turns under a single storage key.

    Stored document:
        {"version": 1, "turns": [{"role": ..., "text": ..., "timestamp": ...}, ...]}
    """

    def __init__(self, store: KeyValueStoreInterface, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.store = store
        self.key = config.get('storage_key', DEFAULT_MEMORY_KEY)
        self.last_error: Optional[PersistenceFailure] = None

    def load(self) -> List[ConversationTurn]:
        """
        Load persisted turns.

        Returns:
            The stored turns, or an empty list when nothing is stored or the
            stored value cannot be decoded
        """
        try:
            raw = self.store.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to read persisted memory: {e}")
            return []

        if not raw:
            return []

        try:
            document = json.loads(raw)
            # Bare lists are accepted for hand-edited files
            entries = document.get('turns', []) if isinstance(document, dict) else document
            if not isinstance(entries, list):
                raise ValueError("turns is not a list")
            turns = [ConversationTurn.from_dict(entry) for entry in entries]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Discarding unreadable persisted memory: {e}")
            return []

        logger.info(f"🧠 Loaded {len(turns)} remembered turns")
        return turns

    def save(self, turns: Sequence[ConversationTurn]) -> bool:
        """
        Persist turns, replacing what was stored.

        Returns:
            True on success, False on failure (see `last_error`)
        """
        document = {
            'version': FORMAT_VERSION,
            'turns': [turn.to_dict() for turn in turns]
        }
        try:
            self.store.set(self.key, json.dumps(document))
        except Exception as e:
            self.last_error = e if isinstance(e, PersistenceFailure) else PersistenceFailure(
                "Could not save conversation memory", cause=e
            )
            logger.warning(f"Failed to save persisted memory: {e}")
            return False

        self.last_error = None
        logger.debug(f"💾 Saved {len(turns)} turns")
        return True

    def clear(self) -> bool:
        """
        Erase persisted memory.

        Returns:
            True on success, False on failure (see `last_error`)
        """
        try:
            self.store.remove(self.key)
        except Exception as e:
            self.last_error = e if isinstance(e, PersistenceFailure) else PersistenceFailure(
                "Could not clear conversation memory", cause=e
            )
            logger.warning(f"Failed to clear persisted memory: {e}")
            return False

        self.last_error = None
        logger.info("🗑️  Persistent memory cleared")
        return True
