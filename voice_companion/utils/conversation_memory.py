"""
Bounded conversation memory.

The only retention policy in the companion lives here: at most
`max_turns` turns, oldest evicted first.
"""

from collections import deque
from typing import Deque, Iterable, Iterator, List, Optional

from ..models.data_models import ConversationTurn


DEFAULT_MAX_TURNS = 10


class ConversationMemory:
    """FIFO container of ConversationTurn capped at `max_turns`."""

    def __init__(self, max_turns: int = DEFAULT_MAX_TURNS, turns: Optional[Iterable[ConversationTurn]] = None):
        if max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self.max_turns = max_turns
        self._turns: Deque[ConversationTurn] = deque(maxlen=max_turns)
        if turns:
            self.replace(turns)

    def append(self, turn: ConversationTurn) -> Optional[ConversationTurn]:
        """
        Append a turn, evicting the oldest one when at capacity.

        Returns:
            The evicted turn, if any
        """
        evicted = self._turns[0] if len(self._turns) == self.max_turns else None
        self._turns.append(turn)
        return evicted

    def recent(self, count: int) -> List[ConversationTurn]:
        """The `count` most recent turns, oldest first."""
        if count <= 0:
            return []
        return list(self._turns)[-count:]

    def replace(self, turns: Iterable[ConversationTurn]) -> None:
        """Replace contents, keeping only the newest `max_turns`."""
        self._turns.clear()
        for turn in turns:
            self._turns.append(turn)

    def clear(self) -> None:
        self._turns.clear()

    @property
    def turns(self) -> List[ConversationTurn]:
        return list(self._turns)

    @property
    def is_full(self) -> bool:
        return len(self._turns) == self.max_turns

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(list(self._turns))

    def __repr__(self) -> str:
        return f"ConversationMemory({len(self._turns)}/{self.max_turns} turns)"
