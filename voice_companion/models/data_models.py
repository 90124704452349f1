"""
Common data structures for the voice companion.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class TurnRole(str, Enum):
    """Who produced a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"


class SessionPhase(Enum):
    """Phases of a voice session."""
    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIBING = "transcribing"
    THINKING = "thinking"
    SPEAKING = "speaking"
    FAILED = "failed"


class SpeechEvent(str, Enum):
    """Events emitted by the speech output controller."""
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ConversationTurn:
    """One utterance attributed to the user or the assistant."""
    role: TurnRole
    text: str
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary format."""
        return {
            'role': self.role.value,
            'text': self.text,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ConversationTurn':
        """Create from the persisted dictionary format."""
        text = data['text']
        if not isinstance(text, str):
            raise ValueError(f"Turn text must be a string, got {type(text).__name__}")
        return cls(
            role=TurnRole(data['role']),
            text=text,
            timestamp=float(data.get('timestamp') or datetime.now().timestamp())
        )

    def __str__(self) -> str:
        return f"[{self.role.value}] {self.text}"


@dataclass(frozen=True)
class SessionState:
    """Current phase of the session, with the user-facing reason when FAILED."""
    phase: SessionPhase = SessionPhase.IDLE
    reason: Optional[str] = None

    @classmethod
    def failed(cls, reason: str) -> 'SessionState':
        return cls(SessionPhase.FAILED, reason)

    @property
    def is_idle(self) -> bool:
        return self.phase is SessionPhase.IDLE

    def __str__(self) -> str:
        if self.phase is SessionPhase.FAILED:
            return f"FAILED({self.reason})"
        return self.phase.name


@dataclass
class CapturedAudio:
    """Audio recorded by a capture handle, ready for transcription."""
    data: bytes
    mime_type: str = "audio/wav"
    sample_rate: int = 16000
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_size_kb(self) -> float:
        """Get audio data size in kilobytes."""
        return len(self.data) / 1024

    def is_valid(self) -> bool:
        """Check if the captured audio holds any data."""
        return len(self.data) > 0 and self.sample_rate > 0
