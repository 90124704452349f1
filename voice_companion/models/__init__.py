"""
Data models for the voice companion.
"""

from .data_models import (
    TurnRole,
    SessionPhase,
    SessionState,
    SpeechEvent,
    ConversationTurn,
    CapturedAudio
)

__all__ = [
    'TurnRole',
    'SessionPhase',
    'SessionState',
    'SpeechEvent',
    'ConversationTurn',
    'CapturedAudio'
]
