# Utils package

from .conversation_memory import ConversationMemory
from .error_handling import ErrorHandler, ErrorSeverity, ComponentError
from .logging_config import setup_logging, get_logger
from .persistent_memory import PersistentMemoryStore
from .speech_output import SpeechOutputController
from .state_machine import SessionStateMachine
from .text_normalizer import normalize_for_speech

__all__ = [
    "ConversationMemory",
    "ErrorHandler",
    "ErrorSeverity",
    "ComponentError",
    "setup_logging",
    "get_logger",
    "PersistentMemoryStore",
    "SpeechOutputController",
    "SessionStateMachine",
    "normalize_for_speech",
]
