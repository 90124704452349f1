"""
Abstract interfaces for the voice companion components.
"""

from .audio_capture import AudioCaptureInterface, CaptureHandle
from .transcription import TranscriptionInterface
from .response import ResponseInterface
from .text_to_speech import TextToSpeechInterface
from .key_value_store import KeyValueStoreInterface

__all__ = [
    'AudioCaptureInterface',
    'CaptureHandle',
    'TranscriptionInterface',
    'ResponseInterface',
    'TextToSpeechInterface',
    'KeyValueStoreInterface'
]
