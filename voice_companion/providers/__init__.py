"""
Provider implementations for the voice companion.
"""

from .capture import SoundDeviceCaptureProvider
from .transcription import GeminiTranscriptionProvider
from .response import GeminiResponseProvider
from .tts import LocalTTSProvider
from .storage import JsonFileKeyValueStore, InMemoryKeyValueStore

__all__ = [
    'SoundDeviceCaptureProvider',
    'GeminiTranscriptionProvider',
    'GeminiResponseProvider',
    'LocalTTSProvider',
    'JsonFileKeyValueStore',
    'InMemoryKeyValueStore'
]
