"""
Transcription provider implementations.
"""

from .gemini_transcription import GeminiTranscriptionProvider

__all__ = ['GeminiTranscriptionProvider']
