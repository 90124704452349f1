"""
Abstract interface for transcription/speech-to-text providers.
"""

from abc import ABC, abstractmethod


class TranscriptionInterface(ABC):
    """Abstract base class for all transcription providers."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the transcription provider.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def transcribe(self, audio_bytes: bytes, mime_type: str) -> str:
        """
        Transcribe one recorded utterance. Exactly one attempt is made.

        Args:
            audio_bytes: Encoded audio, must be non-empty
            mime_type: MIME type of the encoded audio (e.g. "audio/wav")

        Returns:
            The transcribed text, never empty

        Raises:
            TranscriptionFailure: On a service error, network error or empty result
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the transcription provider."""
        pass

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'batch': True,
            'languages': ['en-US'],
            'audio_formats': ['wav']
        }
