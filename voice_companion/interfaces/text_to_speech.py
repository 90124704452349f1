"""
Abstract interface for text-to-speech engines.
"""

from abc import ABC, abstractmethod
from typing import Optional


class TextToSpeechInterface(ABC):
    """Abstract base class for all text-to-speech engines."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the TTS engine.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def speak(self,
                    text: str,
                    language: Optional[str] = None,
                    rate: Optional[float] = None,
                    pitch: Optional[float] = None) -> None:
        """
        Speak text aloud and return once playback has finished or was stopped.

        Args:
            text: Text to speak
            language: Optional language tag (e.g. "en-US")
            rate: Optional speed multiplier (1.0 = normal)
            pitch: Optional pitch multiplier (1.0 = normal)

        Raises:
            PlaybackFailure: If the audio device fails
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """Silence playback immediately."""
        pass

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the TTS engine."""
        pass

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'languages': ['en-US'],
            'rate_range': (0.1, 4.0),
            'pitch_range': (0.5, 2.0)
        }
