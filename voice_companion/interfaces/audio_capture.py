"""
Abstract interface for microphone capture.
"""

from abc import ABC, abstractmethod
from ..models.data_models import CapturedAudio


class CaptureHandle(ABC):
    """
    A single-use open capture stream.

    `finalize()` stops recording and returns the audio; `release()` discards
    it. Both release the device. `release()` is idempotent and is safe to
    call after `finalize()`.
    """

    @abstractmethod
    async def finalize(self) -> CapturedAudio:
        """
        Stop recording, release the device and return what was captured.

        Raises:
            NoAudioProduced: If nothing was recorded
            CaptureUnavailable: If the handle was already finalized or released
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Stop recording and discard audio without raising."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True until the handle is finalized or released."""
        pass


class AudioCaptureInterface(ABC):
    """Abstract base class for capture devices."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the capture device.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def has_permission(self) -> bool:
        """Whether the microphone may be used."""
        pass

    @abstractmethod
    async def open(self) -> CaptureHandle:
        """
        Start recording.

        Raises:
            CaptureUnavailable: If the device cannot be opened
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the capture device."""
        pass

    @property
    def capabilities(self) -> dict:
        return {
            'audio_formats': ['wav'],
            'sample_rates': [16000],
            'channels': [1]
        }
