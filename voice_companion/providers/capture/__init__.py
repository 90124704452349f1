"""
Microphone capture implementations.
"""

from .sounddevice_capture import SoundDeviceCaptureProvider, SoundDeviceCaptureHandle, frames_to_wav

__all__ = ['SoundDeviceCaptureProvider', 'SoundDeviceCaptureHandle', 'frames_to_wav']
