"""
Text-to-speech engine implementations.
"""

from .local_tts import LocalTTSProvider

__all__ = ['LocalTTSProvider']
