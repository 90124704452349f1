"""
Response provider implementations.
"""

from .gemini_response import GeminiResponseProvider

__all__ = ['GeminiResponseProvider']
