"""
Abstract interface for response/LLM providers.
"""

from abc import ABC, abstractmethod


class ResponseInterface(ABC):
    """Abstract base class for all response providers."""

    @abstractmethod
    async def initialize(self) -> bool:
        """
        Initialize the response provider.

        Returns:
            bool: True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate a reply for a fully built prompt. Exactly one attempt is made
        and nothing else is mutated.

        Args:
            prompt: Prompt text (persona, memory and new input)

        Returns:
            The reply text, never empty

        Raises:
            ResponseFailure: On a service error, network error or empty result
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources used by the response provider."""
        pass

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'batch': True,
            'tools': False,
            'models': []
        }
