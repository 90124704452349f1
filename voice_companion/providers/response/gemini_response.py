"""
Gemini response provider.
"""

from typing import Any, Dict

from ...interfaces.response import ResponseInterface
from ...utils.error_handling import ResponseFailure
from ...utils.logging_config import get_logger
from ..base import GenerativeServiceProvider


class GeminiResponseProvider(GenerativeServiceProvider, ResponseInterface):
    """Text generation through the generateContent endpoint."""

    failure_type = ResponseFailure

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self._component_name = "response"
        self.logger = get_logger(self._component_name)

    async def generate(self, prompt: str) -> str:
        if not prompt or not prompt.strip():
            raise ResponseFailure("Prompt is empty")

        self.logger.info(f"💭 Generating response ({len(prompt)} char prompt)")
        self.logger.debug(prompt)
        text = await self._generate_text([{"text": prompt}])
        self.logger.info(f"💬 Response: {text[:120]}{'...' if len(text) > 120 else ''}")
        return text

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'batch': True,
            'tools': False,
            'models': [self.model]
        }
