"""
Gemini transcription provider.

Sends one recorded utterance as inline base64 audio together with a
transcription instruction and returns the text of the first candidate.
"""

import base64
from typing import Any, Dict

from ...interfaces.transcription import TranscriptionInterface
from ...utils.error_handling import TranscriptionFailure
from ...utils.logging_config import get_logger
from ..base import GenerativeServiceProvider


DEFAULT_INSTRUCTION = (
    "Transcribe the speech in this audio recording exactly as spoken. "
    "Reply with the transcription only, without quotes or commentary."
)


class GeminiTranscriptionProvider(GenerativeServiceProvider, TranscriptionInterface):
    """
    Speech-to-text through the generateContent endpoint.

    Configuration options (in addition to the base options):
    - instruction: Prompt sent alongside the audio
    """

    failure_type = TranscriptionFailure

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self._component_name = "transcription"
        self.logger = get_logger(self._component_name)
        self.instruction = config.get('instruction') or DEFAULT_INSTRUCTION

    async def transcribe(self, audio_bytes: bytes, mime_type: str) -> str:
        if not audio_bytes:
            raise TranscriptionFailure("No audio to transcribe")

        parts = [
            {"text": self.instruction},
            {
                "inlineData": {
                    "mimeType": mime_type,
                    "data": base64.b64encode(audio_bytes).decode("ascii"),
                }
            },
        ]

        self.logger.info(f"📝 Transcribing {len(audio_bytes) / 1024:.1f} KB of {mime_type}")
        text = await self._generate_text(parts)
        self.logger.info(f"📝 Transcript: {text}")
        return text

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'batch': True,
            'languages': ['multilingual'],
            'audio_formats': ['wav', 'mp3', 'aac', 'ogg', 'flac'],
            'model': self.model
        }
