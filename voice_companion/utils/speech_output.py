"""
Speech output controller.

Wraps a text-to-speech engine so that at most one utterance plays at a
time and every utterance ends in exactly one COMPLETED or FAILED event.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from ..interfaces.text_to_speech import TextToSpeechInterface
from ..models.data_models import SpeechEvent
from .error_handling import AlreadySpeaking, PlaybackFailure
from .logging_config import get_logger


logger = get_logger("speech")

SpeechListener = Callable[[SpeechEvent, str], None]

DEFAULT_LANGUAGE = "en-US"
DEFAULT_RATE = 1.0
DEFAULT_PITCH = 1.0


class SpeechOutputController:
    """
    Plays one utterance at a time through a TTS engine.

    `stop()` silences playback immediately; the interrupted utterance still
    finishes with COMPLETED, since a requested stop is not an error.
    """

    def __init__(self, engine: TextToSpeechInterface, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.engine = engine
        self.language = config.get('language', DEFAULT_LANGUAGE)
        self.rate = float(config.get('rate', DEFAULT_RATE))
        self.pitch = float(config.get('pitch', DEFAULT_PITCH))

        self._task: Optional[asyncio.Task] = None
        self._stop_requested = False
        self._listeners: List[SpeechListener] = []
        self.last_error: Optional[PlaybackFailure] = None

    async def initialize(self) -> bool:
        return await self.engine.initialize()

    def add_listener(self, listener: SpeechListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SpeechListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: SpeechEvent, text: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, text)
            except Exception as e:
                logger.warning(f"Speech listener error: {e}")

    def _within(self, capability: str, value: float) -> float:
        """Clamp an option into the range the engine reports."""
        bounds = self.engine.capabilities.get(capability)
        if not bounds:
            return value
        low, high = bounds
        clamped = min(max(value, low), high)
        if clamped != value:
            logger.debug(f"{capability}: {value} clamped to {clamped}")
        return clamped

    @property
    def is_speaking(self) -> bool:
        return self._task is not None and not self._task.done()

    async def speak(self, text: str, rate: Optional[float] = None, pitch: Optional[float] = None) -> SpeechEvent:
        """
        Speak `text` and wait until playback ends.

        Returns:
            SpeechEvent.COMPLETED when playback finished or was stopped,
            SpeechEvent.FAILED when the engine failed (see `last_error`)

        Raises:
            AlreadySpeaking: If another utterance is still playing
        """
        if self.is_speaking:
            raise AlreadySpeaking("An utterance is already playing")

        self._stop_requested = False
        self.last_error = None
        task = asyncio.create_task(self.engine.speak(
            text,
            language=self.language,
            rate=self._within('rate_range', self.rate if rate is None else rate),
            pitch=self._within('pitch_range', self.pitch if pitch is None else pitch)
        ))
        self._task = task
        logger.info(f"🔊 Speaking: {text[:60]}{'...' if len(text) > 60 else ''}")
        self._emit(SpeechEvent.STARTED, text)

        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            self.stop()
            raise
        finally:
            if self._task is task:
                self._task = None

        if self._stop_requested or task.cancelled():
            logger.info("🔇 Speech stopped")
            self._emit(SpeechEvent.COMPLETED, text)
            return SpeechEvent.COMPLETED

        error = task.exception()
        if error is not None:
            self.last_error = error if isinstance(error, PlaybackFailure) else PlaybackFailure(
                "Speech playback failed", cause=error
            )
            logger.error(f"Speech playback failed: {error}")
            self._emit(SpeechEvent.FAILED, text)
            return SpeechEvent.FAILED

        logger.debug("Speech completed")
        self._emit(SpeechEvent.COMPLETED, text)
        return SpeechEvent.COMPLETED

    def stop(self) -> bool:
        """
        Silence the current utterance.

        Returns:
            True if something was playing
        """
        task = self._task
        if task is None or task.done():
            return False

        self._stop_requested = True
        try:
            self.engine.stop()
        except Exception as e:
            logger.warning(f"Engine stop error: {e}")
        task.cancel()
        return True

    async def cleanup(self) -> None:
        self.stop()
        await self.engine.cleanup()
