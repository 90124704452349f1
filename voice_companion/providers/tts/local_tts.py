"""
Local Text-to-Speech engine using pyttsx3.
Offline TTS with immediate stop support.
"""

import asyncio
import platform
import subprocess
import threading
from typing import Optional, Dict, Any

try:
    import pyttsx3
except ImportError:
    pyttsx3 = None

from ...interfaces.text_to_speech import TextToSpeechInterface
from ...utils.error_handling import PlaybackFailure
from ...utils.logging_config import get_logger


logger = get_logger("tts")


class LocalTTSProvider(TextToSpeechInterface):
    """
    Local TTS implementation using pyttsx3, or the `say` command on macOS.

    Features:
    - No API calls, works offline
    - Blocking playback runs in an executor thread
    - `stop()` silences the active utterance from any thread
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Args:
            config: Configuration dictionary containing:
                - base_rate: Words per minute at rate 1.0 (default: 175)
                - volume: Volume 0.0-1.0 (default: 0.9)
                - voice_id: System voice index, overrides language matching
                - use_system_say: Use macOS `say` (default: True on macOS)
        """
        self.use_macos_say = config.get('use_system_say', platform.system() == 'Darwin')
        if not self.use_macos_say and pyttsx3 is None:
            raise ImportError("pyttsx3 not installed and not on macOS. Run: pip install pyttsx3")

        self.base_rate = int(config.get('base_rate', 175))
        self.volume = float(config.get('volume', 0.9))
        self.voice_id: Optional[int] = config.get('voice_id')

        self._lock = threading.Lock()
        self._engine = None
        self._say_process: Optional[subprocess.Popen] = None
        self._stop_requested = threading.Event()
        self._is_playing = False

    async def initialize(self) -> bool:
        # pyttsx3 engines are created per utterance inside the playback thread;
        # macOS NSSpeechSynthesizer does not work across threads.
        if self.use_macos_say:
            logger.info("✅ Local TTS initialized (using macOS 'say' command)")
        else:
            logger.info("✅ Local TTS initialized (engine will be created on first use)")
        return True

    def _words_per_minute(self, rate: Optional[float]) -> int:
        multiplier = rate if rate is not None else 1.0
        return max(40, int(self.base_rate * multiplier))

    async def speak(self,
                    text: str,
                    language: Optional[str] = None,
                    rate: Optional[float] = None,
                    pitch: Optional[float] = None) -> None:
        if not text:
            return

        self._stop_requested.clear()
        self._is_playing = True
        wpm = self._words_per_minute(rate)
        if pitch is not None and pitch != 1.0:
            logger.debug(f"Pitch {pitch} requested; local engines ignore pitch")

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._play_blocking, text, language, wpm)
        except PlaybackFailure:
            raise
        except Exception as e:
            raise PlaybackFailure("Local speech playback failed", cause=e) from e
        finally:
            self._is_playing = False

    def _play_blocking(self, text: str, language: Optional[str], wpm: int) -> None:
        """Speak synchronously. Runs in an executor thread."""
        word_count = len(text.split())
        logger.info(f"🔊 Speaking {word_count} words at {wpm} wpm")

        if self.use_macos_say:
            self._play_with_say(text, wpm)
            return

        engine = pyttsx3.init()
        with self._lock:
            self._engine = engine
        try:
            self._select_voice(engine, language)
            engine.setProperty('rate', wpm)
            engine.setProperty('volume', self.volume)
            if self._stop_requested.is_set():
                return
            engine.say(text)
            engine.runAndWait()
        finally:
            with self._lock:
                self._engine = None
            del engine

    def _play_with_say(self, text: str, wpm: int) -> None:
        try:
            process = subprocess.Popen(
                ['say', '-r', str(wpm), text],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE
            )
        except OSError as e:
            raise PlaybackFailure("Could not start macOS 'say'", cause=e) from e

        with self._lock:
            self._say_process = process
        try:
            _, stderr = process.communicate()
        finally:
            with self._lock:
                self._say_process = None

        if process.returncode != 0 and not self._stop_requested.is_set():
            detail = (stderr or b"").decode(errors="replace").strip()
            raise PlaybackFailure(f"'say' exited with code {process.returncode}", cause=detail or None)

    def _select_voice(self, engine, language: Optional[str]) -> None:
        voices = engine.getProperty('voices') or []
        if not voices:
            return

        if self.voice_id is not None:
            if 0 <= self.voice_id < len(voices):
                engine.setProperty('voice', voices[self.voice_id].id)
            else:
                logger.warning(f"Invalid voice_id {self.voice_id} (available: 0-{len(voices) - 1})")
            return

        if not language:
            return
        wanted = language.lower().replace('-', '_')
        prefix = wanted.split('_')[0]
        for voice in voices:
            langs = [
                (lang.decode(errors='ignore') if isinstance(lang, bytes) else str(lang)).lower().replace('-', '_')
                for lang in (getattr(voice, 'languages', None) or [])
            ]
            voice_id = str(getattr(voice, 'id', '')).lower()
            if any(lang.lstrip('\x05').startswith(wanted) for lang in langs) or wanted in voice_id:
                engine.setProperty('voice', voice.id)
                return
        for voice in voices:
            langs = [str(lang).lower() for lang in (getattr(voice, 'languages', None) or [])]
            if any(prefix in lang for lang in langs):
                engine.setProperty('voice', voice.id)
                return

    def stop(self) -> None:
        """Stop audio playback immediately."""
        self._stop_requested.set()
        with self._lock:
            process = self._say_process
            engine = self._engine

        if process is not None and process.poll() is None:
            try:
                process.terminate()
            except OSError as e:
                logger.warning(f"Error stopping 'say': {e}")

        if engine is not None:
            try:
                engine.stop()
            except Exception as e:
                logger.warning(f"Error stopping pyttsx3: {e}")

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    async def cleanup(self) -> None:
        if self._is_playing:
            self.stop()

    @property
    def capabilities(self) -> dict:
        return {
            'streaming': False,
            'languages': ['system'],
            'rate_range': (0.1, 4.0),
            'pitch_range': (1.0, 1.0),
            'engine': 'macos_say' if self.use_macos_say else 'pyttsx3'
        }
