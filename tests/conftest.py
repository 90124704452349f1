"""
Pytest configuration and shared fixtures for voice companion tests.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from voice_companion.interfaces import (  # noqa: E402
    AudioCaptureInterface,
    CaptureHandle,
    ResponseInterface,
    TextToSpeechInterface,
    TranscriptionInterface,
)
from voice_companion.models.data_models import CapturedAudio  # noqa: E402
from voice_companion.providers.storage import InMemoryKeyValueStore  # noqa: E402
from voice_companion.session_controller import SessionController  # noqa: E402
from voice_companion.utils.error_handling import CaptureUnavailable, PersistenceFailure  # noqa: E402
from voice_companion.utils.persistent_memory import PersistentMemoryStore  # noqa: E402
from voice_companion.utils.speech_output import SpeechOutputController  # noqa: E402


FAKE_WAV = b"RIFF\x24\x00\x00\x00WAVEfmt fake-audio"


# =============================================================================
# Fakes
# =============================================================================

class FakeCaptureHandle(CaptureHandle):
    """Capture handle that returns canned audio, optionally after a gate opens."""

    def __init__(self, data: bytes = FAKE_WAV, error: Optional[Exception] = None,
                 gate: Optional[asyncio.Event] = None):
        self.data = data
        self.error = error
        self.gate = gate
        self.finalize_calls = 0
        self.release_calls = 0
        self._open = True

    async def finalize(self) -> CapturedAudio:
        self.finalize_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if not self._open:
            raise CaptureUnavailable("Capture already finalized or released")
        self._open = False
        if self.error is not None:
            raise self.error
        return CapturedAudio(data=self.data, duration=1.5)

    def release(self) -> None:
        self.release_calls += 1
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open


class FakeCaptureDevice(AudioCaptureInterface):
    """Capture device handing out FakeCaptureHandle instances."""

    def __init__(self, permission: bool = True, handle_factory: Optional[Callable[[], FakeCaptureHandle]] = None):
        self.permission = permission
        self.handle_factory = handle_factory or FakeCaptureHandle
        self.handles: List[FakeCaptureHandle] = []
        self.cleaned_up = False

    async def initialize(self) -> bool:
        return True

    async def has_permission(self) -> bool:
        return self.permission

    async def open(self) -> CaptureHandle:
        handle = self.handle_factory()
        self.handles.append(handle)
        return handle

    async def cleanup(self) -> None:
        self.cleaned_up = True

    @property
    def last_handle(self) -> Optional[FakeCaptureHandle]:
        return self.handles[-1] if self.handles else None


class ScriptedTranscriber(TranscriptionInterface):
    """Returns a fixed transcript or raises a fixed error."""

    def __init__(self, result: Any = "Hello there", gate: Optional[asyncio.Event] = None):
        self.result = result
        self.gate = gate
        self.calls: List[tuple] = []

    async def initialize(self) -> bool:
        return True

    async def transcribe(self, audio_bytes: bytes, mime_type: str) -> str:
        self.calls.append((audio_bytes, mime_type))
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(self.result, Exception):
            raise self.result
        return self.result

    async def cleanup(self) -> None:
        pass


class ScriptedResponder(ResponseInterface):
    """Returns queued replies in order (the last one repeats) or raises a fixed error."""

    def __init__(self, *results: Any, gate: Optional[asyncio.Event] = None):
        self.results = list(results) or ["Nice to hear from you."]
        self.gate = gate
        self.prompts: List[str] = []

    async def initialize(self) -> bool:
        return True

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        result = self.results[min(len(self.prompts), len(self.results)) - 1]
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(result, Exception):
            raise result
        return result

    async def cleanup(self) -> None:
        pass


class RecordingTTSEngine(TextToSpeechInterface):
    """
    Records what it was asked to say.

    With `hold=True` playback lasts until `stop()` or `finish()`.
    """

    def __init__(self, error: Optional[Exception] = None, hold: bool = False):
        self.error = error
        self.hold = hold
        self.spoken: List[dict] = []
        self.stop_calls = 0
        self._release: Optional[asyncio.Event] = None
        self._playing = False

    async def initialize(self) -> bool:
        return True

    async def speak(self, text, language=None, rate=None, pitch=None) -> None:
        self.spoken.append({'text': text, 'language': language, 'rate': rate, 'pitch': pitch})
        self._playing = True
        try:
            if self.error is not None:
                raise self.error
            if self.hold:
                self._release = asyncio.Event()
                await self._release.wait()
            else:
                await asyncio.sleep(0)
        finally:
            self._playing = False

    def finish(self) -> None:
        if self._release is not None:
            self._release.set()

    def stop(self) -> None:
        self.stop_calls += 1
        self.finish()

    @property
    def is_playing(self) -> bool:
        return self._playing

    async def cleanup(self) -> None:
        pass

    @property
    def texts(self) -> List[str]:
        return [entry['text'] for entry in self.spoken]


class FailingStore(InMemoryKeyValueStore):
    """Key-value store whose writes always fail."""

    def set(self, key: str, value: str) -> None:
        raise PersistenceFailure("disk full")


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until `predicate()` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not reached in time")
        await asyncio.sleep(0)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def project_root():
    """Return the project root path."""
    return PROJECT_ROOT


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def tts_engine():
    return RecordingTTSEngine()


@pytest.fixture
def make_controller(store, tts_engine):
    """
    Build a SessionController wired to fakes.

    Keyword arguments override individual collaborators.
    """
    def _make(capture=None, transcriber=None, responder=None, engine=None,
              kv_store=None, config=None) -> SessionController:
        engine = engine or tts_engine
        speech = SpeechOutputController(engine, {'language': 'en-US', 'rate': 1.0, 'pitch': 1.0})
        controller = SessionController(
            capture_device=capture or FakeCaptureDevice(),
            transcriber=transcriber or ScriptedTranscriber(),
            responder=responder or ScriptedResponder(),
            speech=speech,
            memory_store=PersistentMemoryStore(kv_store if kv_store is not None else store),
            config=config or {}
        )
        return controller
    return _make


def make_http_session(status: int = 200, payload: Any = None, text: str = "",
                      post_error: Optional[Exception] = None) -> MagicMock:
    """
    Mock aiohttp.ClientSession whose `post()` works as an async context manager.
    """
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)
    response.text = AsyncMock(return_value=text)

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    session.close = AsyncMock()
    if post_error is not None:
        session.post = MagicMock(side_effect=post_error)
    else:
        session.post = MagicMock(return_value=context)
    return session


def candidate_payload(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}
