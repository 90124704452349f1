"""
Session controller for the voice companion.

Sequences capture → transcription → response → speech for one session at
a time, owns the bounded conversation memory, and turns every failure of
an external call into a short FAILED phase followed by IDLE.

Every await inside a turn is followed by a turn-token check. `cancel()`
bumps the token synchronously, so a call that completes after a cancel
has its result discarded instead of being applied to a newer session.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from .interfaces import AudioCaptureInterface, CaptureHandle, TranscriptionInterface, ResponseInterface
from .models.data_models import (
    CapturedAudio,
    ConversationTurn,
    SessionPhase,
    SessionState,
    SpeechEvent,
    TurnRole,
)
from .utils.conversation_memory import ConversationMemory
from .utils.error_handling import (
    AlreadySpeaking,
    CaptureUnavailable,
    ErrorHandler,
    ErrorSeverity,
    NoAudioProduced,
    SessionStateError,
    TranscriptionFailure,
    safe_cleanup,
)
from .utils.logging_config import get_logger
from .utils.persistent_memory import PersistentMemoryStore
from .utils.prompt_builder import DEFAULT_PERSONA, build_prompt
from .utils.speech_output import SpeechOutputController
from .utils.state_machine import SessionStateMachine
from .utils.text_normalizer import normalize_for_speech


logger = get_logger("session")

MAX_TURNS = 10
CONTEXT_TURNS = 5

DEFAULT_MESSAGES = {
    'idle': "Press the button and start talking.",
    'listening': "Listening...",
    'transcribing': "Transcribing...",
    'thinking': "Thinking...",
    'speaking': "Speaking...",
    'transcription_failed': "Sorry, I couldn't understand that. Please try again.",
    'response_failed': "Sorry, I'm having trouble thinking right now. Please try again in a moment.",
    'no_audio': "I didn't hear anything. Please try again.",
    'capture_unavailable': "The microphone isn't available.",
    'nothing_to_say': "I don't have anything to say to that.",
    'playback_failed': "Sorry, I couldn't say that out loud.",
    'cancelled': "Cancelled.",
    'memory_cleared': "Memory cleared.",
}

StatusListener = Callable[[SessionState, str], None]
Confirmation = Callable[[], Union[bool, Awaitable[bool]]]


class SessionController:
    """
    Orchestrates one voice session at a time.

    Callers drive it only through `begin_capture`, `end_capture`, `cancel`,
    `speak`, `stop_speaking` and `clear_memory`; `state` and `status` are
    read-only.
    """

    def __init__(
        self,
        capture_device: AudioCaptureInterface,
        transcriber: TranscriptionInterface,
        responder: ResponseInterface,
        speech: SpeechOutputController,
        memory_store: PersistentMemoryStore,
        config: Optional[Dict[str, Any]] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        config = config or {}
        self.capture_device = capture_device
        self.transcriber = transcriber
        self.responder = responder
        self.speech = speech
        self.memory_store = memory_store
        self.error_handler = error_handler or ErrorHandler()

        self.context_turns = int(config.get('context_turns', CONTEXT_TURNS))
        self.persona = config.get('persona') or DEFAULT_PERSONA
        self.messages = {**DEFAULT_MESSAGES, **(config.get('messages') or {})}

        self.memory = ConversationMemory(int(config.get('max_turns', MAX_TURNS)))
        self.state_machine = SessionStateMachine()

        self._capture: Optional[CaptureHandle] = None
        self._opening = False
        self._turn_token = 0
        self._status = self.messages['idle']
        self._status_listeners: List[StatusListener] = []

    # ------------------------------------------------------------------
    # Read-only surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.state_machine.current_state

    @property
    def phase(self) -> SessionPhase:
        return self.state_machine.phase

    @property
    def status(self) -> str:
        return self._status

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._status_listeners:
            self._status_listeners.remove(listener)

    def memory_snapshot(self) -> List[ConversationTurn]:
        return self.memory.turns

    def get_status(self) -> Dict[str, Any]:
        """Get a snapshot of the session for display or debugging."""
        return {
            'state': str(self.state),
            'phase': self.phase.value,
            'status': self._status,
            'memory_turns': len(self.memory),
            'max_turns': self.memory.max_turns,
            'speaking': self.speech.is_speaking,
            'capture_open': self._capture is not None,
            'turn_token': self._turn_token,
            'recent_transitions': [
                f"{t.from_state} → {t.to_state}"
                for t in self.state_machine.get_transition_history(5)
            ],
            'errors': self.error_handler.get_error_summary(),
            'capabilities': {
                'capture': self.capture_device.capabilities,
                'transcription': self.transcriber.capabilities,
                'response': self.responder.capabilities,
                'tts': self.speech.engine.capabilities,
            },
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """Load remembered turns and initialize every collaborator."""
        self.memory.replace(self.memory_store.load())
        logger.info(f"🧠 Memory: {len(self.memory)}/{self.memory.max_turns} turns")

        components = [
            ('capture', self.capture_device),
            ('transcription', self.transcriber),
            ('response', self.responder),
            ('tts', self.speech),
        ]
        ready = True
        for name, component in components:
            try:
                ok = await component.initialize()
            except Exception as e:
                self.error_handler.record(name, ErrorSeverity.FATAL, "Initialization failed", e)
                ok = False
            if not ok:
                logger.error(f"❌ {name} failed to initialize")
                ready = False
        return ready

    async def cleanup(self) -> None:
        """Cancel any active session and release every collaborator."""
        self.cancel()
        await safe_cleanup(
            self.capture_device.cleanup,
            self.transcriber.cleanup,
            self.responder.cleanup,
            self.speech.cleanup,
        )
        logger.info("✅ Session controller cleaned up")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def begin_capture(self) -> None:
        """
        Open the microphone and move IDLE → LISTENING.

        Raises:
            CaptureUnavailable: If permission is missing, the device cannot
                be opened, or the session is not idle. State is unchanged.
        """
        if not self.state.is_idle or self._capture is not None or self._opening:
            raise CaptureUnavailable(f"Cannot start capturing while {self.state}")

        self._opening = True
        token = self._turn_token
        try:
            if not await self.capture_device.has_permission():
                raise CaptureUnavailable("Microphone permission not granted")
            handle = await self.capture_device.open()
        except CaptureUnavailable as e:
            self.error_handler.record("capture", ErrorSeverity.RECOVERABLE, e.message, e)
            self._set_status(self.messages['capture_unavailable'])
            raise
        except Exception as e:
            self.error_handler.record("capture", ErrorSeverity.RECOVERABLE, "Could not open the microphone", e)
            self._set_status(self.messages['capture_unavailable'])
            raise CaptureUnavailable("Could not open the microphone", cause=e) from e
        finally:
            self._opening = False

        if token != self._turn_token:
            handle.release()
            raise CaptureUnavailable("Capture was cancelled while opening")

        self._turn_token += 1
        self._capture = handle
        self._transition(SessionPhase.LISTENING)

    async def end_capture(self) -> None:
        """
        Stop capturing and run the rest of the turn.

        Returns once the session is back to IDLE, or as soon as the turn
        notices it was cancelled.

        Raises:
            SessionStateError: If the session is not LISTENING
        """
        if self.phase is not SessionPhase.LISTENING or self._capture is None:
            raise SessionStateError(f"Cannot stop capturing while {self.state}")

        token = self._turn_token
        handle = self._capture
        self._transition(SessionPhase.TRANSCRIBING)

        try:
            audio = await handle.finalize()
        except Exception as e:
            if self._is_stale(token, "capture"):
                return
            no_audio = isinstance(e, NoAudioProduced)
            self.error_handler.record(
                "capture",
                ErrorSeverity.WARNING if no_audio else ErrorSeverity.RECOVERABLE,
                "No audio produced" if no_audio else "Capture failed",
                e
            )
            self._fail(self.messages['no_audio'] if no_audio else self.messages['capture_unavailable'])
            return
        finally:
            handle.release()
            if self._capture is handle:
                self._capture = None

        if self._is_stale(token, "capture"):
            return

        try:
            await self._run_turn(token, audio)
        except asyncio.CancelledError:
            if not self._is_stale(token, "turn"):
                self.cancel()
            raise
        except Exception as e:
            self.error_handler.record("session", ErrorSeverity.RECOVERABLE, "Unexpected error during turn", e)
            if not self._is_stale(token, "turn"):
                self.speech.stop()
                self._set_status(self.messages['response_failed'])
                self.state_machine.force_idle("unexpected error")
                self._notify()

    def cancel(self) -> bool:
        """
        Abandon the session in progress and return to IDLE immediately.

        Releases any open capture, silences speech, and makes every
        in-flight call's result stale.

        Returns:
            True if there was anything to cancel
        """
        self._turn_token += 1
        handle = self._capture
        self._capture = None
        if handle is not None:
            handle.release()
        self.speech.stop()

        if self.state.is_idle and handle is None and not self._opening:
            return False

        logger.info(f"⛔ Cancelled session in {self.state}")
        self._status = self.messages['cancelled']
        self.state_machine.force_idle("cancelled")
        self._notify()
        return True

    async def speak(self, text: str) -> SpeechEvent:
        """
        Speak arbitrary text outside a conversational turn. Nothing is remembered.

        Raises:
            AlreadySpeaking: If speech is already playing
            SessionStateError: If the session is not IDLE
        """
        if self.speech.is_speaking:
            raise AlreadySpeaking("An utterance is already playing")
        if not self.state.is_idle or self._capture is not None or self._opening:
            raise SessionStateError(f"Cannot speak while {self.state}")

        spoken = normalize_for_speech(text)
        if not spoken:
            self._set_status(self.messages['nothing_to_say'])
            return SpeechEvent.COMPLETED

        self._turn_token += 1
        token = self._turn_token
        self._transition(SessionPhase.SPEAKING)
        event = await self.speech.speak(spoken)
        if self._is_stale(token, "speech"):
            return event
        self._finish_speaking(event)
        return event

    def stop_speaking(self) -> bool:
        """Silence speech; the session then returns to IDLE normally."""
        return self.speech.stop()

    async def clear_memory(self, confirm: Confirmation) -> bool:
        """
        Erase remembered turns after the caller confirms.

        Args:
            confirm: Sync or async callable returning True to proceed

        Returns:
            True if memory was cleared

        Raises:
            SessionStateError: If the session is not IDLE
        """
        self._require_quiet_idle("clear memory")

        answer = confirm()
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            logger.info("Memory clear declined")
            return False

        self._require_quiet_idle("clear memory")
        self.memory.clear()
        if not self.memory_store.clear():
            self.error_handler.record(
                "memory", ErrorSeverity.WARNING, "Could not erase persisted memory",
                self.memory_store.last_error
            )
        self._set_status(self.messages['memory_cleared'])
        return True

    # ------------------------------------------------------------------
    # Turn pipeline
    # ------------------------------------------------------------------

    async def _run_turn(self, token: int, audio: CapturedAudio) -> None:
        # Transcription
        try:
            text = (await self.transcriber.transcribe(audio.data, audio.mime_type)).strip()
            if not text:
                raise TranscriptionFailure("Transcription was empty")
        except Exception as e:
            if self._is_stale(token, "transcription"):
                return
            self.error_handler.record(
                "transcription", ErrorSeverity.RECOVERABLE, "Transcription failed", e,
                audio_kb=round(audio.get_size_kb(), 1)
            )
            self._fail(self.messages['transcription_failed'])
            return

        if self._is_stale(token, "transcription"):
            return

        logger.info(f"📝 User said: {text}")
        context = self.memory.recent(self.context_turns)
        self._remember(TurnRole.USER, text)
        self._transition(SessionPhase.THINKING)

        # Response
        prompt = build_prompt(self.persona, context, text)
        try:
            reply = await self.responder.generate(prompt)
        except Exception as e:
            if self._is_stale(token, "response"):
                return
            self.error_handler.record("response", ErrorSeverity.RECOVERABLE, "Response generation failed", e)
            await self._voice_apology(token, self.messages['response_failed'])
            return

        if self._is_stale(token, "response"):
            return

        logger.info(f"💬 Reply: {reply[:80]}{'...' if len(reply) > 80 else ''}")
        self._remember(TurnRole.ASSISTANT, reply)
        self._persist()

        # Speech
        spoken = normalize_for_speech(reply)
        if not spoken:
            self._transition(SessionPhase.IDLE, status=self.messages['nothing_to_say'], reason="nothing to say")
            return

        self._transition(SessionPhase.SPEAKING)
        event = await self.speech.speak(spoken)
        if self._is_stale(token, "speech"):
            return
        self._finish_speaking(event)

    async def _voice_apology(self, token: int, apology: str) -> None:
        self._transition(SessionPhase.FAILED, status=apology, reason=apology)
        try:
            await self.speech.speak(apology)
        except AlreadySpeaking as e:
            self.error_handler.record("tts", ErrorSeverity.WARNING, "Could not voice apology", e)
        if self._is_stale(token, "apology"):
            return
        self._transition(SessionPhase.IDLE, status=apology)

    def _finish_speaking(self, event: SpeechEvent) -> None:
        if event is SpeechEvent.FAILED:
            self.error_handler.record(
                "tts", ErrorSeverity.RECOVERABLE, "Playback failed", self.speech.last_error
            )
            self._transition(SessionPhase.IDLE, status=self.messages['playback_failed'], reason="playback failed")
        else:
            self._transition(SessionPhase.IDLE)

    def _fail(self, message: str) -> None:
        """FAILED(message) then straight back to IDLE, keeping the message visible."""
        self._transition(SessionPhase.FAILED, status=message, reason=message)
        self._transition(SessionPhase.IDLE, status=message)

    def _remember(self, role: TurnRole, text: str) -> None:
        evicted = self.memory.append(ConversationTurn(role=role, text=text))
        if evicted is not None:
            logger.debug(f"Evicted oldest turn: {evicted}")

    def _persist(self) -> None:
        if not self.memory_store.save(self.memory.turns):
            self.error_handler.record(
                "memory", ErrorSeverity.WARNING,
                "Could not persist conversation memory; continuing in memory only",
                self.memory_store.last_error
            )

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _is_stale(self, token: int, step: str) -> bool:
        if token == self._turn_token:
            return False
        logger.info(f"🗑️  Discarding stale {step} result")
        return True

    def _require_quiet_idle(self, action: str) -> None:
        if not self.state.is_idle or self._capture is not None or self._opening or self.speech.is_speaking:
            raise SessionStateError(f"Cannot {action} while {self.state}")

    def _transition(self, phase: SessionPhase, status: Optional[str] = None, reason: Optional[str] = None) -> None:
        self.state_machine.transition_to(phase, reason)
        self._status = status if status is not None else self.messages[phase.value]
        self._notify()

    def _set_status(self, status: str) -> None:
        self._status = status
        self._notify()

    def _notify(self) -> None:
        state, status = self.state, self._status
        for listener in list(self._status_listeners):
            try:
                listener(state, status)
            except Exception as e:
                logger.warning(f"Status listener error: {e}")
