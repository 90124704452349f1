"""
Tests for the SessionController turn pipeline.

Covers the happy path, every failure branch, cancellation with stale
results, memory bounds and persistence, and the direct speech operations.
"""

import asyncio

import pytest

from conftest import (
    FailingStore,
    FakeCaptureDevice,
    FakeCaptureHandle,
    RecordingTTSEngine,
    ScriptedResponder,
    ScriptedTranscriber,
    candidate_payload,
    make_http_session,
    wait_until,
)
from voice_companion.models.data_models import SessionPhase, SpeechEvent, TurnRole
from voice_companion.providers.transcription import GeminiTranscriptionProvider
from voice_companion.session_controller import DEFAULT_MESSAGES, SessionController
from voice_companion.utils.error_handling import (
    AlreadySpeaking,
    CaptureUnavailable,
    ErrorSeverity,
    NoAudioProduced,
    PlaybackFailure,
    ResponseFailure,
    SessionStateError,
    TranscriptionFailure,
)
from voice_companion.utils.persistent_memory import PersistentMemoryStore

P = SessionPhase


async def run_turn(controller: SessionController) -> None:
    await controller.begin_capture()
    await controller.end_capture()


class TestHappyPath:
    """A full successful turn."""

    @pytest.mark.asyncio
    async def test_reminder_scenario(self, make_controller, store, tts_engine):
        responder = ScriptedResponder("I'll remember that! **5pm** pills.")
        controller = make_controller(
            transcriber=ScriptedTranscriber("Remind me to take my pills at 5pm"),
            responder=responder,
        )

        await run_turn(controller)

        turns = controller.memory_snapshot()
        assert [t.role for t in turns] == [TurnRole.USER, TurnRole.ASSISTANT]
        assert turns[0].text == "Remind me to take my pills at 5pm"
        assert turns[1].text == "I'll remember that! **5pm** pills."
        assert controller.phase is P.IDLE

        persisted = PersistentMemoryStore(store).load()
        assert [(t.role, t.text) for t in persisted] == [(t.role, t.text) for t in turns]

        assert tts_engine.texts == ["I'll remember that! 5pm pills."]

    @pytest.mark.asyncio
    async def test_phase_sequence(self, make_controller):
        controller = make_controller()

        await run_turn(controller)

        assert controller.state_machine.get_phase_trail() == [
            P.LISTENING, P.TRANSCRIBING, P.THINKING, P.SPEAKING, P.IDLE
        ]
        assert controller.status == DEFAULT_MESSAGES['idle']

    @pytest.mark.asyncio
    async def test_capture_released_and_audio_forwarded(self, make_controller):
        capture = FakeCaptureDevice()
        transcriber = ScriptedTranscriber()
        controller = make_controller(capture=capture, transcriber=transcriber)

        await run_turn(controller)

        handle = capture.last_handle
        assert handle.finalize_calls == 1
        assert handle.release_calls >= 1
        assert not handle.is_open
        assert transcriber.calls == [(handle.data, "audio/wav")]

    @pytest.mark.asyncio
    async def test_speech_uses_configured_options(self, make_controller, tts_engine):
        controller = make_controller()

        await run_turn(controller)

        assert tts_engine.spoken[0]['language'] == 'en-US'
        assert tts_engine.spoken[0]['rate'] == 1.0
        assert tts_engine.spoken[0]['pitch'] == 1.0

    @pytest.mark.asyncio
    async def test_prompt_carries_previous_exchange_once(self, make_controller):
        responder = ScriptedResponder("First reply", "Second reply")
        transcriber = ScriptedTranscriber("first question")
        controller = make_controller(transcriber=transcriber, responder=responder)

        await run_turn(controller)
        transcriber.result = "second question"
        await run_turn(controller)

        first_prompt, second_prompt = responder.prompts
        assert "User said" not in first_prompt
        assert 'User said: "first question"' in second_prompt
        assert 'I responded: "First reply"' in second_prompt
        assert second_prompt.count("second question") == 1
        assert second_prompt.index("first question") < second_prompt.index("second question")

    @pytest.mark.asyncio
    async def test_status_listener_sees_every_change(self, make_controller):
        controller = make_controller()
        seen = []
        controller.add_status_listener(lambda state, status: seen.append((state.phase, status)))

        await run_turn(controller)

        assert [phase for phase, _ in seen] == [
            P.LISTENING, P.TRANSCRIBING, P.THINKING, P.SPEAKING, P.IDLE
        ]
        assert seen[1][1] == DEFAULT_MESSAGES['transcribing']

    def test_state_and_status_are_read_only(self, make_controller):
        controller = make_controller()

        with pytest.raises(AttributeError):
            controller.state = None
        with pytest.raises(AttributeError):
            controller.status = "hacked"


class TestTranscriptionFailure:
    """TRANSCRIBING → FAILED → IDLE without touching memory."""

    @pytest.mark.asyncio
    async def test_http_500_from_service(self, make_controller, store):
        provider = GeminiTranscriptionProvider({'api_key': 'test-key-1234567890'})
        provider._session = make_http_session(status=500, text="internal error")
        controller = make_controller(transcriber=provider)

        await run_turn(controller)

        trail = controller.state_machine.get_phase_trail()
        assert trail[-3:] == [P.TRANSCRIBING, P.FAILED, P.IDLE]
        assert len(controller.memory) == 0
        assert store.write_count == 0

        errors = controller.error_handler.get_error_history("transcription")
        assert isinstance(errors[-1].exception, TranscriptionFailure)
        assert errors[-1].exception.status == 500

    @pytest.mark.asyncio
    async def test_failure_is_not_spoken(self, make_controller, tts_engine):
        controller = make_controller(transcriber=ScriptedTranscriber(TranscriptionFailure("boom")))

        await run_turn(controller)

        assert tts_engine.spoken == []
        assert controller.status == DEFAULT_MESSAGES['transcription_failed']
        history = controller.state_machine.get_transition_history()
        failed = [t.to_state for t in history if t.to_state.phase is P.FAILED]
        assert failed[0].reason == DEFAULT_MESSAGES['transcription_failed']

    @pytest.mark.asyncio
    async def test_blank_transcript_counts_as_failure(self, make_controller):
        controller = make_controller(transcriber=ScriptedTranscriber("   "))

        await run_turn(controller)

        assert P.FAILED in controller.state_machine.get_phase_trail()
        assert len(controller.memory) == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, make_controller):
        controller = make_controller(transcriber=ScriptedTranscriber(RuntimeError("driver crashed")))

        await run_turn(controller)

        assert controller.phase is P.IDLE
        assert len(controller.memory) == 0


class TestResponseFailure:
    """THINKING → FAILED speaks an apology and appends nothing."""

    @pytest.mark.asyncio
    async def test_apology_spoken_and_not_remembered(self, make_controller, store, tts_engine):
        controller = make_controller(responder=ScriptedResponder(ResponseFailure("HTTP 503", status=503)))
        lengths = []
        controller.state_machine.add_listener(lambda state: lengths.append((state.phase, len(controller.memory))))

        await run_turn(controller)

        apology = DEFAULT_MESSAGES['response_failed']
        assert tts_engine.texts == [apology]
        assert controller.phase is P.IDLE
        assert controller.status == apology

        # Memory length is the same entering THINKING and leaving FAILED
        thinking = next(n for phase, n in lengths if phase is P.THINKING)
        after_failed = lengths[-1][1]
        assert thinking == after_failed == 1
        assert [t.role for t in controller.memory_snapshot()] == [TurnRole.USER]
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_apology_plays_while_failed(self, make_controller):
        engine = RecordingTTSEngine(hold=True)
        controller = make_controller(engine=engine, responder=ScriptedResponder(ResponseFailure("down")))

        await controller.begin_capture()
        turn = asyncio.create_task(controller.end_capture())
        await wait_until(lambda: engine.is_playing)

        assert controller.phase is P.FAILED
        assert controller.state.reason == DEFAULT_MESSAGES['response_failed']

        engine.finish()
        await turn
        assert controller.phase is P.IDLE


class TestCancellation:
    """cancel() wins over any result that arrives later."""

    @pytest.mark.asyncio
    async def test_cancel_during_thinking_discards_late_response(self, make_controller, store, tts_engine):
        gate = asyncio.Event()
        responder = ScriptedResponder("Too late!", gate=gate)
        controller = make_controller(responder=responder)

        await controller.begin_capture()
        turn = asyncio.create_task(controller.end_capture())
        await wait_until(lambda: responder.prompts)
        assert controller.phase is P.THINKING

        assert controller.cancel() is True
        assert controller.phase is P.IDLE
        assert controller.status == DEFAULT_MESSAGES['cancelled']
        last = controller.state_machine.get_transition_history(1)[0]
        assert last.forced is True
        assert last.reason == "cancelled"

        gate.set()
        await turn

        assert controller.phase is P.IDLE
        assert all(t.role is TurnRole.USER for t in controller.memory_snapshot())
        assert tts_engine.spoken == []
        assert store.write_count == 0

    @pytest.mark.asyncio
    async def test_cancel_during_transcribing(self, make_controller):
        gate = asyncio.Event()
        transcriber = ScriptedTranscriber("never used", gate=gate)
        controller = make_controller(transcriber=transcriber)

        await controller.begin_capture()
        turn = asyncio.create_task(controller.end_capture())
        await wait_until(lambda: transcriber.calls)

        controller.cancel()
        gate.set()
        await turn

        assert controller.phase is P.IDLE
        assert len(controller.memory) == 0

    @pytest.mark.asyncio
    async def test_cancel_while_listening_releases_capture(self, make_controller):
        capture = FakeCaptureDevice()
        controller = make_controller(capture=capture)

        await controller.begin_capture()
        assert controller.phase is P.LISTENING

        assert controller.cancel() is True
        assert controller.phase is P.IDLE
        assert capture.last_handle.release_calls == 1
        assert not capture.last_handle.is_open

        with pytest.raises(SessionStateError):
            await controller.end_capture()

    @pytest.mark.asyncio
    async def test_cancel_while_finalizing(self, make_controller):
        gate = asyncio.Event()
        capture = FakeCaptureDevice(handle_factory=lambda: FakeCaptureHandle(gate=gate))
        transcriber = ScriptedTranscriber()
        controller = make_controller(capture=capture, transcriber=transcriber)

        await controller.begin_capture()
        turn = asyncio.create_task(controller.end_capture())
        await wait_until(lambda: capture.last_handle.finalize_calls == 1)

        controller.cancel()
        gate.set()
        await turn

        assert controller.phase is P.IDLE
        assert transcriber.calls == []
        assert not capture.last_handle.is_open

    @pytest.mark.asyncio
    async def test_cancel_during_speaking_silences(self, make_controller):
        engine = RecordingTTSEngine(hold=True)
        controller = make_controller(engine=engine)

        await controller.begin_capture()
        turn = asyncio.create_task(controller.end_capture())
        await wait_until(lambda: engine.is_playing)
        assert controller.phase is P.SPEAKING

        controller.cancel()
        assert controller.phase is P.IDLE
        await turn

        assert engine.stop_calls >= 1
        assert controller.phase is P.IDLE
        # The reply was committed before speaking began
        assert len(controller.memory) == 2

    @pytest.mark.asyncio
    async def test_new_session_after_cancel_is_not_disturbed(self, make_controller):
        gate = asyncio.Event()
        responder = ScriptedResponder("stale reply", "fresh reply", gate=gate)
        controller = make_controller(responder=responder)

        await controller.begin_capture()
        stale_turn = asyncio.create_task(controller.end_capture())
        await wait_until(lambda: responder.prompts)
        controller.cancel()

        await controller.begin_capture()
        assert controller.phase is P.LISTENING
        gate.set()
        await stale_turn
        assert controller.phase is P.LISTENING

        await controller.end_capture()
        assistant = [t.text for t in controller.memory_snapshot() if t.role is TurnRole.ASSISTANT]
        assert assistant == ["fresh reply"]

    def test_cancel_when_idle_is_a_no_op(self, make_controller):
        controller = make_controller()

        assert controller.cancel() is False
        assert controller.phase is P.IDLE


class TestCapture:
    """begin_capture / end_capture edge cases."""

    @pytest.mark.asyncio
    async def test_permission_denied(self, make_controller):
        capture = FakeCaptureDevice(permission=False)
        controller = make_controller(capture=capture)

        with pytest.raises(CaptureUnavailable):
            await controller.begin_capture()

        assert controller.phase is P.IDLE
        assert capture.handles == []
        assert controller.state_machine.get_transition_history() == []

    @pytest.mark.asyncio
    async def test_second_begin_fails_fast(self, make_controller):
        capture = FakeCaptureDevice()
        controller = make_controller(capture=capture)

        await controller.begin_capture()
        with pytest.raises(CaptureUnavailable):
            await controller.begin_capture()

        assert len(capture.handles) == 1
        assert controller.phase is P.LISTENING

    @pytest.mark.asyncio
    async def test_no_audio_produced(self, make_controller):
        capture = FakeCaptureDevice(
            handle_factory=lambda: FakeCaptureHandle(error=NoAudioProduced("silence"))
        )
        transcriber = ScriptedTranscriber()
        controller = make_controller(capture=capture, transcriber=transcriber)

        await run_turn(controller)

        assert controller.state_machine.get_phase_trail()[-2:] == [P.FAILED, P.IDLE]
        assert controller.status == DEFAULT_MESSAGES['no_audio']
        assert transcriber.calls == []
        assert capture.last_handle.release_calls >= 1

    @pytest.mark.asyncio
    async def test_end_capture_requires_listening(self, make_controller):
        controller = make_controller()

        with pytest.raises(SessionStateError):
            await controller.end_capture()


class TestMemory:
    """Bounded memory and best-effort persistence through the controller."""

    @pytest.mark.asyncio
    async def test_memory_stays_bounded_and_fifo(self, make_controller, store):
        transcriber = ScriptedTranscriber()
        responder = ScriptedResponder(*[f"reply {i}" for i in range(8)])
        controller = make_controller(transcriber=transcriber, responder=responder)

        for i in range(8):
            transcriber.result = f"question {i}"
            await run_turn(controller)
            assert len(controller.memory) <= 10

        texts = [t.text for t in controller.memory_snapshot()]
        assert texts[0] == "question 3"
        assert texts[-1] == "reply 7"
        assert len(PersistentMemoryStore(store).load()) == 10

    @pytest.mark.asyncio
    async def test_persistence_failure_does_not_change_state(self, make_controller):
        controller = make_controller(kv_store=FailingStore())

        await run_turn(controller)

        assert controller.phase is P.IDLE
        assert len(controller.memory) == 2
        assert P.FAILED not in controller.state_machine.get_phase_trail()
        warning = controller.error_handler.get_error_history("memory")[-1]
        assert warning.severity is ErrorSeverity.WARNING

    @pytest.mark.asyncio
    async def test_initialize_loads_persisted_turns(self, make_controller, store):
        first = make_controller()
        await run_turn(first)

        second = make_controller()
        assert await second.initialize() is True
        assert [t.text for t in second.memory_snapshot()] == [t.text for t in first.memory_snapshot()]

    @pytest.mark.asyncio
    async def test_clear_memory_requires_confirmation(self, make_controller, store):
        controller = make_controller()
        await run_turn(controller)

        assert await controller.clear_memory(lambda: False) is False
        assert len(controller.memory) == 2

        async def confirm():
            return True

        assert await controller.clear_memory(confirm) is True
        assert len(controller.memory) == 0
        assert PersistentMemoryStore(store).load() == []
        assert controller.status == DEFAULT_MESSAGES['memory_cleared']

    @pytest.mark.asyncio
    async def test_clear_memory_rejected_mid_session(self, make_controller):
        controller = make_controller()
        await controller.begin_capture()

        with pytest.raises(SessionStateError):
            await controller.clear_memory(lambda: True)


class TestSpeech:
    """Reply normalization and direct speech operations."""

    @pytest.mark.asyncio
    async def test_reply_with_nothing_speakable(self, make_controller, tts_engine):
        controller = make_controller(responder=ScriptedResponder("** **"))

        await run_turn(controller)

        assert tts_engine.spoken == []
        assert controller.phase is P.IDLE
        assert controller.status == DEFAULT_MESSAGES['nothing_to_say']
        assert P.SPEAKING not in controller.state_machine.get_phase_trail()

    @pytest.mark.asyncio
    async def test_playback_failure_returns_to_idle(self, make_controller):
        engine = RecordingTTSEngine(error=PlaybackFailure("device unplugged"))
        controller = make_controller(engine=engine)

        await run_turn(controller)

        assert controller.phase is P.IDLE
        assert controller.status == DEFAULT_MESSAGES['playback_failed']
        assert len(controller.memory) == 2

    @pytest.mark.asyncio
    async def test_stop_speaking_finishes_turn_normally(self, make_controller):
        engine = RecordingTTSEngine(hold=True)
        controller = make_controller(engine=engine)

        await controller.begin_capture()
        turn = asyncio.create_task(controller.end_capture())
        await wait_until(lambda: engine.is_playing)

        assert controller.stop_speaking() is True
        await turn

        assert controller.phase is P.IDLE
        assert controller.status == DEFAULT_MESSAGES['idle']

    @pytest.mark.asyncio
    async def test_direct_speak(self, make_controller, tts_engine):
        controller = make_controller()

        event = await controller.speak("# Good *morning*")

        assert event is SpeechEvent.COMPLETED
        assert tts_engine.texts == ["Good morning"]
        assert controller.state_machine.get_phase_trail() == [P.SPEAKING, P.IDLE]
        assert len(controller.memory) == 0

    @pytest.mark.asyncio
    async def test_direct_speak_while_speaking(self, make_controller):
        engine = RecordingTTSEngine(hold=True)
        controller = make_controller(engine=engine)

        first = asyncio.create_task(controller.speak("one"))
        await wait_until(lambda: engine.is_playing)

        with pytest.raises(AlreadySpeaking):
            await controller.speak("two")

        engine.finish()
        await first
        assert engine.texts == ["one"]

    @pytest.mark.asyncio
    async def test_direct_speak_requires_idle(self, make_controller):
        controller = make_controller()
        await controller.begin_capture()

        with pytest.raises(SessionStateError):
            await controller.speak("hello")


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_cleanup_releases_everything(self, make_controller):
        capture = FakeCaptureDevice()
        controller = make_controller(capture=capture)
        await controller.begin_capture()

        await controller.cleanup()

        assert controller.phase is P.IDLE
        assert capture.cleaned_up
        assert not capture.last_handle.is_open

    @pytest.mark.asyncio
    async def test_get_status_snapshot(self, make_controller):
        controller = make_controller()
        await run_turn(controller)

        status = controller.get_status()

        assert status['state'] == "IDLE"
        assert status['memory_turns'] == 2
        assert status['max_turns'] == 10
        assert status['speaking'] is False
        assert status['capture_open'] is False
        assert status['recent_transitions'][-1] == "SPEAKING → IDLE"
        assert status['capabilities']['capture']['audio_formats'] == ['wav']
        assert status['capabilities']['tts']['pitch_range'] == (0.5, 2.0)
