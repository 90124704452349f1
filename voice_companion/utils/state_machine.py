"""
Session state machine for the voice companion.
"""

from typing import Optional, Callable, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime

from ..models.data_models import SessionPhase, SessionState
from .logging_config import get_logger


logger = get_logger("state")

StateListener = Callable[[SessionState], None]


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: SessionState
    to_state: SessionState
    reason: Optional[str] = None
    forced: bool = False
    timestamp: float = field(default_factory=lambda: datetime.now().timestamp())


class SessionStateMachine:
    """
    Holds the single SessionState of a session and validates every change.

    Transitions are synchronous so that cancellation takes effect before
    any pending coroutine resumes.

    Features:
    - Validates state transitions
    - Forced reset to IDLE from any phase
    - State history tracking
    - Listener notification
    """

    def __init__(self, max_history: int = 200):
        self._state = SessionState()
        self._transition_history: List[StateTransition] = []
        self._max_history = max_history
        self._listeners: List[StateListener] = []

        self._valid_transitions = {
            SessionPhase.IDLE: [
                SessionPhase.LISTENING,
                SessionPhase.SPEAKING,     # direct speak(text)
            ],
            SessionPhase.LISTENING: [
                SessionPhase.TRANSCRIBING,
                SessionPhase.FAILED,       # no audio produced
                SessionPhase.IDLE,
            ],
            SessionPhase.TRANSCRIBING: [
                SessionPhase.THINKING,
                SessionPhase.FAILED,
                SessionPhase.IDLE,
            ],
            SessionPhase.THINKING: [
                SessionPhase.SPEAKING,
                SessionPhase.FAILED,
                SessionPhase.IDLE,         # nothing to say
            ],
            SessionPhase.SPEAKING: [
                SessionPhase.IDLE,
            ],
            SessionPhase.FAILED: [
                SessionPhase.IDLE,
            ],
        }

    @property
    def current_state(self) -> SessionState:
        return self._state

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def can_transition(self, target: SessionPhase) -> bool:
        return target in self._valid_transitions.get(self._state.phase, [])

    def transition_to(self, target: SessionPhase, reason: Optional[str] = None) -> SessionState:
        """
        Move to a new phase.

        Args:
            target: Desired phase
            reason: Why the phase changed; becomes the FAILED reason

        Returns:
            The new state

        Raises:
            ValueError: If the transition is not allowed from the current phase
        """
        if not self.can_transition(target):
            raise ValueError(
                f"Invalid transition: {self._state.phase.name} → {target.name}"
            )
        if target is SessionPhase.FAILED:
            new_state = SessionState.failed(reason or "Something went wrong")
        else:
            new_state = SessionState(target)
        return self._apply(new_state, reason, forced=False)

    def force_idle(self, reason: Optional[str] = None) -> SessionState:
        """
        Reset to IDLE from any phase. Safe to call multiple times.
        """
        if self._state.is_idle:
            return self._state
        logger.info(f"🚨 Forced reset: {self._state} → IDLE" + (f" ({reason})" if reason else ""))
        return self._apply(SessionState(), reason, forced=True)

    def _apply(self, new_state: SessionState, reason: Optional[str], forced: bool) -> SessionState:
        transition = StateTransition(
            from_state=self._state,
            to_state=new_state,
            reason=reason,
            forced=forced
        )
        self._transition_history.append(transition)
        if len(self._transition_history) > self._max_history:
            self._transition_history.pop(0)

        logger.info(f"🔄 State transition: {self._state} → {new_state}")
        self._state = new_state

        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception as e:
                logger.warning(f"State listener error: {e}")

        return new_state

    def get_transition_history(self, last_n: int = 10) -> List[StateTransition]:
        """Get recent transition history."""
        return self._transition_history[-last_n:]

    def get_phase_trail(self, last_n: int = 10) -> List[SessionPhase]:
        """Phases entered by the most recent transitions, oldest first."""
        return [t.to_state.phase for t in self.get_transition_history(last_n)]

    def get_status(self) -> Dict[str, Any]:
        return {
            'state': str(self._state),
            'history_size': len(self._transition_history),
            'last_transition': self._transition_history[-1] if self._transition_history else None
        }
