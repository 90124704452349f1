"""
Prompt construction for the response service.

Order is fixed: persona preamble, then recent memory, then the new utterance.
"""

from typing import Iterable

from ..models.data_models import ConversationTurn, TurnRole


DEFAULT_PERSONA = (
    "You are a warm, patient voice companion. You speak with the user out loud, "
    "so keep replies short, friendly and conversational: two or three sentences, "
    "no lists, no markdown. If the user asks you to remember something, "
    "acknowledge it clearly."
)

MEMORY_HEADER = "Here is what we talked about recently:"
NEW_INPUT_HEADER = "The user just said:"


def format_turn(turn: ConversationTurn) -> str:
    """Render one turn from the assistant's point of view."""
    if turn.role is TurnRole.USER:
        return f'User said: "{turn.text}"'
    return f'I responded: "{turn.text}"'


def build_prompt(persona: str, recent_turns: Iterable[ConversationTurn], user_text: str) -> str:
    """
    Combine persona, recent memory and the new utterance into one prompt.

    Args:
        persona: Fixed instruction preamble
        recent_turns: Most recent turns, oldest first
        user_text: The utterance to respond to

    Returns:
        Prompt text for the response service
    """
    sections = [persona.strip()]

    memory_lines = [format_turn(turn) for turn in recent_turns]
    if memory_lines:
        sections.append(MEMORY_HEADER + "\n" + "\n".join(memory_lines))

    sections.append(f'{NEW_INPUT_HEADER} "{user_text.strip()}"')
    return "\n\n".join(sections)
