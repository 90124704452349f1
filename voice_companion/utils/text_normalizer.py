"""
Speech-friendly text normalization.

Generated replies often carry markdown. Before they are spoken, emphasis,
headings, code spans, list bullets and link syntax are reduced to their
visible text and all whitespace is collapsed to single spaces.
"""

import re


_CODE_FENCE = re.compile(r"```[^\n`]*\n?")
_LINK = re.compile(r"!?\[([^\]]*)\]\([^)]*\)")
_HEADING = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+", re.MULTILINE)
_BLOCKQUOTE = re.compile(r"^[ \t]*>[ \t]?", re.MULTILINE)
# A leading "- 5" is a negative number, not a bullet
_BULLET = re.compile(r"^[ \t]*[-+*][ \t]+(?![ \t\d])", re.MULTILINE)
_EMPTY_EMPHASIS = re.compile(r"(?<!\*)(\*{1,3})[ \t]+\1(?!\*)")
_STRONG = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1", re.DOTALL)
_EMPHASIS_STAR = re.compile(r"\*(?=\S)(.+?)(?<=\S)\*", re.DOTALL)
_EMPHASIS_UNDERSCORE = re.compile(r"(?<!\w)_(?=\S)(.+?)(?<=\S)_(?!\w)", re.DOTALL)
_STRIKE = re.compile(r"~~(.+?)~~", re.DOTALL)
_STRAY_STARS = re.compile(r"\*{2,}")
_WHITESPACE = re.compile(r"\s+")


def _strip_once(text: str) -> str:
    text = _CODE_FENCE.sub(" ", text)
    text = text.replace("`", "")
    text = _LINK.sub(r"\1", text)
    text = _HEADING.sub("", text)
    text = _BLOCKQUOTE.sub("", text)
    text = _BULLET.sub("", text)
    text = _EMPTY_EMPHASIS.sub(" ", text)
    text = _STRONG.sub(r"\2", text)
    text = _STRIKE.sub(r"\1", text)
    text = _EMPHASIS_STAR.sub(r"\1", text)
    text = _EMPHASIS_UNDERSCORE.sub(r"\1", text)
    text = _STRAY_STARS.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def normalize_for_speech(text: str) -> str:
    """
    Reduce markdown-formatted text to plain speakable text.

    The result is a fixed point of the cleanup pass, so
    `normalize_for_speech(normalize_for_speech(x)) == normalize_for_speech(x)`.

    Example:
        >>> normalize_for_speech("**Hi** there\\n\\nfriend")
        'Hi there friend'
    """
    if not text:
        return ""
    current = text
    # Every pass that changes the text either shortens it or only rewrites
    # whitespace, so this converges well within len(text) + 1 passes.
    for _ in range(len(text) + 1):
        cleaned = _strip_once(current)
        if cleaned == current:
            break
        current = cleaned
    return current
