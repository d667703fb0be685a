"""Shared text helpers for voice notes."""

import math
import re

from phonemedia.core.config.constants import SPEECH_WORDS_PER_MINUTE

_ASTERISK_EXPRESSION = re.compile(r"\*[^*]+\*")
_UNDERSCORE_EXPRESSION = re.compile(r"_[^_]+_")
_WHITESPACE_RUN = re.compile(r"\s{2,}")


def clean_text_for_speech(text: str) -> str:
    """Remove non-verbal expressions before sending text to TTS.

    Italicized spans such as ``*laughs*`` or ``_sighs_`` describe how something
    is said rather than what is said.

    Examples:
        >>> clean_text_for_speech("hey *giggles* you")
        'hey you'

    """
    cleaned = _ASTERISK_EXPRESSION.sub("", text)
    cleaned = _UNDERSCORE_EXPRESSION.sub("", cleaned)
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned)
    return cleaned.strip()


def estimate_duration_seconds(
    text: str,
    words_per_minute: float = SPEECH_WORDS_PER_MINUTE,
) -> int:
    """Estimate how long ``text`` takes to speak, never less than one second."""
    words = len(clean_text_for_speech(text).split())
    if words == 0:
        return 1
    return max(1, math.ceil(words * 60 / words_per_minute))


def format_duration(seconds: int) -> str:
    """Render seconds as ``m:ss``."""
    minutes, remainder = divmod(max(seconds, 0), 60)
    return f"{minutes}:{remainder:02d}"
