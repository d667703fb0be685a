"""Tag extraction from raw message text."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from phonemedia.core.models import TAG_SYNTAX, TagKind, TagMatch

logger = logging.getLogger(__name__)


def _tag_pattern(kind: TagKind) -> re.Pattern[str]:
    name = re.escape(TAG_SYNTAX[kind].name)
    return re.compile(
        rf"\[{name}\]\s*([\s\S]*?)\s*\[/{name}\]",
        re.IGNORECASE,
    )


TAG_PATTERNS: dict[TagKind, re.Pattern[str]] = {
    kind: _tag_pattern(kind) for kind in TagKind
}
OPEN_TAG_PATTERNS: dict[TagKind, re.Pattern[str]] = {
    kind: re.compile(re.escape(TAG_SYNTAX[kind].open_marker), re.IGNORECASE)
    for kind in TagKind
}

# Only image tags leave the persisted text; voice tags stay so the edit flow
# can find and rewrite them.
PERSISTED_STRIP_KINDS = (TagKind.IMAGE,)


@dataclass(slots=True)
class ExtractionResult:
    """Matches found in a message, grouped by kind."""

    images: list[TagMatch] = field(default_factory=list)
    voice_notes: list[TagMatch] = field(default_factory=list)

    def for_kind(self, kind: TagKind) -> list[TagMatch]:
        if kind is TagKind.IMAGE:
            return self.images
        return self.voice_notes

    @property
    def total(self) -> int:
        return len(self.images) + len(self.voice_notes)


def find_tags(text: str, kind: TagKind) -> list[TagMatch]:
    """Return the non-empty tags of one kind in document order.

    The slot index is the occurrence number among all tags of that kind, so an
    empty tag still consumes its index even though it yields no match.
    """
    matches: list[TagMatch] = []
    for occurrence, match in enumerate(TAG_PATTERNS[kind].finditer(text)):
        content = match.group(1).strip()
        if not content:
            logger.debug("Skipping empty %s tag #%s", kind.syntax.name, occurrence)
            continue
        matches.append(
            TagMatch(kind=kind, slot_index=occurrence, content=content),
        )
    return matches


def extract_tags(text: str) -> ExtractionResult:
    """Scan raw message text for image and voice-note tags."""
    return ExtractionResult(
        images=find_tags(text, TagKind.IMAGE),
        voice_notes=find_tags(text, TagKind.VOICE_NOTE),
    )


def has_open_tag(text: str, kind: TagKind) -> bool:
    """Check whether the text contains an opening marker of ``kind``."""
    return OPEN_TAG_PATTERNS[kind].search(text) is not None


def strip_persisted_text(text: str) -> str:
    """Remove image tags from text that will be saved back to the message."""
    stripped = text
    for kind in PERSISTED_STRIP_KINDS:
        stripped = TAG_PATTERNS[kind].sub("", stripped)
    return stripped.strip()


def rewrite_nth_tag(text: str, kind: TagKind, occurrence: int, content: str) -> str:
    """Replace the content of the ``occurrence``-th tag of ``kind``.

    Only the inner content of that one tag changes; the tag's own spelling and
    every other occurrence are kept exactly as they were. If there is no such
    occurrence the text is returned unchanged.
    """
    for index, match in enumerate(TAG_PATTERNS[kind].finditer(text)):
        if index != occurrence:
            continue
        start, end = match.span(1)
        return f"{text[:start]}{content}{text[end:]}"

    logger.warning(
        "No %s tag #%s found to rewrite",
        kind.syntax.name,
        occurrence,
    )
    return text


def contains_tag_marker(text: str, kind: TagKind) -> bool:
    """Check whether ``text`` holds an opening or closing marker of ``kind``.

    Such text cannot be written inside a tag of that kind without changing
    where the tag ends.
    """
    lowered = text.lower()
    syntax = kind.syntax
    return (
        syntax.open_marker.lower() in lowered
        or syntax.close_marker.lower() in lowered
    )
