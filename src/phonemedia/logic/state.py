"""Per-message processing decisions and the processed-message context."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from phonemedia.core.config.constants import MEDIA_EXTRA_KEY
from phonemedia.core.models import TagKind
from phonemedia.logic.store import MediaStateStore
from phonemedia.logic.tags import has_open_tag

if TYPE_CHECKING:
    from collections.abc import Hashable, Mapping

    from phonemedia.core.models import ChatMessage

logger = logging.getLogger(__name__)


class ProcessingState(Enum):
    """Lifecycle of one message within a chat session."""

    UNPROCESSED = "unprocessed"
    NEEDS_FIRST_GENERATION = "needs_first_generation"
    RESTORE_ONLY = "restore_only"
    PROCESSED = "processed"
    SKIP = "skip"


class ProcessingContext:
    """Messages already handled in the current chat session.

    Membership is the only guard against two passes over the same message, so
    an identifier is added before the first await of a pass.
    """

    def __init__(self) -> None:
        self._processed: set[Hashable] = set()

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._processed

    def __len__(self) -> int:
        return len(self._processed)

    def mark_processed(self, message_id: Hashable) -> None:
        self._processed.add(message_id)

    def invalidate(self, message_id: Hashable) -> None:
        self._processed.discard(message_id)

    def clear(self) -> None:
        self._processed.clear()

    def on_chat_changed(self) -> None:
        """Forget everything; message ids are only unique within a chat."""
        logger.debug("Chat changed, clearing %s processed message(s)", len(self))
        self.clear()

    def on_message_swiped(self, message_id: Hashable) -> None:
        """Forget one message whose content was regenerated."""
        self.invalidate(message_id)


def _media_slots(message: ChatMessage) -> Mapping[str, object]:
    slots = message.extra.get(MEDIA_EXTRA_KEY) if message.extra else None
    return slots if isinstance(slots, dict) else {}


def decide_state(
    message: ChatMessage | None,
    *,
    already_processed: bool = False,
) -> ProcessingState:
    """Decide what a render-completed signal should do for ``message``.

    Voice tags stay in the saved text after first generation, so a voice tag
    whose record already exists means "restore", not "generate again".
    """
    if message is None or message.is_user or message.is_system or not message.mes:
        return ProcessingState.SKIP
    if already_processed:
        return ProcessingState.SKIP

    has_image_tag = has_open_tag(message.mes, TagKind.IMAGE)
    has_voice_tag = has_open_tag(message.mes, TagKind.VOICE_NOTE)

    if has_image_tag:
        return ProcessingState.NEEDS_FIRST_GENERATION
    if has_voice_tag and not MediaStateStore(message).has_voice_records():
        return ProcessingState.NEEDS_FIRST_GENERATION
    if _media_slots(message):
        return ProcessingState.RESTORE_ONLY
    return ProcessingState.SKIP
