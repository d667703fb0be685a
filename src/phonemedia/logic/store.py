"""Persisted media state for one chat message."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from phonemedia.core.config.constants import MEDIA_EXTRA_KEY
from phonemedia.core.error_handling import COMMON_HANDLER_EXCEPTIONS, log_exception
from phonemedia.core.models import (
    ImageRecord,
    MediaRecord,
    Slot,
    TagKind,
    VoiceRecord,
    normalize_record,
    record_from_payload,
)
from phonemedia.logic.tags import contains_tag_marker, rewrite_nth_tag

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator, Mapping

    from phonemedia.core.models import ChatMessage

logger = logging.getLogger(__name__)


class MediaStateStore:
    """Typed access to ``message.extra["phoneMedia"]``.

    Records are normalized whenever they are read or written, so legacy
    single-URL payloads are upgraded the first time they are touched. Every
    mutation ends with a call to ``persist``; a failed save is logged and
    reported through the return value, and the in-memory change is kept.
    A store built without ``persist`` only reads.
    """

    def __init__(
        self,
        message: ChatMessage,
        persist: Callable[[], Awaitable[None]] | None = None,
        *,
        message_id: object = None,
    ) -> None:
        self.message = message
        self._persist = persist
        self.message_id = message_id

    @property
    def _slots(self) -> dict[str, Any]:
        slots = self.message.extra.get(MEDIA_EXTRA_KEY)
        return slots if isinstance(slots, dict) else {}

    def _writable_slots(self) -> dict[str, Any]:
        slots = self.message.extra.get(MEDIA_EXTRA_KEY)
        if not isinstance(slots, dict):
            slots = {}
            self.message.extra[MEDIA_EXTRA_KEY] = slots
        return slots

    @staticmethod
    def migrate_legacy(payload: Mapping[str, Any]) -> dict[str, Any]:
        """Upgrade a persisted payload to the variant shape (idempotent)."""
        return normalize_record(payload)

    def migrate_all(self) -> bool:
        """Normalize every payload and key in place; report whether any changed.

        Keys such as ``"img0"``, or a bare ``"0"`` holding a voice note, are
        moved to the slot's canonical key unless that key is already taken.
        """
        slots = self._slots
        changed = False
        for key, payload in list(slots.items()):
            if not isinstance(payload, dict):
                continue
            normalized = normalize_record(payload)
            if normalized != payload:
                slots[key] = normalized
                changed = True
            slot = Slot.from_key(key, normalized)
            if slot is None or slot.key == key:
                continue
            if slot.key in slots:
                logger.warning(
                    "Media slot %r of message %s duplicates %r; leaving it in place",
                    key,
                    self.message_id,
                    slot.key,
                )
                continue
            slots[slot.key] = slots.pop(key)
            changed = True
        return changed

    def _record_at(self, key: str, slot: Slot) -> MediaRecord | None:
        slots = self._slots
        payload = slots.get(key)
        if not isinstance(payload, dict):
            return None
        normalized = normalize_record(payload)
        if normalized != payload:
            slots[key] = normalized
        record = record_from_payload(normalized)
        if record.kind is not slot.kind:
            logger.warning(
                "Slot %s of message %s holds a %s record",
                key,
                self.message_id,
                record.kind.value,
            )
            return None
        return record

    def get(self, slot: Slot) -> MediaRecord | None:
        return self._record_at(slot.key, slot)

    def get_image(self, index: int) -> ImageRecord | None:
        record = self.get(Slot.image(index))
        return record if isinstance(record, ImageRecord) else None

    def get_voice(self, index: int) -> VoiceRecord | None:
        record = self.get(Slot.voice(index))
        return record if isinstance(record, VoiceRecord) else None

    def slots(self) -> Iterator[tuple[Slot, MediaRecord]]:
        """Yield every persisted slot with its normalized record.

        A record under a non-canonical key is read from that key, unless the
        canonical key for the same slot is also present.
        """
        slots = self._slots
        for key, payload in list(slots.items()):
            if not isinstance(payload, dict):
                continue
            slot = Slot.from_key(key, normalize_record(payload))
            if slot is None:
                logger.warning("Ignoring unrecognized media slot key %r", key)
                continue
            if slot.key != key and slot.key in slots:
                continue
            record = self._record_at(key, slot)
            if record is not None:
                yield slot, record

    def has_voice_records(self) -> bool:
        return any(slot.kind is TagKind.VOICE_NOTE for slot, _record in self.slots())

    async def save(self) -> bool:
        """Flush the chat through the host; report failure without raising."""
        if self._persist is None:
            logger.debug("Read-only store for message %s; not saving", self.message_id)
            return False
        try:
            await self._persist()
        except COMMON_HANDLER_EXCEPTIONS as exc:
            log_exception(
                logger=logger,
                message="Failed to persist chat; keeping in-memory media state",
                error=exc,
                context={"message_id": self.message_id},
                level=logging.WARNING,
            )
            return False
        return True

    async def upsert(self, slot: Slot, record: MediaRecord) -> bool:
        if record.kind is not slot.kind:
            msg = f"Cannot store a {record.kind.value} record in slot {slot.key}"
            raise ValueError(msg)
        self._writable_slots()[slot.key] = record.to_payload()
        return await self.save()

    async def append_variant(self, index: int, url: str) -> ImageRecord | None:
        """Append a generated variant and make it the active one."""
        record = self.get_image(index)
        if record is None:
            return None
        record.variants.append(url)
        record.active_index = len(record.variants) - 1
        record.saved_flags.discard(record.active_index)
        await self.upsert(Slot.image(index), record)
        return record

    async def set_active_index(self, index: int, active_index: int) -> bool:
        """Move the carousel; no-op when out of range or unchanged."""
        record = self.get_image(index)
        if record is None:
            return False
        if not 0 <= active_index < len(record.variants):
            return False
        if active_index == record.active_index:
            return False
        record.active_index = active_index
        await self.upsert(Slot.image(index), record)
        return True

    async def mark_saved(self, index: int, variant: int) -> bool:
        """Flag a variant as stored in the gallery; no-op if already flagged."""
        record = self.get_image(index)
        if record is None or not 0 <= variant < len(record.variants):
            return False
        if variant in record.saved_flags:
            return False
        record.saved_flags.add(variant)
        await self.upsert(Slot.image(index), record)
        return True

    async def set_prompt(self, index: int, prompt: str) -> ImageRecord | None:
        """Change the prompt used for future variants of an image slot."""
        record = self.get_image(index)
        if record is None:
            return None
        record.prompt = prompt.strip()
        await self.upsert(Slot.image(index), record)
        return record

    async def rewrite_voice_text(self, index: int, text: str) -> VoiceRecord:
        """Update a voice note and the matching tag in the saved message text.

        The ``index``-th voice tag in the raw text is rewritten; every other
        tag in the message stays exactly as it was. Text containing a voice-note
        marker is rejected with ``ValueError``.
        """
        if contains_tag_marker(text, TagKind.VOICE_NOTE):
            msg = "Voice note text cannot contain voice-note tag markers"
            raise ValueError(msg)
        record = VoiceRecord(text=text.strip())
        self.message.mes = rewrite_nth_tag(
            self.message.mes,
            TagKind.VOICE_NOTE,
            index,
            record.text,
        )
        await self.upsert(Slot.voice(index), record)
        return record
