"""Per-message media processing: first generation and restore."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from phonemedia.core.config.constants import WIDGET_ID_ATTR
from phonemedia.core.exceptions import GenerationFailedError
from phonemedia.core.models import ImageRecord, Slot, TagKind, VoiceRecord
from phonemedia.logic.binder import WidgetBinder
from phonemedia.logic.placeholders import PlaceholderResolver
from phonemedia.logic.state import ProcessingContext, ProcessingState, decide_state
from phonemedia.logic.store import MediaStateStore
from phonemedia.logic.tags import extract_tags, strip_persisted_text
from phonemedia.logic.tree import (
    is_attached,
    remove_position_markers,
    strip_tags_from_tree,
)
from phonemedia.logic.widgets import (
    build_failure_indicator,
    build_image_container,
    build_loading_placeholder,
    build_voice_player,
    place_widget,
    widget_id,
)

if TYPE_CHECKING:
    from collections.abc import Hashable, Sequence

    from bs4 import Tag

    from phonemedia.core.config.settings import MediaSettings
    from phonemedia.core.host import ChatHost
    from phonemedia.core.models import ChatMessage, MediaRecord, TagMatch
    from phonemedia.services.media import MediaServices

logger = logging.getLogger(__name__)


def _slot_order(item: tuple[Slot, MediaRecord]) -> tuple[int, int]:
    slot, _record = item
    return (slot.kind is TagKind.VOICE_NOTE, slot.index)


def _marker_for(markers: Sequence[Tag], index: int, root: Tag) -> Tag | None:
    if 0 <= index < len(markers) and is_attached(markers[index], root):
        return markers[index]
    return None


class MediaProcessor:
    """Drives the processing state machine for rendered messages.

    One processor serves one host; its ``ProcessingContext`` is the only
    guard against running two passes over the same message.
    """

    def __init__(
        self,
        host: ChatHost,
        services: MediaServices,
        settings: MediaSettings,
        *,
        context: ProcessingContext | None = None,
        resolver: PlaceholderResolver | None = None,
        binder: WidgetBinder | None = None,
    ) -> None:
        self.host = host
        self.services = services
        self.settings = settings
        self.context = context or ProcessingContext()
        self.resolver = resolver or PlaceholderResolver()
        self.binder = binder or WidgetBinder(
            services,
            settings,
            lambda: self.host.character_name,
        )

    async def on_message_rendered(self, message_id: Hashable) -> ProcessingState:
        """Handle a render-completed signal; safe to call any number of times.

        Returns:
            ``PROCESSED`` when a pass ran, ``SKIP`` when nothing was to be
            done, ``UNPROCESSED`` when the message is not on screen.

        """
        message = self.host.get_message(message_id)
        state = decide_state(message, already_processed=message_id in self.context)
        if state is ProcessingState.SKIP or message is None:
            return ProcessingState.SKIP

        root = self.host.get_render_target(message_id)
        if root is None:
            logger.warning(
                "Message %s has no rendered content; leaving it unprocessed",
                message_id,
            )
            return ProcessingState.UNPROCESSED

        self.context.mark_processed(message_id)
        store = MediaStateStore(message, self.host.save_chat, message_id=message_id)
        if state is ProcessingState.NEEDS_FIRST_GENERATION:
            await self._first_generation(message_id, message, root, store)
        else:
            await self._restore(message_id, root, store)
        return ProcessingState.PROCESSED

    async def reprocess(self, message_id: Hashable | None = None) -> int:
        """Forget processed state and run the pass again.

        With no ``message_id`` every message of the chat is reprocessed.
        Returns the number of messages a pass ran for.
        """
        if message_id is None:
            self.context.clear()
            targets = list(self.host.message_ids())
        else:
            self.context.invalidate(message_id)
            targets = [message_id]

        processed = 0
        for target in targets:
            state = await self.on_message_rendered(target)
            if state is ProcessingState.PROCESSED:
                processed += 1
        logger.info("Reprocessed %s of %s message(s)", processed, len(targets))
        return processed

    def on_chat_changed(self) -> None:
        self.context.on_chat_changed()
        self.binder.clear()

    def on_message_swiped(self, message_id: Hashable) -> None:
        self.context.on_message_swiped(message_id)

    def _existing_widget(self, root: Tag, key: str) -> Tag | None:
        return root.find(attrs={WIDGET_ID_ATTR: key})

    async def _first_generation(
        self,
        message_id: Hashable,
        message: ChatMessage,
        root: Tag,
        store: MediaStateStore,
    ) -> None:
        store.migrate_all()
        extraction = extract_tags(message.mes)

        # Placeholders must be looked up before stripping: a tag span that
        # encloses its own placeholder takes the placeholder with it.
        captured = {
            match.slot_index: self.resolver.resolve(
                root,
                TagKind.VOICE_NOTE,
                match.slot_index,
            )
            for match in extraction.voice_notes
        }
        markers = strip_tags_from_tree(root)

        for match in extraction.voice_notes:
            await self._insert_voice_note(
                message_id,
                root,
                store,
                match,
                captured.get(match.slot_index),
                markers,
            )

        for match in extraction.images:
            slot = Slot.image(match.slot_index)
            record = store.get_image(slot.index)
            if record is not None and record.variants:
                self._render_record(message_id, root, store, slot, record, markers)
            else:
                await self._generate_image(message_id, root, store, match)

        handled = {
            Slot.image(match.slot_index) for match in extraction.images
        } | {Slot.voice(match.slot_index) for match in extraction.voice_notes}
        for slot, record in sorted(store.slots(), key=_slot_order):
            if slot not in handled:
                self._render_record(message_id, root, store, slot, record, markers)

        # Image tags stay in the saved text until every one of them has a
        # record; a failed slot keeps its tag so reprocessing can retry it.
        pending = [
            match.slot_index
            for match in extraction.images
            if store.get_image(match.slot_index) is None
        ]
        if pending:
            logger.info(
                "Keeping image tags in message %s; slot(s) %s still need an image",
                message_id,
                pending,
            )
        else:
            message.mes = strip_persisted_text(message.mes)

        remove_position_markers(markers, root)
        await store.save()
        logger.info(
            "Processed message %s: %s image(s), %s voice note(s)",
            message_id,
            len(extraction.images),
            len(extraction.voice_notes),
        )

    async def _insert_voice_note(
        self,
        message_id: Hashable,
        root: Tag,
        store: MediaStateStore,
        match: TagMatch,
        captured: Tag | None,
        markers: Sequence[Tag],
    ) -> None:
        slot = Slot.voice(match.slot_index)
        key = widget_id(message_id, slot)
        logger.debug("Found voice note #%s in message %s", slot.index, message_id)

        placeholder = self._existing_widget(root, key)
        if placeholder is None and is_attached(captured, root):
            placeholder = captured
        if placeholder is None:
            placeholder = self.resolver.resolve(root, slot.kind, slot.index)
        if placeholder is None:
            placeholder = _marker_for(markers, slot.index, root)

        player = place_widget(
            root,
            build_voice_player(
                match.content,
                key,
                self.settings.speech_words_per_minute,
            ),
            placeholder,
        )
        self.binder.bind_voice(player, store, slot.index)
        await store.upsert(slot, VoiceRecord(text=match.content))

    async def _generate_image(
        self,
        message_id: Hashable,
        root: Tag,
        store: MediaStateStore,
        match: TagMatch,
    ) -> None:
        slot = Slot.image(match.slot_index)
        key = widget_id(message_id, slot)
        logger.info(
            "Found image #%s in message %s: %s",
            slot.index,
            message_id,
            match.content[:80],
        )

        placeholder = self._existing_widget(root, key) or self.resolver.resolve(
            root,
            slot.kind,
            slot.index,
        )
        loading = place_widget(root, build_loading_placeholder(), placeholder)

        try:
            url = await self.services.images.generate(match.content)
        except GenerationFailedError as exc:
            logger.warning(
                "Image #%s in message %s failed: %s",
                slot.index,
                message_id,
                exc,
            )
            loading.replace_with(build_failure_indicator(key))
            return

        record = ImageRecord(variants=[url], prompt=match.content)
        container = build_image_container(record, key)
        loading.replace_with(container)
        self.binder.bind_image(container, store, slot.index)
        await store.upsert(slot, record)

    async def _restore(
        self,
        message_id: Hashable,
        root: Tag,
        store: MediaStateStore,
    ) -> None:
        migrated = store.migrate_all()
        markers = strip_tags_from_tree(root)
        restored = 0
        for slot, record in sorted(store.slots(), key=_slot_order):
            if self._render_record(message_id, root, store, slot, record, markers):
                restored += 1
        remove_position_markers(markers, root)
        if migrated:
            await store.save()
        logger.debug("Restored %s media slot(s) in message %s", restored, message_id)

    def _render_record(
        self,
        message_id: Hashable,
        root: Tag,
        store: MediaStateStore,
        slot: Slot,
        record: MediaRecord,
        markers: Sequence[Tag],
    ) -> bool:
        """Insert and bind the widget for a persisted slot, without generating."""
        key = widget_id(message_id, slot)
        if isinstance(record, ImageRecord):
            if not record.variants:
                logger.warning(
                    "Image slot %s of message %s has no variants",
                    slot.key,
                    message_id,
                )
                return False
            widget = build_image_container(record, key)
        else:
            widget = build_voice_player(
                record.text,
                key,
                self.settings.speech_words_per_minute,
            )

        placeholder = self._existing_widget(root, key) or self.resolver.resolve(
            root,
            slot.kind,
            slot.index,
        )
        if placeholder is None and slot.kind is TagKind.VOICE_NOTE:
            placeholder = _marker_for(markers, slot.index, root)

        place_widget(root, widget, placeholder)
        if isinstance(record, ImageRecord):
            self.binder.bind_image(widget, store, slot.index)
        else:
            self.binder.bind_voice(widget, store, slot.index)
        return True
