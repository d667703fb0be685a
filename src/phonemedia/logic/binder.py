"""Interaction behaviour for inserted media widgets.

A binding is the Python side of a widget: the host forwards clicks to the
binding registered under the widget's ``data-phone-widget`` id. Bindings
read their record from the store on every action, so edits made through one
binding are seen by the next.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from phonemedia.core.config.constants import WIDGET_ID_ATTR
from phonemedia.core.exceptions import (
    GalleryUploadError,
    GenerationFailedError,
    SpeechFailedError,
)
from phonemedia.core.models import TagKind
from phonemedia.logic.tags import contains_tag_marker
from phonemedia.logic.widgets import (
    add_class,
    remove_class,
    render_image_state,
    set_image_busy,
    set_playback_state,
    set_save_state,
    set_voice_duration,
)
from phonemedia.services.media.speech import wait_for_playback
from phonemedia.utils.text import clean_text_for_speech

if TYPE_CHECKING:
    from collections.abc import Callable

    from bs4 import Tag

    from phonemedia.core.config.settings import MediaSettings
    from phonemedia.core.models import ImageRecord
    from phonemedia.logic.store import MediaStateStore
    from phonemedia.services.media import MediaServices

logger = logging.getLogger(__name__)

EDITING_CLASS = "editing"


class ImageBinding:
    """Carousel, prompt editing and gallery saving for one image widget."""

    def __init__(
        self,
        widget: Tag,
        store: MediaStateStore,
        index: int,
        services: MediaServices,
        character_name: Callable[[], str | None],
    ) -> None:
        self.widget = widget
        self.store = store
        self.index = index
        self.services = services
        self.character_name = character_name
        self.generating = False
        self.saving = False

    def _refresh(self, record: ImageRecord | None = None) -> ImageRecord | None:
        record = record or self.store.get_image(self.index)
        if record is not None:
            render_image_state(self.widget, record)
        return record

    async def previous(self) -> bool:
        """Show the previous variant; does nothing at the first one."""
        record = self.store.get_image(self.index)
        if record is None or record.active_index <= 0:
            return False
        moved = await self.store.set_active_index(self.index, record.active_index - 1)
        self._refresh()
        return moved

    async def next(self) -> bool:
        """Show the next variant, generating a new one past the last."""
        record = self.store.get_image(self.index)
        if record is None:
            return False
        if not record.is_last:
            moved = await self.store.set_active_index(
                self.index,
                record.active_index + 1,
            )
            self._refresh()
            return moved
        return await self._generate_variant(record.prompt)

    async def _generate_variant(self, prompt: str) -> bool:
        if self.generating:
            return False
        self.generating = True
        set_image_busy(self.widget, busy=True)
        try:
            url = await self.services.images.generate(prompt)
            record = await self.store.append_variant(self.index, url)
            self._refresh(record)
            logger.info(
                "Generated variant #%s for image #%s in message %s",
                record.active_index if record else None,
                self.index,
                self.store.message_id,
            )
            return record is not None
        except GenerationFailedError as exc:
            logger.warning(
                "Variant generation failed for image #%s in message %s: %s",
                self.index,
                self.store.message_id,
                exc,
            )
            return False
        finally:
            self.generating = False
            set_image_busy(self.widget, busy=False)

    def edit(self) -> str:
        """Enter edit mode and return an editable copy of the prompt."""
        record = self.store.get_image(self.index)
        add_class(self.widget, EDITING_CLASS)
        return record.prompt if record is not None else ""

    def cancel_edit(self) -> None:
        remove_class(self.widget, EDITING_CLASS)

    async def save_edit(self, prompt: str) -> bool:
        """Store an edited prompt without generating anything."""
        remove_class(self.widget, EDITING_CLASS)
        if not prompt.strip():
            return False
        record = await self.store.set_prompt(self.index, prompt)
        self._refresh(record)
        return record is not None

    async def save_edit_and_generate(self, prompt: str) -> bool:
        """Store an edited prompt and generate a new variant from it."""
        if not await self.save_edit(prompt):
            return False
        record = self.store.get_image(self.index)
        if record is None:
            return False
        return await self._generate_variant(record.prompt)

    async def save_to_gallery(self) -> bool:
        """Upload the active variant to the gallery, once per variant."""
        record = self.store.get_image(self.index)
        if record is None or record.active_url is None or self.saving:
            return False
        variant = record.active_index
        if variant in record.saved_flags:
            return False
        gallery = self.services.gallery
        if gallery is None:
            logger.warning("Gallery upload is not configured; cannot save image")
            return False

        self.saving = True
        set_save_state(self.widget, "saving")
        try:
            await gallery.save_image(
                record.active_url,
                self.character_name() or "phone",
            )
        except GalleryUploadError as exc:
            logger.warning(
                "Gallery upload failed for image #%s variant %s: %s",
                self.index,
                variant,
                exc,
            )
            set_save_state(self.widget, "idle")
            return False
        finally:
            self.saving = False

        await self.store.mark_saved(self.index, variant)
        self._refresh()
        return True


class VoiceBinding:
    """Playback and text editing for one voice-note widget."""

    def __init__(
        self,
        widget: Tag,
        store: MediaStateStore,
        index: int,
        services: MediaServices,
        settings: MediaSettings,
        character_name: Callable[[], str | None],
    ) -> None:
        self.widget = widget
        self.store = store
        self.index = index
        self.services = services
        self.settings = settings
        self.character_name = character_name
        self.busy = False

    @property
    def text(self) -> str:
        record = self.store.get_voice(self.index)
        return record.text if record is not None else ""

    async def play(self) -> bool:
        """Speak the note and track the host audio element until it ends.

        Returns False without doing anything while a playback is in progress.
        """
        if self.busy:
            return False

        speech_text = clean_text_for_speech(self.text)
        if not speech_text:
            logger.warning("Voice note #%s is empty after cleaning", self.index)
            return False

        self.busy = True
        set_playback_state(self.widget, "loading")
        playback = asyncio.create_task(
            wait_for_playback(
                self.services.audio,
                timeout_seconds=self.settings.playback_timeout_seconds,
                on_started=lambda: set_playback_state(self.widget, "playing"),
            ),
        )
        try:
            # Listeners must be attached before the speech request is queued.
            await asyncio.sleep(0)
            voice = self.services.speech.resolve_voice(self.character_name())
            await self.services.speech.speak(voice, speech_text)
            return await playback
        except SpeechFailedError as exc:
            logger.warning("Voice note #%s playback failed: %s", self.index, exc)
            return False
        finally:
            if not playback.done():
                playback.cancel()
            self.busy = False
            set_playback_state(self.widget, "idle")

    def edit(self) -> str:
        """Enter edit mode and return an editable copy of the text."""
        add_class(self.widget, EDITING_CLASS)
        return self.text

    def cancel_edit(self) -> None:
        remove_class(self.widget, EDITING_CLASS)

    async def save_edit(self, text: str) -> bool:
        """Rewrite the note's record and its tag in the message text.

        Empty text, or text that would close the tag early, is rejected and
        the widget stays in edit mode.
        """
        if not text.strip():
            remove_class(self.widget, EDITING_CLASS)
            return False
        if contains_tag_marker(text, TagKind.VOICE_NOTE):
            logger.warning(
                "Rejected voice note #%s edit containing a tag marker",
                self.index,
            )
            return False
        remove_class(self.widget, EDITING_CLASS)
        record = await self.store.rewrite_voice_text(self.index, text)
        set_voice_duration(
            self.widget,
            record.text,
            self.settings.speech_words_per_minute,
        )
        return True

    async def save_edit_and_play(self, text: str) -> bool:
        if not await self.save_edit(text):
            return False
        return await self.play()


Binding = ImageBinding | VoiceBinding


class WidgetBinder:
    """Registry of widget bindings, keyed by widget id.

    Binding a widget id again replaces the earlier binding, so a re-rendered
    message never accumulates stale handlers.
    """

    def __init__(
        self,
        services: MediaServices,
        settings: MediaSettings,
        character_name: Callable[[], str | None] = lambda: None,
    ) -> None:
        self.services = services
        self.settings = settings
        self.character_name = character_name
        self._bindings: dict[str, Binding] = {}

    def __len__(self) -> int:
        return len(self._bindings)

    def _register(self, widget: Tag, binding: Binding) -> Binding:
        key = str(widget.get(WIDGET_ID_ATTR) or id(widget))
        self._bindings[key] = binding
        return binding

    def bind_image(self, widget: Tag, store: MediaStateStore, index: int) -> ImageBinding:
        binding = ImageBinding(widget, store, index, self.services, self.character_name)
        self._register(widget, binding)
        return binding

    def bind_voice(self, widget: Tag, store: MediaStateStore, index: int) -> VoiceBinding:
        binding = VoiceBinding(
            widget,
            store,
            index,
            self.services,
            self.settings,
            self.character_name,
        )
        self._register(widget, binding)
        return binding

    def binding_for(self, widget: Tag | str) -> Binding | None:
        key = widget if isinstance(widget, str) else str(widget.get(WIDGET_ID_ATTR))
        return self._bindings.get(key)

    def clear(self) -> None:
        self._bindings.clear()
