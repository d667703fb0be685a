"""HTML widgets inserted into rendered messages."""

from __future__ import annotations

import html
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup, Tag

from phonemedia.core.config.constants import (
    BAR_HEIGHTS,
    IMAGE_CONTAINER_CLASS,
    IMAGE_FAILED_CLASS,
    IMAGE_LOADING_CLASS,
    PAUSE_GLYPH,
    PLAY_GLYPH,
    SPEECH_WORDS_PER_MINUTE,
    VOICE_CONTAINER_CLASS,
    WIDGET_ID_ATTR,
)
from phonemedia.utils.text import estimate_duration_seconds, format_duration

if TYPE_CHECKING:
    from phonemedia.core.models import ImageRecord, Slot

HIDDEN_STYLE = "display:none;"


def _fragment(markup: str) -> Tag:
    """Parse a single-element HTML fragment and return that element."""
    soup = BeautifulSoup(markup, "html.parser")
    element = soup.find(True)
    if not isinstance(element, Tag):
        msg = "Widget markup must contain an element"
        raise ValueError(msg)
    return element.extract()


def widget_id(message_id: object, slot: Slot) -> str:
    return f"{message_id}:{slot.key}"


def _set_hidden(element: Tag | None, *, hidden: bool) -> None:
    if element is None:
        return
    if hidden:
        element["style"] = HIDDEN_STYLE
    elif "style" in element.attrs:
        del element["style"]


def add_class(element: Tag | None, class_name: str) -> None:
    if element is None:
        return
    classes = list(element.get("class") or [])
    if class_name not in classes:
        classes.append(class_name)
    element["class"] = classes


def remove_class(element: Tag | None, class_name: str) -> None:
    if element is None:
        return
    classes = [value for value in element.get("class") or [] if value != class_name]
    element["class"] = classes


def build_waveform_bars() -> str:
    return "".join(
        f'<span class="phone-vn-bar" style="height:{height}px;"></span>'
        for height in BAR_HEIGHTS
    )


def build_loading_placeholder() -> Tag:
    return _fragment(
        f'<div class="{IMAGE_LOADING_CLASS}">'
        '<div class="phone-img-spinner"></div>'
        "<div>Generating image...</div>"
        "</div>",
    )


def build_failure_indicator(widget_key: str | None = None) -> Tag:
    """Build the failed-slot marker; keyed so a retry can find and replace it."""
    indicator = _fragment(
        f'<div class="{IMAGE_FAILED_CLASS}">Image generation failed</div>',
    )
    if widget_key is not None:
        indicator[WIDGET_ID_ATTR] = widget_key
    return indicator


def build_image_container(record: ImageRecord, widget_key: str) -> Tag:
    """Build the carousel widget for an image slot."""
    container = _fragment(
        f'<div class="{IMAGE_CONTAINER_CLASS}" '
        f'{WIDGET_ID_ATTR}="{html.escape(widget_key)}">'
        '<img class="phone-img" alt="Generated image" />'
        '<button class="phone-img-nav phone-img-nav-left" title="Previous">'
        "‹</button>"
        '<button class="phone-img-nav phone-img-nav-right" title="Next">'
        "›</button>"
        '<span class="phone-img-counter"></span>'
        '<button class="phone-img-edit" title="Edit prompt">✎</button>'
        '<button class="phone-img-save" title="Save to gallery">\U0001f4be</button>'
        '<details class="phone-img-details">'
        "<summary>prompt</summary>"
        f'<div class="phone-img-prompt">{html.escape(record.prompt)}</div>'
        "</details>"
        "</div>",
    )
    render_image_state(container, record)
    return container


def render_image_state(container: Tag, record: ImageRecord) -> None:
    """Sync an image widget with its record: source, counter, nav and save state."""
    image = container.find("img", class_="phone-img")
    if image is not None:
        image["src"] = record.active_url or ""

    total = len(record.variants)
    counter = container.find("span", class_="phone-img-counter")
    if counter is not None:
        counter.string = f"{record.active_index + 1}/{total}" if total > 1 else ""
        _set_hidden(counter, hidden=total <= 1)

    left = container.find("button", class_="phone-img-nav-left")
    _set_hidden(left, hidden=record.active_index == 0)

    prompt = container.find("div", class_="phone-img-prompt")
    if prompt is not None:
        prompt.string = record.prompt

    save = container.find("button", class_="phone-img-save")
    if save is not None:
        if record.active_index in record.saved_flags:
            add_class(save, "saved")
            save.string = "✓"
        else:
            remove_class(save, "saved")
            save.string = "\U0001f4be"


def set_image_busy(container: Tag, *, busy: bool) -> None:
    """Fade the image and disable "next" while a new variant generates."""
    image = container.find("img", class_="phone-img")
    right = container.find("button", class_="phone-img-nav-right")
    if busy:
        add_class(image, "fading")
        if right is not None:
            right["disabled"] = ""
    else:
        remove_class(image, "fading")
        if right is not None and "disabled" in right.attrs:
            del right["disabled"]


def set_save_state(container: Tag, state: str) -> None:
    """Show the gallery button as ``idle``, ``saving`` or ``saved``."""
    save = container.find("button", class_="phone-img-save")
    if save is None:
        return
    for value in ("saving", "saved"):
        remove_class(save, value)
    if state == "saving":
        add_class(save, "saving")
        save.string = "…"
    elif state == "saved":
        add_class(save, "saved")
        save.string = "✓"
    else:
        save.string = "\U0001f4be"


def build_voice_player(
    text: str,
    widget_key: str,
    words_per_minute: float = SPEECH_WORDS_PER_MINUTE,
) -> Tag:
    """Build the click-to-play voice-note widget."""
    player = _fragment(
        f'<div class="{VOICE_CONTAINER_CLASS}" '
        f'{WIDGET_ID_ATTR}="{html.escape(widget_key)}">'
        f'<button class="phone-vn-play-btn" title="Play voice note">{PLAY_GLYPH}'
        "</button>"
        f'<div class="phone-vn-waveform">{build_waveform_bars()}</div>'
        '<span class="phone-vn-duration"></span>'
        '<button class="phone-vn-edit" title="Edit voice note">✎</button>'
        "</div>",
    )
    set_voice_duration(player, text, words_per_minute)
    return player


def set_voice_duration(
    player: Tag,
    text: str,
    words_per_minute: float = SPEECH_WORDS_PER_MINUTE,
) -> None:
    duration = player.find("span", class_="phone-vn-duration")
    if duration is not None:
        duration.string = format_duration(
            estimate_duration_seconds(text, words_per_minute),
        )


def set_playback_state(player: Tag, state: str) -> None:
    """Show a voice player as ``idle``, ``loading`` or ``playing``."""
    button = player.find("button", class_="phone-vn-play-btn")
    waveform = player.find("div", class_="phone-vn-waveform")
    for value in ("loading", "playing"):
        remove_class(button, value)
        remove_class(waveform, value)

    if button is None:
        return
    if state == "idle":
        button.string = PLAY_GLYPH
        return
    add_class(button, state)
    add_class(waveform, state)
    button.string = PAUSE_GLYPH


def get_playback_state(player: Tag) -> str:
    button = player.find("button", class_="phone-vn-play-btn")
    classes = (button.get("class") or []) if button is not None else []
    for state in ("playing", "loading"):
        if state in classes:
            return state
    return "idle"


def place_widget(root: Tag, widget: Tag, placeholder: Tag | None) -> Tag:
    """Swap ``widget`` in for ``placeholder``, or append it to ``root``."""
    if placeholder is not None and placeholder.parent is not None:
        placeholder.replace_with(widget)
    else:
        root.append(widget)
    return widget
